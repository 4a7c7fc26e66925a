from __future__ import annotations
from typing import Optional, Set
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_actor_id() -> int:
    """Identity of the authenticated caller (JWT identity is the user id as a string)."""
    return int(get_jwt_identity())


def optional_actor_id() -> Optional[int]:
    """Actor id when a valid token accompanies the request, else None."""
    verify_jwt_in_request(optional=True)
    ident = get_jwt_identity()
    return int(ident) if ident is not None else None
