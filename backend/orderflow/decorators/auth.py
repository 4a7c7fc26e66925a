import logging
from functools import wraps
from flask import abort, request
from flask_jwt_extended import verify_jwt_in_request
from orderflow.services.policy import current_permissions

logger = logging.getLogger(__name__)


def require_permissions(*codes: str):
    """Reject the request with 403 unless the token's ``perms`` claim holds every code."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            missing = [c for c in codes if c not in current_permissions()]
            if missing:
                logger.info('Denied %s %s: missing %s', request.method, request.path, missing)
                abort(403, description=f"Missing permission: {', '.join(missing)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer
