"""Request payload validation helpers for order creation.

Raise ValidationFailed so the caller sees which field was wrong.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Optional, Tuple
from orderflow.errors import ValidationFailed


def validate_choice(value: Any, allowed: Iterable[str], field_name: str) -> str:
    allowed = tuple(allowed)
    if value not in allowed:
        raise ValidationFailed(f"{field_name} must be one of {', '.join(allowed)}")
    return value


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{field_name} is required")
    return value.strip()


def _whole_number(value: Any) -> Optional[int]:
    """Accept ints (not bools) and digit-only strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def parse_line_items(raw: Any) -> List[Tuple[int, int]]:
    """Return [(menu_item_id, quantity), ...] from the request ``items`` list."""
    if not isinstance(raw, list) or not raw:
        raise ValidationFailed('items must be a non-empty list')
    out = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationFailed(f'items[{idx}] must be an object')
        ref = _whole_number(entry.get('menu_item_id'))
        if ref is None:
            raise ValidationFailed(f'items[{idx}] menu_item_id must be an integer')
        qty = _whole_number(entry.get('quantity', 1))
        if qty is None or qty < 1:
            raise ValidationFailed(f'items[{idx}] quantity must be an integer >= 1')
        out.append((ref, qty))
    return out

__all__ = ['validate_choice', 'require_text', 'parse_line_items']
