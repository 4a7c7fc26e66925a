from __future__ import annotations
from typing import Any, Dict, Optional
from sqlalchemy import select
from orderflow.errors import ValidationFailed
from orderflow.models.setting import Setting

BOOLEAN_SETTINGS = (Setting.KEY_CUSTOMER_ORDERING,)


def get_setting(session, key: str, default: Any = None) -> Any:
    row = session.execute(select(Setting).where(Setting.key==key)).scalar_one_or_none()
    if row is None or row.value is None:
        return default
    return row.value


def all_settings(session) -> Dict[str, Any]:
    return {s.key: s.value for s in session.execute(select(Setting).order_by(Setting.key.asc())).scalars()}


def set_setting(session, key: str, value: Any, description: Optional[str] = None) -> Setting:
    """Upsert a setting. Caller owns the transaction boundary."""
    if key in BOOLEAN_SETTINGS and not isinstance(value, bool):
        raise ValidationFailed(f'{key} must be true or false')
    row = session.execute(select(Setting).where(Setting.key==key)).scalar_one_or_none()
    if row is None:
        row = Setting(key=key, value=value, description=description)
        session.add(row)
    else:
        row.value = value
        if description is not None:
            row.description = description
    session.flush()
    return row


def customer_ordering_enabled(session, default: bool = False) -> bool:
    value = get_setting(session, Setting.KEY_CUSTOMER_ORDERING, default)
    return value if isinstance(value, bool) else bool(default)
