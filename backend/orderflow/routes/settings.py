from __future__ import annotations
import logging
from flask import Blueprint, request, abort, current_app
from orderflow import get_db
from orderflow.decorators.auth import require_permissions
from orderflow.events import current_bus
from orderflow.events.bus import Event, SETTINGS_UPDATED
from orderflow.models.setting import Setting
from orderflow.services.settings import all_settings, set_setting, customer_ordering_enabled

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__)


def _save_and_publish(key, value, description=None):
    session = get_db()
    try:
        row = set_setting(session, key, value, description)
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_bus().publish(Event(SETTINGS_UPDATED, {'key': key, 'value': value}))
    logger.info('Setting %s updated', key)
    return {'key': row.key, 'value': row.value, 'description': row.description}


@settings_bp.get('')
@require_permissions('SETTINGS.MANAGE')
def list_settings():
    return {'data': all_settings(get_db())}


@settings_bp.put('/<key>')
@require_permissions('SETTINGS.MANAGE')
def update_setting(key: str):
    data = request.json or {}
    if 'value' not in data:
        abort(400, description='value required')
    return _save_and_publish(key, data['value'], data.get('description'))


@settings_bp.get('/customer-ordering')
def customer_ordering_status():
    enabled = customer_ordering_enabled(get_db(), current_app.config['CUSTOMER_ORDERING_DEFAULT'])
    return {'enabled': enabled}


@settings_bp.post('/customer-ordering/toggle')
@require_permissions('SETTINGS.MANAGE')
def toggle_customer_ordering():
    enabled = customer_ordering_enabled(get_db(), current_app.config['CUSTOMER_ORDERING_DEFAULT'])
    saved = _save_and_publish(Setting.KEY_CUSTOMER_ORDERING, not enabled, 'Allow customers to place orders')
    return {'enabled': bool(saved['value'])}
