from datetime import datetime, timezone
from flask import Flask
from orderflow import get_db
from orderflow.constants.permissions import ALL_PERMISSION_CODES, permissions_for_role
from orderflow.events import current_bus
from orderflow.events.bus import SETTINGS_UPDATED
from orderflow.models.setting import Setting
from orderflow.services.settings import customer_ordering_enabled
from tests.test_utils_seed import ensure_menu_item, ensure_user
from tests.test_lifecycle_helpers import role_headers, create_order_and_assert


def _archive(client, headers, name, quantity):
    pizza = ensure_menu_item('Margherita Pizza', 1299)
    oid = create_order_and_assert(client, {'customer_name': name, 'items': [{'menu_item_id': pizza.id, 'quantity': quantity}]}, headers)['order_id']
    resp = client.post(f'/orders/{oid}/taken', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_reports_listing_by_date_and_summary(app_context: Flask):
    client = app_context.test_client()
    staff = role_headers('staff')
    first = _archive(client, staff, 'A', 1)
    second = _archive(client, staff, 'B', 3)

    listing = client.get('/reports', headers=staff)
    assert listing.status_code == 200
    assert [r['order_id'] for r in listing.get_json()['data']] == [second['order_id'], first['order_id']]
    assert listing.headers.get('ETag')

    today = datetime.now(timezone.utc).date().isoformat()
    by_date = client.get(f'/reports/date/{today}', headers=staff).get_json()
    assert by_date['date'] == today
    assert by_date['statistics'] == {
        'total_orders': 2,
        'total_amount_cents': 1299 * 4,
        'average_order_cents': 1299 * 2,
    }
    assert len(by_date['data']) == 2

    empty = client.get('/reports/date/2001-01-01', headers=staff).get_json()
    assert empty['statistics']['total_orders'] == 0
    assert empty['statistics']['average_order_cents'] == 0

    summary = client.get('/reports/summary', headers=staff).get_json()
    assert summary['count'] == 1
    assert summary['data'][0]['date'] == today
    assert summary['data'][0]['total_orders'] == 2


def test_reports_require_permission(app_context: Flask):
    client = app_context.test_client()
    assert client.get('/reports', headers=role_headers('kitchen')).status_code == 403
    assert client.get('/reports/date/not-a-date', headers=role_headers('staff')).status_code == 400


def test_customer_ordering_toggle(app_context: Flask):
    client = app_context.test_client()
    events = []
    unsubscribe = current_bus().subscribe(SETTINGS_UPDATED, events.append)
    try:
        assert client.get('/settings/customer-ordering').get_json() == {'enabled': False}
        assert client.post('/settings/customer-ordering/toggle', headers=role_headers('staff')).status_code == 403
        owner = role_headers('owner')
        resp = client.post('/settings/customer-ordering/toggle', headers=owner)
        assert resp.status_code == 200
        assert resp.get_json() == {'enabled': True}
        assert client.get('/settings/customer-ordering').get_json() == {'enabled': True}
        assert client.post('/settings/customer-ordering/toggle', headers=owner).get_json() == {'enabled': False}
    finally:
        unsubscribe()
    assert [e.payload for e in events] == [
        {'key': 'customerOrderingEnabled', 'value': True},
        {'key': 'customerOrderingEnabled', 'value': False},
    ]


def test_settings_update_and_list(app_context: Flask):
    client = app_context.test_client()
    owner = role_headers('owner')
    resp = client.put('/settings/kitchenDisplayRefreshSeconds', json={'value': 30, 'description': 'Board refresh'}, headers=owner)
    assert resp.status_code == 200
    assert resp.get_json() == {'key': 'kitchenDisplayRefreshSeconds', 'value': 30, 'description': 'Board refresh'}
    assert client.put('/settings/kitchenDisplayRefreshSeconds', json={}, headers=owner).status_code == 400
    listing = client.get('/settings', headers=owner).get_json()
    assert listing['data']['kitchenDisplayRefreshSeconds'] == 30
    assert client.get('/settings', headers=role_headers('staff')).status_code == 403


def test_login_and_me(client):
    user = ensure_user('login-owner', role='owner', password='s3cret')
    bad = client.post('/auth/login', json={'username': 'login-owner', 'password': 'nope'})
    assert bad.status_code == 401
    assert client.post('/auth/login', json={'username': 'login-owner'}).status_code == 400
    resp = client.post('/auth/login', json={'username': 'login-owner', 'password': 's3cret'})
    assert resp.status_code == 200
    token = resp.get_json()['access_token']
    me = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.get_json()
    assert body['id'] == user.id
    assert body['role'] == 'owner'
    assert sorted(body['perms']) == sorted(ALL_PERMISSION_CODES)


def test_role_presets():
    assert 'ORDERS.HISTORY' not in permissions_for_role('staff')
    assert permissions_for_role('kitchen') == ['ORDERS.READ', 'ORDERS.STATUS']
    assert set(permissions_for_role('owner')) == set(ALL_PERMISSION_CODES)
    assert permissions_for_role('visitor') == []


def test_customer_ordering_flag_only_takes_booleans(app_context: Flask):
    client = app_context.test_client()
    owner = role_headers('owner')
    resp = client.put('/settings/customerOrderingEnabled', json={'value': 'false'}, headers=owner)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'ValidationFailed'
    assert client.get('/settings/customer-ordering').get_json() == {'enabled': False}
    assert client.put('/settings/customerOrderingEnabled', json={'value': True}, headers=owner).status_code == 200
    assert client.get('/settings/customer-ordering').get_json() == {'enabled': True}


def test_stored_non_boolean_flag_falls_back_to_default(app_context: Flask):
    session = get_db()
    session.add(Setting(key=Setting.KEY_CUSTOMER_ORDERING, value='false'))
    session.commit()
    assert customer_ordering_enabled(session) is False
    assert customer_ordering_enabled(session, default=True) is True
