import pytest
from flask import Flask
from orderflow.events import current_bus
from orderflow.events.bus import ORDER_EVENTS, ORDER_CREATED, ORDER_UPDATED, ORDER_READY, ORDER_TAKEN, ORDER_DELETED, SETTINGS_UPDATED
from orderflow.events.stream import DisplayStream
from orderflow.routes.orders import _public_payload
from tests.test_utils_seed import ensure_menu_item, ensure_user, set_customer_ordering
from tests.test_lifecycle_helpers import role_headers, jwt_headers, create_order_and_assert, assert_transition


def _pizza_payload(name='Ann', quantity=2, **extra):
    pizza = ensure_menu_item('Margherita Pizza', 1299, category='Pizza')
    return {'customer_name': name, 'items': [{'menu_item_id': pizza.id, 'quantity': quantity}], **extra}


@pytest.fixture()
def recorded(app_context: Flask):
    events = []
    bus = current_bus()
    unsubscribers = [bus.subscribe(t, events.append) for t in ORDER_EVENTS]
    yield events
    for unsubscribe in unsubscribers:
        unsubscribe()


def test_staff_creates_order(app_context: Flask):
    client = app_context.test_client()
    staff = ensure_user('api-staff')
    headers = role_headers('staff', 'api-staff')
    body = create_order_and_assert(client, _pizza_payload(notes='extra cheese'), headers)
    assert body['order_id'] == 'ORD-00001'
    assert body['status'] == 'PENDING'
    assert body['order_type'] == 'STAFF'
    assert body['total_cents'] == 2598
    assert body['total_amount'] == 25.98
    assert body['created_by'] == staff.id
    assert body['notes'] == 'extra cheese'
    assert body['items'][0]['unit_price'] == 12.99


def test_customer_ordering_disabled_is_forbidden(app_context: Flask):
    client = app_context.test_client()
    resp = client.post('/orders', json=_pizza_payload())
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Customer ordering is currently disabled'


def test_anonymous_customer_order_when_enabled(app_context: Flask):
    client = app_context.test_client()
    set_customer_ordering(True)
    body = create_order_and_assert(client, _pizza_payload('Walk-in'))
    assert body['order_type'] == 'CUSTOMER'
    assert body['created_by'] is None


def test_anonymous_staff_order_requires_token(app_context: Flask):
    client = app_context.test_client()
    resp = client.post('/orders', json=_pizza_payload(order_type='STAFF'))
    assert resp.status_code == 401


def test_kitchen_cannot_create_staff_order(app_context: Flask):
    client = app_context.test_client()
    resp = client.post('/orders', json=_pizza_payload(), headers=role_headers('kitchen'))
    assert resp.status_code == 403


def test_create_errors_carry_kind(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    sold_out = ensure_menu_item('Sold Out Soup', 500, is_available=False)
    resp = client.post('/orders', json={'customer_name': 'Ann', 'items': [{'menu_item_id': sold_out.id}]}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'Unavailable'
    resp = client.post('/orders', json={'customer_name': 'Ann', 'items': [{'menu_item_id': 876543}]}, headers=headers)
    assert resp.status_code == 404
    assert resp.get_json()['error']['kind'] == 'NotFound'
    resp = client.post('/orders', json={'customer_name': 'Ann', 'items': []}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'ValidationFailed'
    resp = client.post('/orders', json=_pizza_payload(order_type='TAKEAWAY'), headers=headers)
    assert resp.status_code == 400


def test_list_requires_permission(app_context: Flask):
    client = app_context.test_client()
    assert client.get('/orders').status_code == 401
    user = ensure_user('no-perms')
    resp = client.get('/orders', headers=jwt_headers(user.id, []))
    assert resp.status_code == 403
    assert resp.get_json()['error']['status'] == 403


def test_list_filters_pagination_and_etag(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    first = create_order_and_assert(client, _pizza_payload('A'), headers)
    second = create_order_and_assert(client, _pizza_payload('B'), headers)
    client.patch(f"/orders/{first['order_id']}/status", json={'status': 'READY'}, headers=headers)

    resp = client.get('/orders?limit=1', headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert [o['order_id'] for o in body['data']] == [second['order_id']]
    assert body['pagination'] == {'total': 2, 'limit': 1, 'offset': 0, 'returned': 1}

    ready = client.get('/orders?status=READY', headers=headers).get_json()
    assert [o['order_id'] for o in ready['data']] == [first['order_id']]
    bad = client.get('/orders?status=DONE', headers=headers)
    assert bad.status_code == 400
    assert bad.get_json()['error']['kind'] == 'InvalidStatus'

    listing = client.get('/orders', headers=headers)
    etag = listing.headers.get('ETag')
    assert etag
    again = client.get('/orders', headers={**headers, 'If-None-Match': etag})
    assert again.status_code == 304
    lm = listing.headers.get('Last-Modified')
    assert lm
    ims = client.get('/orders', headers={**headers, 'If-Modified-Since': lm})
    assert ims.status_code == 304


def test_list_date_range(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    create_order_and_assert(client, _pizza_payload(), headers)
    old = client.get('/orders?end_date=2000-01-01', headers=headers).get_json()
    assert old['data'] == []
    assert client.get('/orders?start_date=2030-01-02&end_date=2030-01-01', headers=headers).status_code == 400
    assert client.get('/orders?start_date=yesterday', headers=headers).status_code == 400


def test_active_snapshot_is_public_and_oldest_first(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    first = create_order_and_assert(client, _pizza_payload('A'), headers)
    second = create_order_and_assert(client, _pizza_payload('B'), headers)
    resp = client.get('/orders/active')
    assert resp.status_code == 200
    rows = resp.get_json()['data']
    assert [o['order_id'] for o in rows] == [first['order_id'], second['order_id']]
    assert set(rows[0]) == {'order_id', 'customer_name', 'status', 'created_at', 'updated_at'}
    again = client.get('/orders/active', headers={'If-None-Match': resp.headers['ETag']})
    assert again.status_code == 304


def test_board_buckets(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    ids = [create_order_and_assert(client, _pizza_payload(n), headers)['order_id'] for n in ('A', 'B', 'C', 'D')]
    client.patch(f'/orders/{ids[1]}/status', json={'status': 'STARTED'}, headers=headers)
    client.patch(f'/orders/{ids[2]}/status', json={'status': 'COMPLETED'}, headers=headers)
    client.patch(f'/orders/{ids[3]}/status', json={'status': 'READY'}, headers=headers)
    body = client.get('/orders/board').get_json()
    assert body['counts'] == {'pending': 1, 'preparing': 2, 'ready': 1}
    assert [o['order_id'] for o in body['preparing']] == [ids[1], ids[2]]
    assert body['ready'][0]['order_id'] == ids[3]


def test_stream_endpoint_subscribes_and_releases(client, app_instance):
    bus = app_instance.extensions['order_events']
    before = bus.subscriber_count()
    resp = client.get('/orders/stream', buffered=False)
    assert resp.status_code == 200
    assert resp.mimetype == 'text/event-stream'
    assert resp.headers['Cache-Control'] == 'no-cache'
    assert bus.subscriber_count() == before + len(ORDER_EVENTS) + 1
    resp.close()
    assert bus.subscriber_count() == before


def test_get_and_head_single_order(app_context: Flask):
    client = app_context.test_client()
    headers = role_headers('staff')
    created = create_order_and_assert(client, _pizza_payload(), headers)
    url = f"/orders/{created['order_id']}"
    resp = client.get(url, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['order_id'] == created['order_id']
    etag = resp.headers['ETag']
    head = client.head(url, headers=headers)
    assert head.status_code == 200
    assert head.data == b''
    assert head.headers['ETag'] == etag
    assert client.get(url, headers={**headers, 'If-None-Match': etag}).status_code == 304
    missing = client.get('/orders/ORD-99999', headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()['error']['kind'] == 'NotFound'


def test_kitchen_moves_orders_through_the_flow(app_context: Flask, recorded):
    client = app_context.test_client()
    created = create_order_and_assert(client, _pizza_payload(), role_headers('staff'))
    oid = created['order_id']
    kitchen = role_headers('kitchen')
    assert_transition(client, f'/orders/{oid}/advance', kitchen, 200, 'STARTED')
    assert_transition(client, f'/orders/{oid}/advance', kitchen, 200, 'COMPLETED')
    assert_transition(client, f'/orders/{oid}/advance', kitchen, 200, 'READY')
    resp = assert_transition(client, f'/orders/{oid}/advance', kitchen, 400)
    assert resp.get_json()['error']['kind'] == 'InvalidStatus'
    reverted = client.patch(f'/orders/{oid}/status', json={'status': 'PENDING'}, headers=kitchen)
    assert reverted.status_code == 200 and reverted.get_json()['status'] == 'PENDING'
    bad = client.patch(f'/orders/{oid}/status', json={'status': 'SERVED'}, headers=kitchen)
    assert bad.status_code == 400
    assert [e.type for e in recorded] == [
        ORDER_CREATED, ORDER_UPDATED, ORDER_UPDATED, ORDER_UPDATED, ORDER_READY, ORDER_UPDATED,
    ]


def test_taken_archives_order(app_context: Flask, recorded):
    client = app_context.test_client()
    taker = ensure_user('taker-staff')
    staff = role_headers('staff', 'taker-staff')
    created = create_order_and_assert(client, _pizza_payload(), staff)
    oid = created['order_id']
    assert client.post(f'/orders/{oid}/taken', headers=role_headers('kitchen')).status_code == 403
    resp = client.post(f'/orders/{oid}/taken', headers=staff)
    assert resp.status_code == 200
    report = resp.get_json()
    assert report['order_id'] == oid
    assert report['taken_by'] == taker.id
    assert report['total_amount'] == 25.98
    assert client.get(f'/orders/{oid}', headers=staff).status_code == 404
    assert client.post(f'/orders/{oid}/taken', headers=staff).status_code == 404
    assert recorded[-1].type == ORDER_TAKEN


def test_delete_order(app_context: Flask, recorded):
    client = app_context.test_client()
    staff = role_headers('staff')
    oid = create_order_and_assert(client, _pizza_payload(), staff)['order_id']
    assert client.delete(f'/orders/{oid}', headers=role_headers('kitchen')).status_code == 403
    resp = client.delete(f'/orders/{oid}', headers=staff)
    assert resp.status_code == 200
    assert resp.get_json() == {'order_id': oid, 'deleted': True}
    assert recorded[-1].type == ORDER_DELETED
    assert recorded[-1].payload == {'order_id': oid}
    assert client.get('/reports', headers=staff).get_json()['data'] == []


def test_stats_and_history(app_context: Flask):
    from datetime import datetime, timezone
    client = app_context.test_client()
    staff = role_headers('staff')
    owner = role_headers('owner')
    first = create_order_and_assert(client, _pizza_payload('A', quantity=1), staff)
    create_order_and_assert(client, _pizza_payload('B', quantity=2), staff)
    client.patch(f"/orders/{first['order_id']}/status", json={'status': 'READY'}, headers=staff)

    stats = client.get('/orders/stats', headers=staff).get_json()
    assert stats['status_count'] == {'READY': 1, 'PENDING': 1}
    assert stats['today_orders'] == 2
    assert stats['today_revenue_cents'] == 1299 * 3
    assert stats['total_revenue_cents'] == 1299 * 3

    today = datetime.now(timezone.utc).date().isoformat()
    assert client.get(f'/orders/history?date={today}', headers=staff).status_code == 403
    history = client.get(f'/orders/history?date={today}', headers=owner).get_json()
    assert history['date'] == today
    assert len(history['orders']) == 2
    assert history['stats']['total_orders'] == 2
    assert history['stats']['average_order_cents'] == round(1299 * 3 / 2)
    assert history['stats']['completed_orders'] == 1
    assert history['stats']['status_breakdown'] == {'READY': 1, 'PENDING': 1}
    assert client.get('/orders/history?date=soon', headers=owner).status_code == 400


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'ok'


def test_anonymous_display_only_sees_the_customer_ordering_setting(app_context: Flask):
    client = app_context.test_client()
    owner = role_headers('owner')
    display = DisplayStream(current_bus(), ORDER_EVENTS + (SETTINGS_UPDATED,), projector=_public_payload)
    try:
        assert client.put('/settings/wifiPassword', json={'value': 'hunter2'}, headers=owner).status_code == 200
        assert client.post('/settings/customer-ordering/toggle', headers=owner).status_code == 200
        frame = display.poll(timeout=0)
        assert display.poll(timeout=0) is None
    finally:
        display.close()
    assert frame == 'event: settings-updated\ndata: {"key":"customerOrderingEnabled","value":true}\n\n'


def test_staff_display_sees_every_setting(app_context: Flask):
    client = app_context.test_client()
    display = DisplayStream(current_bus(), (SETTINGS_UPDATED,))
    try:
        client.put('/settings/kitchenDisplayRefreshSeconds', json={'value': 30}, headers=role_headers('owner'))
        frame = display.poll(timeout=0)
    finally:
        display.close()
    assert '"key":"kitchenDisplayRefreshSeconds"' in frame
