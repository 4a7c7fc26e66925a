from __future__ import annotations
import logging
from flask import Blueprint, request, abort, current_app, Response, stream_with_context, make_response, jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from orderflow import get_db
from orderflow.decorators.auth import require_permissions
from orderflow.events import current_bus
from orderflow.events.bus import ORDER_EVENTS, SETTINGS_UPDATED
from orderflow.events.stream import DisplayStream
from orderflow.models.order import Order
from orderflow.models.setting import Setting
from orderflow.services.order_repository import OrderRepository
from orderflow.services.orders import OrderService
from orderflow.services.policy import current_actor_id, optional_actor_id, has_permissions
from orderflow.services.projection import DisplayProjection
from orderflow.services.serializers import order_json, public_order_json, report_json, iso
from orderflow.services.settings import customer_ordering_enabled
from orderflow.services.status_engine import ORDER_FLOW
from orderflow.utils.filters import parse_filters, parse_range, parse_day
from orderflow.utils.listing import (
    apply_pagination, make_cached_list_response, handle_conditional, compute_etag,
    canonicalize_timestamp, latest_timestamp,
)
from orderflow.utils.validation import validate_choice

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__)


def get_order_service() -> OrderService:
    return OrderService(OrderRepository(get_db()), current_bus())


@orders_bp.post('/orders')
def create_order():
    """Staff (token) or customer self-order (anonymous) creation."""
    data = request.json or {}
    actor_id = optional_actor_id()
    order_type = data.get('order_type') or (Order.TYPE_STAFF if actor_id is not None else Order.TYPE_CUSTOMER)
    order_type = validate_choice(order_type, Order.ALL_TYPES, 'order_type')
    if order_type == Order.TYPE_STAFF and actor_id is None:
        abort(401, description='Staff orders require authentication')
    if order_type == Order.TYPE_STAFF and not has_permissions('ORDERS.CREATE'):
        abort(403, description='Missing permission: ORDERS.CREATE')
    if order_type == Order.TYPE_CUSTOMER:
        default = current_app.config['CUSTOMER_ORDERING_DEFAULT']
        if not customer_ordering_enabled(get_db(), default):
            abort(403, description='Customer ordering is currently disabled')
    order = get_order_service().create(
        data.get('customer_name'),
        data.get('items'),
        order_type,
        notes=data.get('notes'),
        created_by=actor_id,
    )
    return order_json(order), 201


@orders_bp.get('/orders')
@require_permissions('ORDERS.READ')
def list_orders():
    service = get_order_service()
    filters = parse_filters({
        'status': {'coerce': ORDER_FLOW.validate},
        'order_type': {'validate': lambda v: v in Order.ALL_TYPES},
    }, request.args)
    start, end = parse_range(request.args)
    q = service.repository.filtered_query(filters.get('status'), filters.get('order_type'), start, end)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    rows_json = [order_json(o) for o in rows]
    latest_ts = latest_timestamp(o.updated_at for o in rows)
    resp, etag = make_cached_list_response(rows_json, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    return resp


@orders_bp.get('/orders/active')
def list_active_orders():
    """Public board snapshot: active orders oldest first, minimal fields only."""
    rows = get_order_service().list_active_for_display()
    resp, etag = make_cached_list_response(rows, len(rows), len(rows), 0, None, key='order_id')
    cond = handle_conditional(etag, None)
    if cond:
        return cond
    return resp


@orders_bp.get('/orders/board')
def board():
    projection = DisplayProjection(get_order_service().list_active_for_display())
    buckets = projection.buckets()
    return {
        'counts': {name: len(rows) for name, rows in buckets.items()},
        **buckets,
    }


def _public_payload(event):
    if event.type in ORDER_EVENTS:
        return public_order_json(event.payload)
    if event.payload.get('key') == Setting.KEY_CUSTOMER_ORDERING:
        return event.payload
    return None


@orders_bp.get('/orders/stream')
def stream():
    """Server-Sent Events feed of order (and settings) events.

    Anonymous displays receive the public projection of each order payload and, of
    the settings events, only the customer-ordering flag.
    """
    verify_jwt_in_request(optional=True)
    authenticated = get_jwt_identity() is not None
    display = DisplayStream(
        current_bus(),
        ORDER_EVENTS + (SETTINGS_UPDATED,),
        maxsize=current_app.config['EVENT_STREAM_QUEUE_SIZE'],
        projector=None if authenticated else _public_payload,
    )
    heartbeat = float(current_app.config['EVENT_STREAM_HEARTBEAT'])
    logger.info('Display stream opened (authenticated=%s)', authenticated)
    resp = Response(stream_with_context(display.messages(heartbeat)), mimetype='text/event-stream')
    resp.headers['Cache-Control'] = 'no-cache'
    resp.headers['X-Accel-Buffering'] = 'no'
    resp.call_on_close(display.close)
    return resp


@orders_bp.get('/orders/stats')
@require_permissions('ORDERS.STATS')
def order_stats():
    return get_order_service().stats()


@orders_bp.get('/orders/history')
@require_permissions('ORDERS.HISTORY')
def order_history():
    day = parse_day(request.args.get('date'))
    result = get_order_service().history(day)
    return {
        'date': day.isoformat(),
        'orders': [order_json(o) for o in result['orders']],
        'stats': result['stats'],
    }


@orders_bp.route('/orders/<order_id>', methods=['GET', 'HEAD'])
@require_permissions('ORDERS.READ')
def get_order(order_id: str):
    o = get_order_service().get(order_id)
    latest_ts = canonicalize_timestamp(o.updated_at) if o.updated_at else None
    etag = compute_etag([(o.order_id, o.revision)], 1, 1, 0, iso(latest_ts) or '')
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    resp = make_response(jsonify(order_json(o)))
    resp.headers['ETag'] = etag
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@orders_bp.patch('/orders/<order_id>/status')
@require_permissions('ORDERS.STATUS')
def set_order_status(order_id: str):
    data = request.json or {}
    o = get_order_service().set_status(order_id, data.get('status'))
    return order_json(o)


@orders_bp.post('/orders/<order_id>/advance')
@require_permissions('ORDERS.STATUS')
def advance_order(order_id: str):
    o = get_order_service().advance(order_id)
    return order_json(o)


@orders_bp.post('/orders/<order_id>/taken')
@require_permissions('ORDERS.ARCHIVE')
def mark_taken(order_id: str):
    report = get_order_service().archive(order_id, current_actor_id())
    return report_json(report)


@orders_bp.delete('/orders/<order_id>')
@require_permissions('ORDERS.DELETE')
def delete_order(order_id: str):
    get_order_service().delete(order_id)
    return {'order_id': order_id, 'deleted': True}
