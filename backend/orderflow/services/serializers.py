from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from orderflow.models.order import Order, Report

# Fields an unauthenticated display may see: no pricing, no line items.
PUBLIC_ORDER_FIELDS = ('order_id', 'customer_name', 'status', 'created_at', 'updated_at')


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat().replace('+00:00', 'Z')


def _items_json(items):
    return [
        {
            'menu_item_id': i['menu_item_id'],
            'name': i['name'],
            'unit_price_cents': i['unit_price_cents'],
            'unit_price': i['unit_price_cents'] / 100,
            'quantity': i['quantity'],
        }
        for i in items or []
    ]


def order_json(o: Order) -> Dict[str, Any]:
    return {
        'id': o.id,
        'order_id': o.order_id,
        'customer_name': o.customer_name,
        'items': _items_json(o.items),
        'total_cents': o.total_cents,
        'total_amount': o.total_cents / 100,
        'status': o.status,
        'order_type': o.order_type,
        'created_by': o.created_by,
        'notes': o.notes,
        'revision': o.revision,
        'created_at': iso(o.created_at),
        'updated_at': iso(o.updated_at),
    }


def public_order_json(data: Dict[str, Any]) -> Dict[str, Any]:
    """Project an order dict (or event payload) onto the public display fields."""
    return {k: data[k] for k in PUBLIC_ORDER_FIELDS if k in data}


def report_json(r: Report) -> Dict[str, Any]:
    return {
        'id': r.id,
        'order_id': r.order_id,
        'customer_name': r.customer_name,
        'items': _items_json(r.items),
        'total_cents': r.total_cents,
        'total_amount': r.total_cents / 100,
        'status': r.status,
        'order_type': r.order_type,
        'created_by': r.created_by,
        'taken_by': r.taken_by,
        'notes': r.notes,
        'original_created_at': iso(r.original_created_at),
        'taken_at': iso(r.taken_at),
    }
