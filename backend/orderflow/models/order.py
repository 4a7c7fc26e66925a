from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, ForeignKey, DateTime, JSON, Text
from typing import Any, Dict, Iterable, List, Optional

from .authz import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_total_cents(items: Iterable[Dict[str, Any]]) -> int:
    """Sum of unit_price_cents * quantity over the denormalized line items."""
    return sum(int(i['unit_price_cents']) * int(i['quantity']) for i in items)


class Order(Base):
    __tablename__ = 'orders'
    # Lifecycle status constants
    STATUS_PENDING = 'PENDING'
    STATUS_STARTED = 'STARTED'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_READY = 'READY'
    ALL_STATUSES = (
        STATUS_PENDING,
        STATUS_STARTED,
        STATUS_COMPLETED,
        STATUS_READY,
    )
    TYPE_STAFF = 'STAFF'
    TYPE_CUSTOMER = 'CUSTOMER'
    ALL_TYPES = (TYPE_STAFF, TYPE_CUSTOMER)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING, index=True)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_STAFF, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # bumped on every write; archive compares it to detect a concurrent update
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def recalculate_total(self) -> int:
        self.total_cents = calculate_total_cents(self.items or [])
        return self.total_cents


class Report(Base):
    """Immutable archive of an order that was marked taken."""
    __tablename__ = 'reports'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    taken_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    taken_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
