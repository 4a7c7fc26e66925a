from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, func
from typing import Any, Optional
from .authz import Base


class Setting(Base):
    __tablename__ = 'settings'
    KEY_CUSTOMER_ORDERING = 'customerOrderingEnabled'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Counter(Base):
    """Named monotonically increasing sequence (order numbers)."""
    __tablename__ = 'counters'
    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

__all__ = ['Setting', 'Counter']
