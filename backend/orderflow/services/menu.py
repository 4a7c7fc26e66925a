from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
from sqlalchemy import select
from orderflow.errors import NotFound
from orderflow.models.menu_item import MenuItem


@dataclass(frozen=True)
class ResolvedMenuItem:
    id: int
    name: str
    price_cents: int
    is_available: bool


MenuLookup = Callable[[int], ResolvedMenuItem]


def menu_lookup_for(session) -> MenuLookup:
    """Build a resolver bound to ``session``; raises NotFound for unknown ids."""
    def resolve(menu_item_id: int) -> ResolvedMenuItem:
        item = session.execute(select(MenuItem).where(MenuItem.id==menu_item_id)).scalar_one_or_none()
        if not item:
            raise NotFound(f'Menu item not found: {menu_item_id}')
        return ResolvedMenuItem(id=item.id, name=item.name, price_cents=item.price_cents, is_available=bool(item.is_available))
    return resolve
