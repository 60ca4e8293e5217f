# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/pricing.py

Consulta de precios de items cobrables.

El ledger cobra con `get_item_cost(item_id)`; `list_item_costs()` alimenta
la consulta de precios del facade. La tabla la administra un colaborador
externo (BD o configuración).

Autor: CreditLedger
Fecha: 2026-10-07
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from creditledger.shared.utils.datetime_helpers import utcnow
from .models import PriceableItem
from .repositories import PriceableItemRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ItemCost:
    item_id: str
    name: str
    cost: int
    is_active: bool = True


@runtime_checkable
class PricingLookup(Protocol):
    async def get_item_cost(self, item_id: str) -> Optional[ItemCost]:
        ...

    async def list_item_costs(self) -> list[ItemCost]:
        ...


class StaticPricingLookup:
    """Tabla de precios en memoria (configuración o tests)."""

    def __init__(self, items: Mapping[str, ItemCost]):
        self._items = dict(items)

    @classmethod
    def from_table(cls, table: Mapping[str, Mapping]) -> "StaticPricingLookup":
        """
        Construye desde el formato de settings.item_costs:
        {"flux-dev": {"name": "Flux Dev", "cost": 2, "is_active": True}, ...}
        """
        return cls({
            item_id: ItemCost(
                item_id=item_id,
                name=entry.get("name", item_id),
                cost=int(entry["cost"]),
                is_active=bool(entry.get("is_active", True)),
            )
            for item_id, entry in table.items()
        })

    def set_item(self, item: ItemCost) -> None:
        self._items[item.item_id] = item

    async def get_item_cost(self, item_id: str) -> Optional[ItemCost]:
        return self._items.get(item_id)

    async def list_item_costs(self) -> list[ItemCost]:
        return [self._items[key] for key in sorted(self._items)]


class DbPricingLookup:
    """Lee la tabla item_costs con una sesión propia por consulta."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._repo = PriceableItemRepository()

    async def get_item_cost(self, item_id: str) -> Optional[ItemCost]:
        async with self._session_factory() as session:
            row = await self._repo.get(session, item_id)
        if row is None:
            return None
        return _to_item_cost(row)

    async def list_item_costs(self) -> list[ItemCost]:
        async with self._session_factory() as session:
            rows = await self._repo.list_all(session)
        return [_to_item_cost(row) for row in rows]


def _to_item_cost(row: PriceableItem) -> ItemCost:
    return ItemCost(
        item_id=row.item_id,
        name=row.name,
        cost=row.cost,
        is_active=row.is_active,
    )


async def seed_item_costs(
    session: AsyncSession,
    table: Mapping[str, Mapping],
    now: Optional[datetime] = None,
) -> int:
    """
    Inserta los items de `table` que no existan todavía (idempotente).
    Los items existentes no se modifican.

    Returns:
        Número de items insertados
    """
    now = now or utcnow()
    repo = PriceableItemRepository()
    existing = {item.item_id for item in await repo.list_all(session)}

    inserted = 0
    for item_id, entry in table.items():
        if item_id in existing:
            continue
        session.add(PriceableItem(
            item_id=item_id,
            name=entry.get("name", item_id),
            cost=int(entry["cost"]),
            is_active=bool(entry.get("is_active", True)),
            created_at=now,
            updated_at=now,
        ))
        inserted += 1

    await session.commit()
    logger.info("Item costs seeded: inserted=%d existing=%d", inserted, len(existing))
    return inserted


__all__ = [
    "ItemCost",
    "PricingLookup",
    "StaticPricingLookup",
    "DbPricingLookup",
    "seed_item_costs",
]

# Fin del archivo creditledger/modules/credits/pricing.py
