# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/spend_service.py

Cargo directo (sin reserva) para operaciones síncronas cuyo resultado
se conoce dentro de la misma llamada. No hay cancel ni rollback posterior.

Autor: CreditLedger
Fecha: 2026-10-08
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import Clock, utcnow
from ..enums import TransactionType
from ..errors import InsufficientCredits, ItemNotFound, UserNotFound
from ..monitoring.prometheus_exporter import observe_spend
from ..pricing import PricingLookup
from ..results import SpendResult
from .balance_service import BalanceService
from .reservation_service import resolve_item_cost

logger = logging.getLogger(__name__)


class SpendService:
    """Cargo inmediato contra el saldo."""

    def __init__(
        self,
        pricing: PricingLookup,
        clock: Clock = utcnow,
        balance_service: Optional[BalanceService] = None,
    ):
        self.pricing = pricing
        self.balance_service = balance_service or BalanceService(clock=clock)

    async def spend_direct(
        self,
        session: AsyncSession,
        user_id: str,
        item_id: str,
        related_item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SpendResult:
        """
        Raises:
            ItemNotFound, UserNotFound, InsufficientCredits
        """
        try:
            item = await resolve_item_cost(self.pricing, item_id)
        except ItemNotFound:
            observe_spend("item_not_found")
            raise

        balance = await self.balance_service.get_balance(session, user_id)
        if balance is None:
            observe_spend("user_not_found")
            raise UserNotFound(user_id)
        if balance.balance < item.cost:
            observe_spend("insufficient_credits")
            logger.warning(
                "Direct spend rejected: user=%s item=%s required=%d available=%d",
                user_id, item_id, item.cost, balance.balance,
            )
            raise InsufficientCredits(required=item.cost, available=balance.balance)

        if item.cost == 0:
            observe_spend("spent")
            logger.debug("Direct spend of free item %s for user %s: no ledger entry", item_id, user_id)
            return SpendResult(transaction_id=None, new_balance=balance.balance, amount_spent=0)

        try:
            mutation = await self.balance_service.apply_delta(
                session,
                user_id,
                -item.cost,
                TransactionType.SPENT,
                description or f"Uso de {item.name}",
                related_item_id=related_item_id,
                tx_metadata={"item_id": item_id},
            )
        except InsufficientCredits:
            # El saldo bajó entre la lectura y el UPDATE con guarda
            observe_spend("insufficient_credits")
            raise

        observe_spend("spent")
        return SpendResult(
            transaction_id=mutation.transaction_id,
            new_balance=mutation.new_balance,
            amount_spent=item.cost,
        )


__all__ = ["SpendService"]

# Fin del archivo creditledger/modules/credits/services/spend_service.py
