# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/balance_service.py

Balance Store: lectura del saldo, creación perezosa de la fila y la
primitiva atómica apply_delta (único camino que modifica el saldo).

Autor: CreditLedger
Fecha: 2026-10-07
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import Clock, utcnow
from ..enums import TransactionType
from ..models import UserBalance
from ..monitoring.prometheus_exporter import observe_ledger_amount
from ..repositories import BalanceRepository
from ..results import BalanceMutation

logger = logging.getLogger(__name__)


class BalanceService:
    """
    Servicio del saldo por usuario.

    `apply_delta` y `ensure_balance` hacen commit al terminar
    (con `commit=False` el llamador controla la transacción).
    """

    def __init__(
        self,
        clock: Clock = utcnow,
        balance_repo: Optional[BalanceRepository] = None,
    ):
        self.clock = clock
        self.balance_repo = balance_repo or BalanceRepository()

    async def get_balance(self, session: AsyncSession, user_id: str) -> Optional[UserBalance]:
        """Saldo del usuario o None si nunca tuvo movimientos."""
        return await self.balance_repo.get(session, user_id)

    async def ensure_balance(
        self,
        session: AsyncSession,
        user_id: str,
        initial_grant: int = 0,
        *,
        grant_description: str = "Créditos de bienvenida",
        commit: bool = True,
    ) -> UserBalance:
        """
        Crea la fila de saldo si no existe.

        Si la fila se crea y `initial_grant > 0`, el regalo se registra como
        transacción BONUS en la misma transacción de BD. Sobre un usuario
        existente es solo una lectura.
        """
        if initial_grant < 0:
            raise ValueError("initial_grant must be >= 0")

        now = self.clock()
        row, created = await self.balance_repo.get_or_create(session, user_id, now)

        if created and initial_grant > 0:
            await self.balance_repo.apply_delta(
                session,
                user_id=user_id,
                amount=initial_grant,
                tx_type=TransactionType.BONUS,
                now=now,
                description=grant_description,
            )
            row = await self.balance_repo.get(session, user_id)  # type: ignore[assignment]
            logger.info("Initial grant of %d credits applied to user %s", initial_grant, user_id)

        if commit:
            await session.commit()
        if created and initial_grant > 0:
            observe_ledger_amount(TransactionType.BONUS.value, initial_grant)
        return row

    async def apply_delta(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        description: Optional[str] = None,
        *,
        related_item_id: Optional[str] = None,
        reservation_id: Optional[str] = None,
        original_transaction_id: Optional[str] = None,
        tx_metadata: Optional[dict[str, Any]] = None,
        create_if_missing: bool = False,
        commit: bool = True,
    ) -> BalanceMutation:
        """
        Mutación atómica: saldo + contador de vida + fila del ledger.

        Raises:
            UserNotFound: sin fila de saldo y create_if_missing=False
            InsufficientCredits: un cargo dejaría el saldo negativo
        """
        now = self.clock()
        try:
            if create_if_missing:
                await self.balance_repo.get_or_create(session, user_id, now)

            new_balance, tx_id = await self.balance_repo.apply_delta(
                session,
                user_id=user_id,
                amount=amount,
                tx_type=tx_type,
                now=now,
                description=description,
                related_item_id=related_item_id,
                reservation_id=reservation_id,
                original_transaction_id=original_transaction_id,
                tx_metadata=tx_metadata,
            )
            if commit:
                await session.commit()
        except Exception:
            await session.rollback()
            raise

        observe_ledger_amount(tx_type.value, amount)
        logger.info(
            "Balance updated: user=%s type=%s amount=%+d balance=%d tx=%s",
            user_id, tx_type.value, amount, new_balance, tx_id,
        )
        return BalanceMutation(transaction_id=tx_id, new_balance=new_balance)


__all__ = ["BalanceService"]

# Fin del archivo creditledger/modules/credits/services/balance_service.py
