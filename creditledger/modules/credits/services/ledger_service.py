# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/ledger_service.py

Abonos (earn/bonus), reembolsos y resumen de créditos por usuario.

Autor: CreditLedger
Fecha: 2026-10-08
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import Clock, ensure_utc, utcnow
from ..enums import EARN_TYPES, TransactionType
from ..errors import CreditsValidationError, TransactionNotFound
from ..models import CreditTransaction, UserBalance
from ..repositories import TransactionRepository
from ..results import BalanceMutation, CreditsSummary, TransactionView
from .balance_service import BalanceService

logger = logging.getLogger(__name__)

DEFAULT_WELCOME_CREDITS = 10


def to_transaction_view(tx: CreditTransaction) -> TransactionView:
    return TransactionView(
        id=tx.id,
        type=tx.type.value,
        amount=tx.amount,
        balance_after=tx.balance_after,
        description=tx.description,
        related_item_id=tx.related_item_id,
        reservation_id=tx.reservation_id,
        original_transaction_id=tx.original_transaction_id,
        created_at=ensure_utc(tx.created_at),
    )


class LedgerService:
    """Operaciones de abono y consulta sobre el ledger."""

    def __init__(
        self,
        clock: Clock = utcnow,
        balance_service: Optional[BalanceService] = None,
        tx_repo: Optional[TransactionRepository] = None,
        welcome_credits: int = DEFAULT_WELCOME_CREDITS,
    ):
        self.balance_service = balance_service or BalanceService(clock=clock)
        self.tx_repo = tx_repo or TransactionRepository()
        self.welcome_credits = welcome_credits

    async def earn(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        description: str,
        related_item_id: Optional[str] = None,
    ) -> BalanceMutation:
        """Abona créditos; crea la fila de saldo si no existe."""
        if amount <= 0:
            raise CreditsValidationError("El monto debe ser positivo", amount=amount)
        if tx_type not in EARN_TYPES:
            raise CreditsValidationError(
                f"Tipo de abono inválido: {tx_type.value}",
                type=tx_type.value,
            )
        return await self.balance_service.apply_delta(
            session,
            user_id,
            amount,
            tx_type,
            description,
            related_item_id=related_item_id,
            create_if_missing=True,
        )

    async def refund(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        description: str,
        related_item_id: Optional[str] = None,
        original_transaction_id: Optional[str] = None,
    ) -> BalanceMutation:
        """
        Devuelve créditos (tipo REFUND).

        Con `original_transaction_id`, la original debe existir, ser del mismo
        usuario y de tipo SPENT, y la suma de reembolsos contra ella no puede
        superar lo cobrado.

        Raises:
            CreditsValidationError: monto inválido o sobre-reembolso
            TransactionNotFound: original inexistente o de otro usuario
        """
        if amount <= 0:
            raise CreditsValidationError("El monto debe ser positivo", amount=amount)

        if original_transaction_id is not None:
            original = await self.tx_repo.get(session, original_transaction_id)
            if original is None or original.user_id != user_id:
                raise TransactionNotFound(original_transaction_id)
            if original.type is not TransactionType.SPENT:
                raise CreditsValidationError(
                    "Solo se pueden reembolsar transacciones de consumo",
                    original_transaction_id=original_transaction_id,
                    type=original.type.value,
                )
            spent = -original.amount
            # El tope se reserva en la misma transacción que el abono
            if not await self.tx_repo.add_refunded(session, original_transaction_id, amount):
                await session.rollback()
                already_refunded = await self.tx_repo.refunded_total(session, original_transaction_id)
                logger.warning(
                    "Refund rejected: tx=%s spent=%d refunded=%d requested=%d",
                    original_transaction_id, spent, already_refunded, amount,
                )
                raise CreditsValidationError(
                    "El reembolso excede el monto de la transacción original",
                    original_transaction_id=original_transaction_id,
                    original_amount=spent,
                    already_refunded=already_refunded,
                    requested=amount,
                )

        return await self.balance_service.apply_delta(
            session,
            user_id,
            amount,
            TransactionType.REFUND,
            description,
            related_item_id=related_item_id,
            original_transaction_id=original_transaction_id,
            create_if_missing=True,
        )

    async def get_summary(
        self,
        session: AsyncSession,
        user_id: str,
        transaction_limit: int = 10,
    ) -> CreditsSummary:
        """Saldo, contadores y últimas transacciones (resumen en cero si no hay fila)."""
        balance: Optional[UserBalance] = await self.balance_service.get_balance(session, user_id)
        if balance is None:
            return CreditsSummary(user_id=user_id)
        txs = await self.tx_repo.list_for_user(session, user_id, limit=transaction_limit)
        return CreditsSummary(
            user_id=user_id,
            balance=balance.balance,
            total_earned=balance.total_earned,
            total_spent=balance.total_spent,
            recent_transactions=[to_transaction_view(tx) for tx in txs],
        )

    async def ensure_welcome_credits(self, session: AsyncSession, user_id: str) -> UserBalance:
        """Crea el saldo del usuario con el regalo de bienvenida (solo la primera vez)."""
        return await self.balance_service.ensure_balance(
            session,
            user_id,
            initial_grant=self.welcome_credits,
        )


__all__ = ["DEFAULT_WELCOME_CREDITS", "LedgerService", "to_transaction_view"]

# Fin del archivo creditledger/modules/credits/services/ledger_service.py
