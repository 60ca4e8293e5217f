# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/repositories.py

Repositorios para el sistema de créditos.

Primitivas atómicas sobre el almacenamiento:
- BalanceRepository.apply_delta: único punto que escribe balance/contadores
  (UPDATE ... SET balance = balance + :delta, con guarda de no-negativo)
- ReservationRepository.transition: compare-and-set de estado
  (UPDATE ... WHERE id = :id AND status = 'pending', decide por rowcount)
- TransactionRepository.add_refunded: tope de reembolso acumulado
  (UPDATE ... WHERE refunded_amount + :amt <= -amount)

Ningún método hace commit: la frontera transaccional la define el servicio.

Autor: CreditLedger
Fecha: 2026-10-07
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional, Sequence

from sqlalchemy import case, delete, func, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .enums import ReservationStatus, TransactionType
from .errors import InsufficientCredits, UserNotFound
from .models import CreditReservation, CreditTransaction, PriceableItem, UserBalance

logger = logging.getLogger(__name__)

EXPIRED_SUFFIX = " (expirada automáticamente)"


def counter_deltas(tx_type: TransactionType, amount: int) -> tuple[int, int]:
    """
    Devuelve (delta_total_earned, delta_total_spent) para un movimiento.

    Valida el signo del monto contra el tipo de transacción.
    """
    match tx_type:
        case TransactionType.SPENT:
            if amount >= 0:
                raise ValueError("spent amount must be negative")
            return 0, -amount
        case TransactionType.EARNED | TransactionType.BONUS | TransactionType.REFUND:
            if amount <= 0:
                raise ValueError(f"{tx_type.value} amount must be positive")
            return amount, 0
    raise ValueError(f"unknown transaction type: {tx_type!r}")


class BalanceRepository:
    """Repositorio del saldo por usuario (user_credits)."""

    async def get(self, session: AsyncSession, user_id: str) -> Optional[UserBalance]:
        stmt = (
            select(UserBalance)
            .where(UserBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        session: AsyncSession,
        user_id: str,
        now: datetime,
    ) -> tuple[UserBalance, bool]:
        """
        Obtiene o crea la fila de saldo (0/0/0).

        INSERT ... ON CONFLICT DO NOTHING: si otro proceso insertó primero,
        el rowcount es 0 y se relee la fila existente.

        Returns:
            Tuple (balance, created: bool)
        """
        existing = await self.get(session, user_id)
        if existing is not None:
            return existing, False

        dialect = session.get_bind().dialect.name
        insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = (
            insert_fn(UserBalance.__table__)
            .values(
                user_id=user_id,
                balance=0,
                total_earned=0,
                total_spent=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        result = await session.execute(stmt)
        created = result.rowcount == 1
        if created:
            logger.info("Balance row created for user %s", user_id)
        else:
            logger.debug("Balance row already exists for user %s (concurrent create)", user_id)

        row = await self.get(session, user_id)
        if row is None:
            raise RuntimeError(f"Failed to get or create balance for user {user_id}")
        return row, created

    async def apply_delta(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        now: datetime,
        description: Optional[str] = None,
        related_item_id: Optional[str] = None,
        reservation_id: Optional[str] = None,
        original_transaction_id: Optional[str] = None,
        tx_metadata: Optional[dict[str, Any]] = None,
    ) -> tuple[int, str]:
        """
        Aplica un movimiento firmado al saldo y agrega la fila al ledger.

        Todo ocurre en la transacción de la sesión: o se aplican el UPDATE
        y el INSERT, o ninguno (el servicio hace commit/rollback).

        Raises:
            UserNotFound: no existe la fila de saldo
            InsufficientCredits: un cargo dejaría el saldo negativo

        Returns:
            Tuple (new_balance, transaction_id)
        """
        earned_delta, spent_delta = counter_deltas(tx_type, amount)

        stmt = (
            update(UserBalance)
            .where(UserBalance.user_id == user_id)
            .values(
                balance=UserBalance.balance + amount,
                total_earned=UserBalance.total_earned + earned_delta,
                total_spent=UserBalance.total_spent + spent_delta,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if amount < 0:
            stmt = stmt.where(UserBalance.balance + amount >= 0)

        result = await session.execute(stmt)
        if result.rowcount == 0:
            current = await self.get(session, user_id)
            if current is None:
                raise UserNotFound(user_id)
            raise InsufficientCredits(required=-amount, available=current.balance)

        row = await self.get(session, user_id)
        new_balance = row.balance  # type: ignore[union-attr]

        tx = CreditTransaction(
            user_id=user_id,
            type=tx_type,
            amount=amount,
            balance_after=new_balance,
            description=description,
            related_item_id=related_item_id,
            reservation_id=reservation_id,
            original_transaction_id=original_transaction_id,
            tx_metadata=tx_metadata or {},
            created_at=now,
        )
        session.add(tx)
        await session.flush()

        logger.debug(
            "CreditTransaction created: user=%s type=%s amount=%+d after=%d reservation=%s",
            user_id, tx_type.value, amount, new_balance, reservation_id,
        )
        return new_balance, tx.id


class TransactionRepository:
    """Repositorio del ledger (credit_transactions)."""

    async def get(self, session: AsyncSession, transaction_id: str) -> Optional[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        limit: int = 10,
    ) -> Sequence[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_spent_for_reservation(
        self,
        session: AsyncSession,
        reservation_id: str,
    ) -> Optional[CreditTransaction]:
        stmt = select(CreditTransaction).where(
            CreditTransaction.reservation_id == reservation_id,
            CreditTransaction.type == TransactionType.SPENT,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def refunded_total(self, session: AsyncSession, original_transaction_id: str) -> int:
        """Suma de reembolsos ya emitidos contra una transacción original."""
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.original_transaction_id == original_transaction_id,
            CreditTransaction.type == TransactionType.REFUND,
        )
        return int((await session.execute(stmt)).scalar_one())

    async def add_refunded(
        self,
        session: AsyncSession,
        original_transaction_id: str,
        amount: int,
    ) -> bool:
        """
        Suma `amount` al acumulado de reembolsos de un SPENT.

        UPDATE condicional: solo aplica si el acumulado resultante no supera
        lo cobrado. Dos reembolsos concurrentes no pueden pasar ambos.

        Returns:
            True si el tope admitió el reembolso
        """
        stmt = (
            update(CreditTransaction)
            .where(
                CreditTransaction.id == original_transaction_id,
                CreditTransaction.type == TransactionType.SPENT,
                CreditTransaction.refunded_amount + amount <= -CreditTransaction.amount,
            )
            .values(refunded_amount=CreditTransaction.refunded_amount + amount)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def sum_for_user(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id
        )
        return int((await session.execute(stmt)).scalar_one())


class ReservationRepository:
    """Repositorio de reservas (credit_reservations)."""

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        item_id: str,
        amount: int,
        description: Optional[str],
        expires_at: datetime,
        now: datetime,
    ) -> CreditReservation:
        reservation = CreditReservation(
            user_id=user_id,
            item_id=item_id,
            amount=amount,
            description=description,
            status=ReservationStatus.PENDING,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        session.add(reservation)
        await session.flush()
        return reservation

    async def get(
        self,
        session: AsyncSession,
        reservation_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[CreditReservation]:
        """Carga la reserva (siempre desde la BD, nunca del identity map)."""
        stmt = (
            select(CreditReservation)
            .where(CreditReservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(CreditReservation.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(
        self,
        session: AsyncSession,
        reservation_id: str,
        to_status: ReservationStatus,
        now: datetime,
        description: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-set pending -> to_status.

        Returns:
            True si esta llamada ganó la transición, False si la reserva
            ya no estaba pendiente (otro camino la terminó antes).
        """
        values: dict[str, Any] = {"status": to_status, "updated_at": now}
        if description is not None:
            values["description"] = description

        stmt = (
            update(CreditReservation)
            .where(
                CreditReservation.id == reservation_id,
                CreditReservation.status == ReservationStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def cancel_expired(self, session: AsyncSession, now: datetime) -> int:
        """
        Cancela en bloque las reservas pendientes con expires_at < now.

        Mismo predicado status='pending' que transition(): una reserva
        recién confirmada nunca se sobrescribe.
        """
        annotated = case(
            (CreditReservation.description.is_(None), literal(EXPIRED_SUFFIX.strip())),
            else_=CreditReservation.description + EXPIRED_SUFFIX,
        )
        stmt = (
            update(CreditReservation)
            .where(
                CreditReservation.status == ReservationStatus.PENDING,
                CreditReservation.expires_at < now,
            )
            .values(
                status=ReservationStatus.CANCELLED,
                updated_at=now,
                description=annotated,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount

    async def purge_terminal(self, session: AsyncSession, older_than: datetime) -> int:
        """Elimina reservas terminales sin cambios desde `older_than`. Nunca toca pending."""
        stmt = (
            delete(CreditReservation)
            .where(
                CreditReservation.status != ReservationStatus.PENDING,
                CreditReservation.updated_at < older_than,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount

    async def count_pending(self, session: AsyncSession, now: Optional[datetime] = None) -> int:
        """Cuenta pendientes; con `now`, solo las ya vencidas."""
        stmt = select(func.count()).select_from(CreditReservation).where(
            CreditReservation.status == ReservationStatus.PENDING
        )
        if now is not None:
            stmt = stmt.where(CreditReservation.expires_at < now)
        return int((await session.execute(stmt)).scalar_one())


class PriceableItemRepository:
    """Repositorio de la tabla de precios (item_costs)."""

    async def get(self, session: AsyncSession, item_id: str) -> Optional[PriceableItem]:
        result = await session.execute(
            select(PriceableItem).where(PriceableItem.item_id == item_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self, session: AsyncSession) -> List[PriceableItem]:
        result = await session.execute(select(PriceableItem).order_by(PriceableItem.item_id))
        return list(result.scalars().all())


__all__ = [
    "EXPIRED_SUFFIX",
    "counter_deltas",
    "BalanceRepository",
    "TransactionRepository",
    "ReservationRepository",
    "PriceableItemRepository",
]

# Fin del archivo creditledger/modules/credits/repositories.py
