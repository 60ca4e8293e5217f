# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/reservation_service.py

Reservation Manager: reserva en dos fases (reserve -> confirm | cancel).

Máquina de estados:
    pending -> confirmed   (terminal, único camino que cobra)
    pending -> cancelled   (terminal, vía cancel, expiración o limpieza)

La transición terminal se decide con un compare-and-set en la BD
(UPDATE ... WHERE status = 'pending'); solo quien gana el CAS de confirm
llega a cobrar el saldo. No hay locks en memoria.

Autor: CreditLedger
Fecha: 2026-10-08
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import Clock, ensure_utc, utcnow
from ..enums import ReservationStatus, TransactionType
from ..errors import (
    CannotCancelConfirmed,
    CannotConfirmCancelled,
    CreditsError,
    CreditsValidationError,
    InsufficientCredits,
    ItemNotFound,
    ReconciliationRequired,
    ReservationCancelled,
    ReservationExpired,
    ReservationNotFound,
    UserNotFound,
)
from ..models import CreditReservation
from ..monitoring.prometheus_exporter import (
    observe_cancel,
    observe_confirm,
    observe_reserve,
)
from ..pricing import ItemCost, PricingLookup
from ..repositories import (
    BalanceRepository,
    ReservationRepository,
    TransactionRepository,
)
from ..results import CancelResult, ConfirmResult, ReservationResult
from .balance_service import BalanceService

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_TTL_MINUTES = 30


async def resolve_item_cost(pricing: PricingLookup, item_id: str) -> ItemCost:
    """Costo vigente de un item; ItemNotFound si no existe o está inactivo."""
    item = await pricing.get_item_cost(item_id)
    if item is None:
        raise ItemNotFound(item_id)
    if not item.is_active:
        raise ItemNotFound(item_id, inactive=True)
    return item


class ReservationService:
    """
    Servicio de reservas de créditos.

    Cada operación es una unidad atómica y hace commit antes de devolver;
    confirm hace dos: primero el CAS de la reserva, luego el cargo.
    """

    def __init__(
        self,
        pricing: PricingLookup,
        clock: Clock = utcnow,
        ttl_minutes: int = DEFAULT_RESERVATION_TTL_MINUTES,
        balance_service: Optional[BalanceService] = None,
        reservation_repo: Optional[ReservationRepository] = None,
        tx_repo: Optional[TransactionRepository] = None,
    ):
        if ttl_minutes <= 0:
            raise ValueError("ttl_minutes must be > 0")
        self.pricing = pricing
        self.clock = clock
        self.ttl = timedelta(minutes=ttl_minutes)
        self.balance_service = balance_service or BalanceService(clock=clock)
        self.balance_repo: BalanceRepository = self.balance_service.balance_repo
        self.reservation_repo = reservation_repo or ReservationRepository()
        self.tx_repo = tx_repo or TransactionRepository()

    # ------------------------------------------------------------------
    # reserve
    # ------------------------------------------------------------------
    async def reserve(
        self,
        session: AsyncSession,
        user_id: str,
        item_id: str,
        description: Optional[str] = None,
    ) -> ReservationResult:
        """
        Crea una reserva pendiente con el costo congelado del item.

        La verificación de saldo es blanda: no aparta fondos, y varias
        reservas pendientes pueden sumar más que el saldo. El chequeo
        autoritativo ocurre en confirm.

        Raises:
            ItemNotFound: item inexistente o inactivo
            InsufficientCredits: saldo actual < costo (no se crea la reserva)
        """
        try:
            item = await resolve_item_cost(self.pricing, item_id)
        except ItemNotFound:
            observe_reserve("item_not_found")
            raise

        balance = await self.balance_repo.get(session, user_id)
        available = balance.balance if balance is not None else 0
        if available < item.cost:
            observe_reserve("insufficient_credits")
            logger.warning(
                "Reserve rejected: user=%s item=%s required=%d available=%d",
                user_id, item_id, item.cost, available,
            )
            raise InsufficientCredits(required=item.cost, available=available)

        now = self.clock()
        try:
            if balance is None:
                await self.balance_repo.get_or_create(session, user_id, now)
            reservation = await self.reservation_repo.create(
                session,
                user_id=user_id,
                item_id=item_id,
                amount=item.cost,
                description=description,
                expires_at=now + self.ttl,
                now=now,
            )
            reservation_id = reservation.id
            expires_at = ensure_utc(reservation.expires_at)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise

        observe_reserve("created")
        logger.info(
            "Reservation created: id=%s user=%s item=%s amount=%d expires_at=%s",
            reservation_id, user_id, item_id, item.cost, expires_at.isoformat(),
        )
        return ReservationResult(
            reservation_id=reservation_id,
            user_id=user_id,
            item_id=item_id,
            amount=item.cost,
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # confirm
    # ------------------------------------------------------------------
    async def confirm(
        self,
        session: AsyncSession,
        reservation_id: str,
        user_id: str,
        item_id: Optional[str] = None,
        related_item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ConfirmResult:
        """
        Convierte una reserva pendiente en un cargo real.

        Idempotente ante confirmaciones duplicadas: la segunda llamada
        devuelve already_confirmed=True sin volver a cobrar.

        Raises:
            ReservationNotFound, CreditsValidationError (item distinto),
            ReservationCancelled, ReservationExpired, UserNotFound,
            InsufficientCredits, CannotConfirmCancelled (perdió la carrera),
            ReconciliationRequired (CAS ganado pero el cargo falló)
        """
        try:
            return await self._confirm(
                session, reservation_id, user_id, item_id, related_item_id, description
            )
        except CreditsError as e:
            observe_confirm(_confirm_outcome(e))
            raise

    async def _confirm(
        self,
        session: AsyncSession,
        reservation_id: str,
        user_id: str,
        item_id: Optional[str],
        related_item_id: Optional[str],
        description: Optional[str],
    ) -> ConfirmResult:
        reservation = await self.reservation_repo.get(session, reservation_id, user_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)

        if item_id is not None and item_id != reservation.item_id:
            raise CreditsValidationError(
                f"El item {item_id} no corresponde a la reserva {reservation_id}",
                reservation_id=reservation_id,
                expected_item_id=reservation.item_id,
                item_id=item_id,
            )

        if reservation.status is ReservationStatus.CONFIRMED:
            return await self._already_confirmed(session, reservation)

        if reservation.status is ReservationStatus.CANCELLED:
            logger.warning("Confirm rejected: reservation %s is cancelled", reservation_id)
            raise ReservationCancelled(reservation_id)

        now = self.clock()
        expires_at = ensure_utc(reservation.expires_at)
        if now > expires_at:
            return await self._self_expire(session, reservation_id, expires_at, now)

        # Chequeo autoritativo contra el saldo vivo
        amount = reservation.amount
        reserved_item_id = reservation.item_id
        debit_description = description or reservation.description
        balance = await self.balance_repo.get(session, user_id)
        if balance is None and amount > 0:
            raise UserNotFound(user_id)
        available = balance.balance if balance is not None else 0
        if available < amount:
            logger.warning(
                "Confirm rejected: reservation=%s required=%d available=%d",
                reservation_id, amount, available,
            )
            raise InsufficientCredits(required=amount, available=available)

        # Compare-and-set pending -> confirmed
        won = await self.reservation_repo.transition(
            session, reservation_id, ReservationStatus.CONFIRMED, now
        )
        await session.commit()
        if not won:
            return await self._resolve_lost_confirm(session, reservation_id, user_id)

        logger.info("Reservation confirmed: id=%s user=%s amount=%d", reservation_id, user_id, amount)

        if amount == 0:
            # Item gratuito: sin fila en el ledger (los montos nunca son 0)
            observe_confirm("confirmed")
            return ConfirmResult(
                reservation_id=reservation_id,
                transaction_id=None,
                new_balance=available,
                amount_spent=0,
            )

        try:
            mutation = await self.balance_service.apply_delta(
                session,
                user_id,
                -amount,
                TransactionType.SPENT,
                debit_description,
                related_item_id=related_item_id,
                reservation_id=reservation_id,
                tx_metadata={"item_id": reserved_item_id},
            )
        except (CreditsError, SQLAlchemyError) as e:
            logger.error(
                "Debit failed after reservation %s was confirmed (user=%s amount=%d): %s; "
                "manual reconciliation required",
                reservation_id, user_id, amount, e,
            )
            raise ReconciliationRequired(
                reservation_id=reservation_id,
                user_id=user_id,
                amount=amount,
                cause=type(e).__name__,
            ) from e

        observe_confirm("confirmed")
        return ConfirmResult(
            reservation_id=reservation_id,
            transaction_id=mutation.transaction_id,
            new_balance=mutation.new_balance,
            amount_spent=amount,
        )

    async def _already_confirmed(
        self,
        session: AsyncSession,
        reservation: CreditReservation,
    ) -> ConfirmResult:
        tx = await self.tx_repo.get_spent_for_reservation(session, reservation.id)
        balance = await self.balance_repo.get(session, reservation.user_id)
        observe_confirm("already_confirmed")
        logger.debug("Confirm no-op: reservation %s already confirmed", reservation.id)
        return ConfirmResult(
            reservation_id=reservation.id,
            transaction_id=tx.id if tx is not None else None,
            new_balance=balance.balance if balance is not None else 0,
            amount_spent=reservation.amount,
            already_confirmed=True,
        )

    async def _self_expire(
        self,
        session: AsyncSession,
        reservation_id: str,
        expires_at: datetime,
        now: datetime,
    ) -> ConfirmResult:
        """Reserva vencida y aún pendiente: se cancela aquí mismo."""
        won = await self.reservation_repo.transition(
            session, reservation_id, ReservationStatus.CANCELLED, now
        )
        await session.commit()
        if not won:
            current = await self.reservation_repo.get(session, reservation_id)
            if current is not None and current.status is ReservationStatus.CONFIRMED:
                return await self._already_confirmed(session, current)
        logger.warning(
            "Confirm rejected: reservation %s expired at %s",
            reservation_id, expires_at.isoformat(),
        )
        raise ReservationExpired(reservation_id, expires_at)

    async def _resolve_lost_confirm(
        self,
        session: AsyncSession,
        reservation_id: str,
        user_id: str,
    ) -> ConfirmResult:
        """El CAS afectó 0 filas: otro camino terminó la reserva primero."""
        current = await self.reservation_repo.get(session, reservation_id, user_id)
        if current is None:
            raise ReservationNotFound(reservation_id)
        if current.status is ReservationStatus.CONFIRMED:
            return await self._already_confirmed(session, current)
        logger.warning(
            "Confirm lost the race: reservation %s is now %s",
            reservation_id, current.status.value,
        )
        raise CannotConfirmCancelled(reservation_id)

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------
    async def cancel(
        self,
        session: AsyncSession,
        reservation_id: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> CancelResult:
        """
        Cancela una reserva pendiente. Nunca toca el saldo.

        Idempotente: una reserva ya cancelada devuelve already_cancelled=True.

        Raises:
            ReservationNotFound
            CannotCancelConfirmed: la reserva ya cobró (usar refund)
        """
        reservation = await self.reservation_repo.get(session, reservation_id, user_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)

        reserved_amount = reservation.amount
        if reservation.status is ReservationStatus.PENDING:
            annotated = reservation.description
            if reason:
                annotated = f"{annotated} (cancelada: {reason})" if annotated else f"Cancelada: {reason}"
            won = await self.reservation_repo.transition(
                session,
                reservation_id,
                ReservationStatus.CANCELLED,
                self.clock(),
                description=annotated,
            )
            await session.commit()
            if won:
                observe_cancel("cancelled")
                logger.info(
                    "Reservation cancelled: id=%s user=%s reason=%s",
                    reservation_id, user_id, reason,
                )
                return CancelResult(
                    reservation_id=reservation_id,
                    amount=reserved_amount,
                    reason=reason,
                )
            reservation = await self.reservation_repo.get(session, reservation_id, user_id)
            if reservation is None:
                raise ReservationNotFound(reservation_id)

        if reservation.status is ReservationStatus.CONFIRMED:
            observe_cancel("rejected_confirmed")
            logger.warning("Cancel rejected: reservation %s is confirmed", reservation_id)
            raise CannotCancelConfirmed(reservation_id)

        observe_cancel("already_cancelled")
        logger.debug("Cancel no-op: reservation %s already cancelled", reservation_id)
        return CancelResult(
            reservation_id=reservation_id,
            amount=reservation.amount,
            reason=reason,
            already_cancelled=True,
        )


def _confirm_outcome(error: CreditsError) -> str:
    """Etiqueta de métrica para un confirm rechazado."""
    return {
        ReservationNotFound.code: "not_found",
        ReservationCancelled.code: "cancelled",
        CannotConfirmCancelled.code: "lost_race",
        ReservationExpired.code: "expired",
        InsufficientCredits.code: "insufficient_credits",
        ReconciliationRequired.code: "reconciliation_required",
    }.get(error.code, "rejected")


__all__ = [
    "DEFAULT_RESERVATION_TTL_MINUTES",
    "resolve_item_cost",
    "ReservationService",
]

# Fin del archivo creditledger/modules/credits/services/reservation_service.py
