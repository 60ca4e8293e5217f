# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/facades/credit_ledger_facade.py

Facade público del ledger de créditos.

Abre una sesión por llamada, valida la entrada con los esquemas Pydantic
y devuelve siempre un OperationResult tipado: ningún error de dominio ni
de conectividad sale como excepción.

Autor: CreditLedger
Fecha: 2026-10-11
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from creditledger.shared.config import BaseAppSettings, get_settings
from creditledger.shared.scheduler import get_scheduler
from creditledger.shared.utils.datetime_helpers import Clock, ensure_utc, utcnow
from ..errors import ItemNotFound, UserNotFound
from ..jobs import SWEEP_JOB_ID, register_sweep_job, unregister_sweep_job
from ..monitoring.monitoring_service import MonitoringService
from ..pricing import DbPricingLookup, ItemCost, PricingLookup
from ..results import (
    CancelResult,
    ConfirmResult,
    CreditsSummary,
    BalanceMutation,
    OperationResult,
    ReservationResult,
    SpendResult,
    SweepResult,
)
from ..schemas import (
    BalanceRequest,
    CancelReservationRequest,
    ConfirmCreditsRequest,
    EarnCreditsRequest,
    ItemCostRequest,
    RefundCreditsRequest,
    ReserveCreditsRequest,
    SpendCreditsRequest,
    SummaryRequest,
    SweepIfDueRequest,
    SweepJobRequest,
    TopUsersRequest,
    UsageMetricsRequest,
)
from ..services import (
    BalanceService,
    LedgerService,
    ReservationService,
    SpendService,
    SweeperService,
)
from .errors import error_result, validation_result

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CreditLedgerFacade:
    """
    Superficie pública del ledger (reserve/confirm/cancel, cargos, abonos,
    limpieza y monitoreo).

    Args:
        session_factory: fábrica de AsyncSession (expire_on_commit=False)
        pricing: consulta de precios (default: tabla item_costs)
        clock: reloj UTC inyectable
        settings: configuración (default: get_settings())
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pricing: Optional[PricingLookup] = None,
        clock: Clock = utcnow,
        settings: Optional[BaseAppSettings] = None,
    ):
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self.pricing = pricing or DbPricingLookup(session_factory)
        self.clock = clock

        self.balances = BalanceService(clock=clock)
        self.reservations = ReservationService(
            self.pricing,
            clock=clock,
            ttl_minutes=self.settings.reservation_ttl_minutes,
            balance_service=self.balances,
        )
        self.spending = SpendService(self.pricing, clock=clock, balance_service=self.balances)
        self.ledger = LedgerService(
            clock=clock,
            balance_service=self.balances,
            welcome_credits=self.settings.welcome_credits,
        )
        self.sweeper = SweeperService(
            clock=clock,
            min_interval_seconds=self.settings.sweep_min_interval_seconds,
            retention_days=self.settings.reservation_retention_days,
        )
        self.monitoring = MonitoringService(
            clock=clock,
            stuck_pending_minutes=self.settings.stuck_pending_minutes,
            stuck_pending_warning_count=self.settings.stuck_pending_warning_count,
            failure_rate_window_hours=self.settings.failure_rate_window_hours,
            failure_rate_warning_pct=self.settings.failure_rate_warning_pct,
        )

    async def _execute(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> OperationResult[T]:
        try:
            async with self._session_factory() as session:
                data = await work(session)
        except Exception as exc:
            result = error_result(exc)
            if result is None:
                raise
            logger.debug("%s failed: %s %s", operation, result.error_code, exc)
            return result
        return OperationResult.ok(data)

    @staticmethod
    def _invalid(exc: ValidationError) -> OperationResult[Any]:
        logger.debug("Invalid request: %s", exc.error_count())
        return validation_result(exc)

    # ------------------------------------------------------------------
    # Reservas
    # ------------------------------------------------------------------
    async def reserve(
        self,
        user_id: str,
        item_id: str,
        description: Optional[str] = None,
    ) -> OperationResult[ReservationResult]:
        try:
            req = ReserveCreditsRequest(user_id=user_id, item_id=item_id, description=description)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "reserve",
            lambda s: self.reservations.reserve(s, req.user_id, req.item_id, req.description),
        )

    async def confirm(
        self,
        reservation_id: str,
        user_id: str,
        item_id: str,
        related_item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OperationResult[ConfirmResult]:
        try:
            req = ConfirmCreditsRequest(
                reservation_id=reservation_id,
                user_id=user_id,
                item_id=item_id,
                related_item_id=related_item_id,
                description=description,
            )
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "confirm",
            lambda s: self.reservations.confirm(
                s,
                req.reservation_id,
                req.user_id,
                item_id=req.item_id,
                related_item_id=req.related_item_id,
                description=req.description,
            ),
        )

    async def cancel(
        self,
        reservation_id: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> OperationResult[CancelResult]:
        try:
            req = CancelReservationRequest(reservation_id=reservation_id, user_id=user_id, reason=reason)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "cancel",
            lambda s: self.reservations.cancel(s, req.reservation_id, req.user_id, req.reason),
        )

    # ------------------------------------------------------------------
    # Cargos y abonos
    # ------------------------------------------------------------------
    async def spend_direct(
        self,
        user_id: str,
        item_id: str,
        related_item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> OperationResult[SpendResult]:
        try:
            req = SpendCreditsRequest(
                user_id=user_id,
                item_id=item_id,
                related_item_id=related_item_id,
                description=description,
            )
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "spend_direct",
            lambda s: self.spending.spend_direct(
                s, req.user_id, req.item_id, req.related_item_id, req.description
            ),
        )

    async def earn(
        self,
        user_id: str,
        amount: int,
        type: str = "earned",
        description: str = "Créditos abonados",
        related_item_id: Optional[str] = None,
    ) -> OperationResult[BalanceMutation]:
        try:
            req = EarnCreditsRequest(
                user_id=user_id,
                amount=amount,
                type=type,
                description=description,
                related_item_id=related_item_id,
            )
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "earn",
            lambda s: self.ledger.earn(
                s, req.user_id, req.amount, req.type, req.description, req.related_item_id
            ),
        )

    async def refund(
        self,
        user_id: str,
        amount: int,
        description: str = "Reembolso de créditos",
        related_item_id: Optional[str] = None,
        original_transaction_id: Optional[str] = None,
    ) -> OperationResult[BalanceMutation]:
        try:
            req = RefundCreditsRequest(
                user_id=user_id,
                amount=amount,
                description=description,
                related_item_id=related_item_id,
                original_transaction_id=original_transaction_id,
            )
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "refund",
            lambda s: self.ledger.refund(
                s,
                req.user_id,
                req.amount,
                req.description,
                related_item_id=req.related_item_id,
                original_transaction_id=req.original_transaction_id,
            ),
        )

    # ------------------------------------------------------------------
    # Consultas de saldo
    # ------------------------------------------------------------------
    async def get_balance(self, user_id: str) -> OperationResult[dict[str, Any]]:
        try:
            req = BalanceRequest(user_id=user_id)
        except ValidationError as exc:
            return self._invalid(exc)

        async def work(session: AsyncSession) -> dict[str, Any]:
            row = await self.balances.get_balance(session, req.user_id)
            if row is None:
                raise UserNotFound(req.user_id)
            return _balance_dict(row)

        return await self._execute("get_balance", work)

    async def ensure_balance(self, user_id: str, initial_grant: int = 0) -> OperationResult[dict[str, Any]]:
        try:
            req = BalanceRequest(user_id=user_id, initial_grant=initial_grant)
        except ValidationError as exc:
            return self._invalid(exc)

        async def work(session: AsyncSession) -> dict[str, Any]:
            row = await self.balances.ensure_balance(session, req.user_id, req.initial_grant)
            return _balance_dict(row)

        return await self._execute("ensure_balance", work)

    async def ensure_welcome_credits(self, user_id: str) -> OperationResult[dict[str, Any]]:
        try:
            req = BalanceRequest(user_id=user_id)
        except ValidationError as exc:
            return self._invalid(exc)

        async def work(session: AsyncSession) -> dict[str, Any]:
            row = await self.ledger.ensure_welcome_credits(session, req.user_id)
            return _balance_dict(row)

        return await self._execute("ensure_welcome_credits", work)

    async def get_summary(self, user_id: str, transaction_limit: int = 10) -> OperationResult[CreditsSummary]:
        try:
            req = SummaryRequest(user_id=user_id, transaction_limit=transaction_limit)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "get_summary",
            lambda s: self.ledger.get_summary(s, req.user_id, req.transaction_limit),
        )

    # ------------------------------------------------------------------
    # Limpieza
    # ------------------------------------------------------------------
    async def sweep_expired(self) -> OperationResult[int]:
        return await self._execute("sweep_expired", self.sweeper.sweep_expired)

    async def sweep_if_due(self, min_interval_seconds: Optional[int] = None) -> OperationResult[dict[str, Any]]:
        try:
            req = SweepIfDueRequest(min_interval_seconds=min_interval_seconds)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "sweep_if_due",
            lambda s: self.sweeper.sweep_if_due(s, req.min_interval_seconds),
        )

    async def force_sweep(self) -> OperationResult[SweepResult]:
        return await self._execute("force_sweep", self.sweeper.force_sweep)

    async def purge_old(self) -> OperationResult[int]:
        return await self._execute("purge_old", self.sweeper.purge_old)

    async def get_sweep_status(self) -> OperationResult[dict[str, Any]]:
        return await self._execute("get_sweep_status", self.sweeper.get_sweep_status)

    async def start_sweep_job(self, interval_minutes: Optional[int] = None) -> OperationResult[dict[str, Any]]:
        """Registra (o reemplaza) el job de limpieza y arranca el scheduler."""
        try:
            req = SweepJobRequest(interval_minutes=interval_minutes)
        except ValidationError as exc:
            return self._invalid(exc)

        register_sweep_job(
            req.interval_minutes,
            session_factory=self._session_factory,
            settings=self.settings,
        )
        scheduler = get_scheduler()
        scheduler.start()
        job = scheduler.get_job_status(SWEEP_JOB_ID)
        return OperationResult.ok({
            "id": SWEEP_JOB_ID,
            "running": scheduler.is_running,
            "trigger": job["trigger"] if job else None,
            "next_run": ensure_utc(job["next_run"]) if job and job["next_run"] else None,
        })

    async def stop_sweep_job(self) -> OperationResult[dict[str, Any]]:
        """Quita el job de limpieza; el scheduler sigue corriendo."""
        stopped = unregister_sweep_job()
        return OperationResult.ok({"id": SWEEP_JOB_ID, "stopped": stopped})

    # ------------------------------------------------------------------
    # Precios
    # ------------------------------------------------------------------
    async def get_item_cost(self, item_id: str) -> OperationResult[dict[str, Any]]:
        try:
            req = ItemCostRequest(item_id=item_id)
        except ValidationError as exc:
            return self._invalid(exc)

        async def work(_: AsyncSession) -> dict[str, Any]:
            item = await self.pricing.get_item_cost(req.item_id)
            if item is None:
                raise ItemNotFound(req.item_id)
            return _item_dict(item)

        return await self._execute("get_item_cost", work)

    async def list_item_costs(self, include_inactive: bool = False) -> OperationResult[list[dict[str, Any]]]:
        async def work(_: AsyncSession) -> list[dict[str, Any]]:
            items = await self.pricing.list_item_costs()
            return [_item_dict(item) for item in items if include_inactive or item.is_active]

        return await self._execute("list_item_costs", work)

    # ------------------------------------------------------------------
    # Monitoreo
    # ------------------------------------------------------------------
    async def get_system_metrics(self) -> OperationResult[dict[str, Any]]:
        return await self._execute("get_system_metrics", self.monitoring.get_system_metrics)

    async def get_health_metrics(self) -> OperationResult[dict[str, Any]]:
        return await self._execute("get_health_metrics", self.monitoring.get_health_metrics)

    async def get_usage_metrics(self, period: str = "day") -> OperationResult[dict[str, Any]]:
        try:
            req = UsageMetricsRequest(period=period)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "get_usage_metrics",
            lambda s: self.monitoring.get_usage_metrics(s, req.period),
        )

    async def get_top_users(self, limit: int = 10) -> OperationResult[list[dict[str, Any]]]:
        try:
            req = TopUsersRequest(limit=limit)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "get_top_users",
            lambda s: self.monitoring.get_top_users(s, req.limit),
        )

    async def get_model_usage_stats(self) -> OperationResult[list[dict[str, Any]]]:
        return await self._execute("get_model_usage_stats", self.monitoring.get_model_usage_stats)

    async def get_dashboard(self, period: str = "day") -> OperationResult[dict[str, Any]]:
        try:
            req = UsageMetricsRequest(period=period)
        except ValidationError as exc:
            return self._invalid(exc)
        return await self._execute(
            "get_dashboard",
            lambda s: self.monitoring.get_dashboard(s, req.period),
        )


def _item_dict(item: ItemCost) -> dict[str, Any]:
    return asdict(item)


def _balance_dict(row) -> dict[str, Any]:
    return {
        "user_id": row.user_id,
        "balance": row.balance,
        "total_earned": row.total_earned,
        "total_spent": row.total_spent,
        "updated_at": ensure_utc(row.updated_at),
    }


__all__ = ["CreditLedgerFacade"]

# Fin del archivo creditledger/modules/credits/facades/credit_ledger_facade.py
