# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/monitoring/monitoring_service.py

Reportes de solo lectura sobre el ledger de créditos:

- get_system_metrics(): usuarios, reservas, transacciones e items
- get_health_metrics(): señales de consistencia y estado healthy/warning/critical
- get_usage_metrics(period): series por hora/día/semana/mes
- get_top_users(limit), get_model_usage_stats(), get_dashboard(period)

Las agregaciones por bucket se calculan en Python para no depender
de funciones de fecha específicas del motor de BD.

Autor: CreditLedger
Fecha: 2026-10-10
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import (
    Clock,
    ensure_utc,
    from_iso8601,
    to_iso8601,
    utcnow,
)
from ..enums import ReservationStatus, TransactionType
from ..models import CreditReservation, CreditTransaction, PriceableItem, UserBalance
from .prometheus_exporter import update_health_gauges

logger = logging.getLogger(__name__)

USAGE_PERIODS = ("hour", "day", "week", "month")

# Umbrales por defecto
DEFAULT_STUCK_PENDING_MINUTES = 60
DEFAULT_STUCK_PENDING_WARNING_COUNT = 10
DEFAULT_FAILURE_RATE_WINDOW_HOURS = 24
DEFAULT_FAILURE_RATE_WARNING_PCT = 20.0

_BUCKET_COUNTS = {"hour": 24, "day": 30, "week": 12, "month": 12}


# ---------------------------------------------------------------------------
# Buckets de tiempo
# ---------------------------------------------------------------------------
def floor_to_period(dt: datetime, period: str) -> datetime:
    """Inicio del bucket (UTC) que contiene a `dt`."""
    dt = ensure_utc(dt)
    if period == "hour":
        return dt.replace(minute=0, second=0, microsecond=0)
    day = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return day
    if period == "week":
        # Semana ISO: inicia en lunes
        return day - timedelta(days=day.weekday())
    if period == "month":
        return day.replace(day=1)
    raise ValueError(f"Periodo inválido: {period}")


def _previous_bucket(start: datetime, period: str) -> datetime:
    if period == "hour":
        return start - timedelta(hours=1)
    if period == "day":
        return start - timedelta(days=1)
    if period == "week":
        return start - timedelta(weeks=1)
    if start.month == 1:
        return start.replace(year=start.year - 1, month=12)
    return start.replace(month=start.month - 1)


def bucket_starts(now: datetime, period: str) -> list[datetime]:
    """Inicios de bucket en orden cronológico; el último contiene a `now`."""
    if period not in _BUCKET_COUNTS:
        raise ValueError(f"Periodo inválido: {period}")
    current = floor_to_period(now, period)
    starts = [current]
    for _ in range(_BUCKET_COUNTS[period] - 1):
        current = _previous_bucket(current, period)
        starts.append(current)
    starts.reverse()
    return starts


def classify_health(
    metrics: dict[str, Any],
    *,
    stuck_pending_warning_count: int = DEFAULT_STUCK_PENDING_WARNING_COUNT,
    failure_rate_warning_pct: float = DEFAULT_FAILURE_RATE_WARNING_PCT,
) -> tuple[str, list[str]]:
    """
    Estado de salud a partir de las señales:

    - critical: saldos negativos, contadores inconsistentes o saldo != suma del ledger
    - warning: reservas vencidas sin limpiar, pendientes atascadas o tasa de fallo alta
    - healthy: ninguna de las anteriores
    """
    issues: list[str] = []
    critical = False

    if metrics["users_with_negative_balance"] > 0:
        critical = True
        issues.append(f"{metrics['users_with_negative_balance']} users with negative balance")
    if metrics["inconsistent_balances"] > 0:
        critical = True
        issues.append(f"{metrics['inconsistent_balances']} users with inconsistent lifetime counters")
    if metrics["ledger_mismatches"] > 0:
        critical = True
        issues.append(f"{metrics['ledger_mismatches']} users whose balance differs from the ledger sum")
    if metrics["expired_reservations"] > 0:
        issues.append(f"{metrics['expired_reservations']} expired reservations need cleanup")
    if metrics["stuck_pending_reservations"] > stuck_pending_warning_count:
        issues.append(f"{metrics['stuck_pending_reservations']} reservations stuck in pending")
    if metrics["failure_rate"] > failure_rate_warning_pct:
        issues.append(f"High failure rate: {metrics['failure_rate']:.2f}%")

    if critical:
        return "critical", issues
    if issues:
        return "warning", issues
    return "healthy", issues


class MonitoringService:
    """Consultas agregadas (solo lectura) sobre saldos, reservas y ledger."""

    def __init__(
        self,
        clock: Clock = utcnow,
        stuck_pending_minutes: int = DEFAULT_STUCK_PENDING_MINUTES,
        stuck_pending_warning_count: int = DEFAULT_STUCK_PENDING_WARNING_COUNT,
        failure_rate_window_hours: int = DEFAULT_FAILURE_RATE_WINDOW_HOURS,
        failure_rate_warning_pct: float = DEFAULT_FAILURE_RATE_WARNING_PCT,
    ):
        self.clock = clock
        self.stuck_pending_minutes = stuck_pending_minutes
        self.stuck_pending_warning_count = stuck_pending_warning_count
        self.failure_rate_window_hours = failure_rate_window_hours
        self.failure_rate_warning_pct = failure_rate_warning_pct

    # ------------------------------------------------------------------
    # Sistema
    # ------------------------------------------------------------------
    async def get_system_metrics(self, session: AsyncSession) -> dict[str, Any]:
        now = self.clock()

        users_row = (await session.execute(
            select(
                func.count(),
                func.count(case((UserBalance.balance > 0, 1))),
                func.coalesce(func.avg(UserBalance.balance), 0),
                func.coalesce(func.sum(UserBalance.balance), 0),
            ).select_from(UserBalance)
        )).one()

        status_rows = (await session.execute(
            select(CreditReservation.status, func.count())
            .group_by(CreditReservation.status)
        )).all()
        by_status = {status.value: 0 for status in ReservationStatus}
        for status, count in status_rows:
            by_status[status.value] = int(count)

        expired_pending = await self._count_expired_pending(session, now)

        tx_rows = (await session.execute(
            select(
                CreditTransaction.type,
                func.count(),
                func.coalesce(func.sum(CreditTransaction.amount), 0),
            ).group_by(CreditTransaction.type)
        )).all()
        by_type = {t.value: {"count": 0, "amount": 0} for t in TransactionType}
        for tx_type, count, amount in tx_rows:
            by_type[tx_type.value] = {"count": int(count), "amount": abs(int(amount))}

        items_row = (await session.execute(
            select(
                func.count(),
                func.count(case((PriceableItem.is_active.is_(True), 1))),
                func.coalesce(func.avg(PriceableItem.cost), 0),
            ).select_from(PriceableItem)
        )).one()

        return {
            "users": {
                "total": int(users_row[0]),
                "with_credits": int(users_row[1]),
                "average_balance": round(float(users_row[2]), 2),
                "total_balance": int(users_row[3]),
            },
            "reservations": {
                "total": sum(by_status.values()),
                **by_status,
                "expired_pending": expired_pending,
            },
            "transactions": {
                "total": sum(v["count"] for v in by_type.values()),
                "total_volume": sum(v["amount"] for v in by_type.values()),
                "by_type": by_type,
            },
            "items": {
                "total": int(items_row[0]),
                "active": int(items_row[1]),
                "average_cost": round(float(items_row[2]), 2),
            },
            "generated_at": to_iso8601(now),
        }

    # ------------------------------------------------------------------
    # Salud
    # ------------------------------------------------------------------
    async def get_health_metrics(self, session: AsyncSession) -> dict[str, Any]:
        now = self.clock()

        expired = await self._count_expired_pending(session, now)

        stuck_cutoff = now - timedelta(minutes=self.stuck_pending_minutes)
        stuck = await self._scalar(session, select(func.count()).select_from(CreditReservation).where(
            CreditReservation.status == ReservationStatus.PENDING,
            CreditReservation.created_at < stuck_cutoff,
        ))

        negative = await self._scalar(session, select(func.count()).select_from(UserBalance).where(
            UserBalance.balance < 0
        ))

        inconsistent = await self._scalar(session, select(func.count()).select_from(UserBalance).where(
            UserBalance.balance != UserBalance.total_earned - UserBalance.total_spent
        ))

        ledger_sums = (
            select(
                CreditTransaction.user_id.label("user_id"),
                func.sum(CreditTransaction.amount).label("total"),
            )
            .group_by(CreditTransaction.user_id)
            .subquery()
        )
        mismatches = await self._scalar(session, (
            select(func.count())
            .select_from(UserBalance)
            .outerjoin(ledger_sums, ledger_sums.c.user_id == UserBalance.user_id)
            .where(UserBalance.balance != func.coalesce(ledger_sums.c.total, 0))
        ))

        failure_rate = await self._failure_rate(session, now)

        metrics = {
            "expired_reservations": expired,
            "stuck_pending_reservations": stuck,
            "users_with_negative_balance": negative,
            "inconsistent_balances": inconsistent,
            "ledger_mismatches": mismatches,
            "failure_rate": failure_rate,
        }
        status, issues = classify_health(
            metrics,
            stuck_pending_warning_count=self.stuck_pending_warning_count,
            failure_rate_warning_pct=self.failure_rate_warning_pct,
        )

        update_health_gauges(status, metrics)
        if status == "critical":
            logger.error("Credits health is critical: %s", "; ".join(issues))
        elif status == "warning":
            logger.warning("Credits health warning: %s", "; ".join(issues))

        return {
            "status": status,
            "issues": issues,
            "metrics": metrics,
            "checked_at": to_iso8601(now),
        }

    async def _failure_rate(self, session: AsyncSession, now: datetime) -> float:
        """refund / spent * 100 en la ventana; 0 si no hubo consumos."""
        since = now - timedelta(hours=self.failure_rate_window_hours)
        rows = (await session.execute(
            select(CreditTransaction.type, func.count())
            .where(
                CreditTransaction.created_at >= since,
                CreditTransaction.type.in_([TransactionType.SPENT, TransactionType.REFUND]),
            )
            .group_by(CreditTransaction.type)
        )).all()
        counts = {tx_type: int(count) for tx_type, count in rows}
        spent = counts.get(TransactionType.SPENT, 0)
        if spent == 0:
            return 0.0
        return round(counts.get(TransactionType.REFUND, 0) / spent * 100, 2)

    # ------------------------------------------------------------------
    # Uso por periodo
    # ------------------------------------------------------------------
    async def get_usage_metrics(self, session: AsyncSession, period: str = "day") -> dict[str, Any]:
        now = self.clock()
        starts = bucket_starts(now, period)
        since = starts[0]

        buckets: dict[datetime, dict[str, Any]] = {
            start: {
                "bucket": to_iso8601(start),
                "transactions": {"spent": 0, "earned": 0, "refunded": 0, "count": 0},
                "reservations": {"created": 0, "confirmed": 0, "cancelled": 0},
            }
            for start in starts
        }

        tx_rows = (await session.execute(
            select(CreditTransaction.type, CreditTransaction.amount, CreditTransaction.created_at)
            .where(CreditTransaction.created_at >= since)
        )).all()
        for tx_type, amount, created_at in tx_rows:
            bucket = buckets.get(floor_to_period(created_at, period))
            if bucket is None:
                continue
            tx_bucket = bucket["transactions"]
            tx_bucket["count"] += 1
            match tx_type:
                case TransactionType.SPENT:
                    tx_bucket["spent"] += abs(amount)
                case TransactionType.EARNED | TransactionType.BONUS:
                    tx_bucket["earned"] += amount
                case TransactionType.REFUND:
                    tx_bucket["refunded"] += amount

        res_rows = (await session.execute(
            select(CreditReservation.status, CreditReservation.created_at)
            .where(CreditReservation.created_at >= since)
        )).all()
        for status, created_at in res_rows:
            bucket = buckets.get(floor_to_period(created_at, period))
            if bucket is None:
                continue
            res_bucket = bucket["reservations"]
            res_bucket["created"] += 1
            if status is ReservationStatus.CONFIRMED:
                res_bucket["confirmed"] += 1
            elif status is ReservationStatus.CANCELLED:
                res_bucket["cancelled"] += 1

        return {
            "period": period,
            "start": to_iso8601(since),
            "end": to_iso8601(now),
            "buckets": [buckets[start] for start in starts],
        }

    # ------------------------------------------------------------------
    # Rankings
    # ------------------------------------------------------------------
    async def get_top_users(self, session: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
        activity = (
            select(
                CreditTransaction.user_id.label("user_id"),
                func.count().label("tx_count"),
                func.max(CreditTransaction.created_at).label("last_activity"),
            )
            .group_by(CreditTransaction.user_id)
            .subquery()
        )
        rows = (await session.execute(
            select(
                UserBalance.user_id,
                UserBalance.balance,
                UserBalance.total_earned,
                UserBalance.total_spent,
                func.coalesce(activity.c.tx_count, 0),
                activity.c.last_activity,
            )
            .outerjoin(activity, activity.c.user_id == UserBalance.user_id)
            .order_by(UserBalance.total_spent.desc(), UserBalance.user_id)
            .limit(limit)
        )).all()

        return [
            {
                "user_id": user_id,
                "balance": balance,
                "total_earned": total_earned,
                "total_spent": total_spent,
                "transaction_count": int(tx_count),
                "last_activity": to_iso8601(_as_datetime(last_activity)),
            }
            for user_id, balance, total_earned, total_spent, tx_count, last_activity in rows
        ]

    async def get_model_usage_stats(self, session: AsyncSession) -> list[dict[str, Any]]:
        """Uso por item cobrable: reservas y créditos confirmados."""
        items = {
            item.item_id: item
            for item in (await session.execute(select(PriceableItem))).scalars().all()
        }

        rows = (await session.execute(
            select(
                CreditReservation.item_id,
                func.count(),
                func.count(case((CreditReservation.status == ReservationStatus.CONFIRMED, 1))),
                func.coalesce(func.sum(case(
                    (CreditReservation.status == ReservationStatus.CONFIRMED, CreditReservation.amount),
                    else_=0,
                )), 0),
            ).group_by(CreditReservation.item_id)
        )).all()
        usage = {item_id: (int(total), int(confirmed), int(credits)) for item_id, total, confirmed, credits in rows}

        stats = []
        for item_id in sorted(set(items) | set(usage)):
            item = items.get(item_id)
            total, confirmed, credits = usage.get(item_id, (0, 0, 0))
            stats.append({
                "item_id": item_id,
                "name": item.name if item is not None else item_id,
                "cost": item.cost if item is not None else None,
                "is_active": item.is_active if item is not None else False,
                "reservations": total,
                "confirmed": confirmed,
                "credits_confirmed": credits,
            })
        stats.sort(key=lambda s: (-s["credits_confirmed"], -s["reservations"], s["item_id"]))
        return stats

    async def get_dashboard(self, session: AsyncSession, period: str = "day") -> dict[str, Any]:
        """Vista consolidada para el panel de operación."""
        return {
            "overview": await self.get_system_metrics(session),
            "health": await self.get_health_metrics(session),
            "usage": await self.get_usage_metrics(session, period),
            "top_users": await self.get_top_users(session, limit=5),
            "top_items": (await self.get_model_usage_stats(session))[:10],
            "generated_at": to_iso8601(self.clock()),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _count_expired_pending(self, session: AsyncSession, now: datetime) -> int:
        return await self._scalar(session, select(func.count()).select_from(CreditReservation).where(
            and_(
                CreditReservation.status == ReservationStatus.PENDING,
                CreditReservation.expires_at < now,
            )
        ))

    @staticmethod
    async def _scalar(session: AsyncSession, stmt) -> int:
        return int((await session.execute(stmt)).scalar_one())


def _as_datetime(value: Optional[Any]) -> Optional[datetime]:
    """max() sobre DateTime en SQLite puede devolver texto."""
    if value is None or isinstance(value, datetime):
        return value
    return from_iso8601(str(value))


__all__ = [
    "USAGE_PERIODS",
    "MonitoringService",
    "bucket_starts",
    "classify_health",
    "floor_to_period",
]

# Fin del archivo creditledger/modules/credits/monitoring/monitoring_service.py
