# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/sweeper_service.py

Expiry Sweeper: cancela reservas pendientes vencidas y purga reservas
terminales antiguas.

- sweep_expired(): cancelación en bloque con el mismo predicado
  status='pending' del compare-and-set de confirm
- sweep_if_due(): limitado a una ejecución por intervalo (estado por proceso)
- force_sweep(): limpieza completa sin throttle (operador)

El estado del throttle vive en memoria del proceso: varias instancias
pueden limpiar en paralelo, lo cual es seguro porque la limpieza es
idempotente.

Autor: CreditLedger
Fecha: 2026-10-09
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.shared.utils.datetime_helpers import Clock, to_iso8601, utcnow
from ..monitoring.prometheus_exporter import observe_sweep
from ..repositories import ReservationRepository
from ..results import SweepResult

logger = logging.getLogger(__name__)

# ID del job programado (ver jobs/sweep_reservations_job.py)
SWEEP_JOB_ID = "credits_sweep_expired_reservations"

DEFAULT_MIN_INTERVAL_SECONDS = 300
DEFAULT_RETENTION_DAYS = 30


class _SweepState:
    """Último barrido del proceso; el lock solo protege lecturas/escrituras en memoria."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.last_sweep_at: Optional[datetime] = None
        self.last_result: Optional[SweepResult] = None
        self.run_count = 0

    def try_claim(self, now: datetime, min_interval: timedelta) -> bool:
        """Check-and-set: reserva el turno de barrido si ya venció el intervalo."""
        with self.lock:
            if self.last_sweep_at is not None and now - self.last_sweep_at < min_interval:
                return False
            self.last_sweep_at = now
            return True

    def record(self, result: SweepResult) -> None:
        with self.lock:
            if result.started_at is not None and (
                self.last_sweep_at is None or result.started_at > self.last_sweep_at
            ):
                self.last_sweep_at = result.started_at
            self.last_result = result
            self.run_count += 1

    def reset(self) -> None:
        with self.lock:
            self.last_sweep_at = None
            self.last_result = None
            self.run_count = 0


_state = _SweepState()


def reset_sweep_state() -> None:
    """Olvida el último barrido (el siguiente sweep_if_due se ejecuta)."""
    _state.reset()


class SweeperService:
    """Limpieza de reservas expiradas y retención de reservas terminales."""

    def __init__(
        self,
        clock: Clock = utcnow,
        min_interval_seconds: int = DEFAULT_MIN_INTERVAL_SECONDS,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        reservation_repo: Optional[ReservationRepository] = None,
    ):
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        if retention_days <= 0:
            raise ValueError("retention_days must be > 0")
        self.clock = clock
        self.min_interval = timedelta(seconds=min_interval_seconds)
        self.retention = timedelta(days=retention_days)
        self.reservation_repo = reservation_repo or ReservationRepository()

    async def sweep_expired(self, session: AsyncSession) -> int:
        """Cancela toda reserva pendiente con expires_at < now. Devuelve cuántas."""
        now = self.clock()
        try:
            count = await self.reservation_repo.cancel_expired(session, now)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise

        observe_sweep(expired=count, purged=0)
        if count > 0:
            logger.info("Expired %d pending reservations (now=%s)", count, now.isoformat())
        else:
            logger.debug("No expired reservations to sweep")
        return count

    async def purge_old(
        self,
        session: AsyncSession,
        older_than: Optional[timedelta] = None,
    ) -> int:
        """Elimina reservas terminales sin cambios dentro de la ventana de retención."""
        cutoff = self.clock() - (older_than or self.retention)
        try:
            count = await self.reservation_repo.purge_terminal(session, cutoff)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise

        observe_sweep(expired=0, purged=count)
        if count > 0:
            logger.info("Purged %d terminal reservations older than %s", count, cutoff.isoformat())
        return count

    async def force_sweep(self, session: AsyncSession) -> SweepResult:
        """Limpieza completa (expiradas + retención) ignorando el throttle."""
        return await self._run_cleanup(session, forced=True)

    async def sweep_if_due(
        self,
        session: AsyncSession,
        min_interval_seconds: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Ejecuta la limpieza completa solo si pasó el intervalo mínimo
        desde el último barrido de este proceso.

        `min_interval_seconds` sustituye al intervalo configurado solo en
        esta llamada.

        Returns:
            {"executed": bool, "result": SweepResult | None}
        """
        if min_interval_seconds is None:
            min_interval = self.min_interval
        elif min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        else:
            min_interval = timedelta(seconds=min_interval_seconds)

        if not _state.try_claim(self.clock(), min_interval):
            logger.debug("Sweep skipped: interval of %ss not elapsed", min_interval.total_seconds())
            return {"executed": False, "result": None}
        result = await self._run_cleanup(session, forced=False)
        return {"executed": True, "result": result}

    async def _run_cleanup(self, session: AsyncSession, forced: bool) -> SweepResult:
        result = SweepResult(forced=forced, started_at=self.clock())

        try:
            result.expired = await self.sweep_expired(session)
        except SQLAlchemyError as e:
            logger.error("Sweep of expired reservations failed: %s", e)
            result.errors.append(f"sweep_expired: {e}")

        try:
            result.purged = await self.purge_old(session)
        except SQLAlchemyError as e:
            logger.error("Purge of old reservations failed: %s", e)
            result.errors.append(f"purge_old: {e}")

        result.finished_at = self.clock()
        _state.record(result)
        logger.info(
            "Reservation cleanup finished: expired=%d purged=%d errors=%d forced=%s",
            result.expired, result.purged, len(result.errors), forced,
        )
        return result

    async def get_sweep_status(self, session: AsyncSession) -> dict[str, Any]:
        """Estado del barrido: último resultado, throttle, pendientes y job programado."""
        from creditledger.shared.scheduler import get_scheduler

        now = self.clock()
        with _state.lock:
            last_sweep_at = _state.last_sweep_at
            last_result = _state.last_result
            run_count = _state.run_count

        if last_sweep_at is None:
            seconds_until_due = 0.0
        else:
            remaining = (last_sweep_at + self.min_interval) - now
            seconds_until_due = max(0.0, remaining.total_seconds())

        job = get_scheduler().get_job_status(SWEEP_JOB_ID)
        return {
            "last_sweep_at": to_iso8601(last_sweep_at),
            "last_result": last_result.to_dict() if last_result is not None else None,
            "run_count": run_count,
            "min_interval_seconds": self.min_interval.total_seconds(),
            "seconds_until_due": seconds_until_due,
            "is_due": seconds_until_due == 0.0,
            "pending_reservations": await self.reservation_repo.count_pending(session),
            "expired_pending_reservations": await self.reservation_repo.count_pending(session, now),
            "job": {
                "id": SWEEP_JOB_ID,
                "registered": job is not None,
                "next_run": to_iso8601(job["next_run"]) if job and job["next_run"] else None,
            },
        }


__all__ = [
    "SWEEP_JOB_ID",
    "DEFAULT_MIN_INTERVAL_SECONDS",
    "DEFAULT_RETENTION_DAYS",
    "SweeperService",
    "reset_sweep_state",
]

# Fin del archivo creditledger/modules/credits/services/sweeper_service.py
