# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/jobs/sweep_reservations_job.py

Job programado que limpia reservas expiradas (sweep_if_due).

Autor: CreditLedger
Fecha: 2026-10-10
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from creditledger.shared.config import BaseAppSettings, get_settings
from creditledger.shared.database import get_session_factory
from creditledger.shared.scheduler import get_scheduler
from ..services.sweeper_service import SWEEP_JOB_ID, SweeperService

logger = logging.getLogger(__name__)


def build_sweeper(settings: Optional[BaseAppSettings] = None) -> SweeperService:
    settings = settings or get_settings()
    return SweeperService(
        min_interval_seconds=settings.sweep_min_interval_seconds,
        retention_days=settings.reservation_retention_days,
    )


async def run_reservation_sweep(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    sweeper: Optional[SweeperService] = None,
) -> Optional[dict[str, Any]]:
    """
    Ejecuta sweep_if_due con una sesión propia.

    Los errores se registran y no se propagan al scheduler: la siguiente
    ejecución vuelve a intentarlo.

    Returns:
        {"executed": bool, "result": SweepResult | None} o None si falló
    """
    factory = session_factory or get_session_factory()
    sweeper = sweeper or build_sweeper()
    try:
        async with factory() as session:
            outcome = await sweeper.sweep_if_due(session)
    except Exception:
        logger.exception("Scheduled reservation sweep failed")
        return None

    if outcome["executed"]:
        result = outcome["result"]
        logger.info(
            "Scheduled reservation sweep: expired=%d purged=%d errors=%d",
            result.expired, result.purged, len(result.errors),
        )
    return outcome


def register_sweep_job(
    interval_minutes: Optional[int] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    settings: Optional[BaseAppSettings] = None,
) -> str:
    """
    Registra el job de limpieza en el scheduler global.

    Returns:
        ID del job registrado
    """
    settings = settings or get_settings()
    interval = interval_minutes or settings.sweep_job_interval_minutes

    job_id = get_scheduler().add_interval_job(
        func=run_reservation_sweep,
        job_id=SWEEP_JOB_ID,
        minutes=interval,
        session_factory=session_factory,
        sweeper=build_sweeper(settings),
    )

    logger.info(
        "Registered reservation sweep job: id=%s interval=%d min",
        job_id,
        interval,
    )
    return job_id


def unregister_sweep_job() -> bool:
    """Quita el job de limpieza del scheduler global. False si no estaba registrado."""
    removed = get_scheduler().remove_job(SWEEP_JOB_ID)
    if removed:
        logger.info("Unregistered reservation sweep job: id=%s", SWEEP_JOB_ID)
    return removed


__all__ = [
    "run_reservation_sweep",
    "register_sweep_job",
    "unregister_sweep_job",
    "build_sweeper",
    "SWEEP_JOB_ID",
]
