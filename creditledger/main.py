# -*- coding: utf-8 -*-
"""
creditledger/main.py

Ciclo de vida de la aplicación: configuración de logging, registro del
job de limpieza de reservas y arranque/parada del scheduler.

Uso (dentro del event loop del proceso anfitrión):

    from creditledger.main import startup, shutdown

    await startup()
    ...
    await shutdown()

Autor: CreditLedger
Fecha: 2026-10-12
"""

from __future__ import annotations

import logging
from typing import Optional

from creditledger.shared.config import BaseAppSettings, get_settings, setup_logging
from creditledger.shared.database import dispose_engine
from creditledger.shared.scheduler import get_scheduler
from creditledger.modules.credits.jobs import register_sweep_job

logger = logging.getLogger(__name__)


async def startup(settings: Optional[BaseAppSettings] = None) -> None:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    logger.info(
        "Starting %s %s (env=%s)",
        settings.app_name, settings.app_version, settings.python_env,
    )

    scheduler = get_scheduler()
    if settings.sweep_job_enabled:
        register_sweep_job(settings=settings)
    else:
        logger.info("Reservation sweep job disabled (CREDITS_SWEEP_JOB_ENABLED=false)")
    scheduler.start()


async def shutdown() -> None:
    scheduler = get_scheduler()
    if scheduler.is_running:
        scheduler.shutdown(wait=False)
    await dispose_engine()
    logger.info("Shutdown complete")


__all__ = ["startup", "shutdown"]

# Fin del archivo creditledger/main.py
