# -*- coding: utf-8 -*-
"""
creditledger/shared/scheduler/scheduler_service.py

Envoltorio de APScheduler (AsyncIOScheduler) para los jobs periódicos
del ledger. Hoy el único job es la limpieza de reservas expiradas
(credits_sweep_expired_reservations), pero el servicio no asume nada
del dominio: registra corrutinas a intervalo y expone su estado.

Cada job corre con una sola instancia a la vez; las ejecuciones
perdidas se combinan en una (coalesce).

Autor: CreditLedger
Fecha: 2026-10-06
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Tolerancia ante retrasos del event loop antes de descartar una ejecución
MISFIRE_GRACE_SECONDS = 30


def _describe(job: Job) -> dict[str, Any]:
    # Un job agregado antes de start() todavía no tiene next_run_time
    return {
        "id": job.id,
        "name": job.name,
        "next_run": getattr(job, "next_run_time", None),
        "trigger": str(job.trigger),
        "pending": job.pending,
    }


class SchedulerService:
    """Scheduler en memoria ligado al event loop del proceso."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": MISFIRE_GRACE_SECONDS,
            },
            timezone="UTC",
        )
        self._started = False

    def start(self) -> None:
        """Arranca el scheduler; requiere un event loop en ejecución."""
        if self._started:
            return
        self._scheduler.start()
        self._started = True
        logger.info("Scheduler started with %d job(s)", len(self._scheduler.get_jobs()))

    def shutdown(self, wait: bool = True) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=wait)
        self._started = False
        logger.info("Scheduler stopped")

    def add_interval_job(
        self,
        func: Callable[..., Any],
        job_id: str,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        **kwargs: Any,
    ) -> str:
        """
        Registra `func` cada hours/minutes/seconds con `kwargs` como argumentos.
        Un job con el mismo `job_id` se reemplaza.
        """
        interval = timedelta(hours=hours, minutes=minutes, seconds=seconds)
        if interval.total_seconds() <= 0:
            raise ValueError("interval must be > 0")

        # Antes de start() APScheduler guarda los jobs como pendientes y no
        # aplica replace_existing hasta arrancar
        if self._scheduler.get_job(job_id) is not None:
            self._scheduler.remove_job(job_id)

        self._scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(hours=hours, minutes=minutes, seconds=seconds),
            id=job_id,
            name=job_id,
            replace_existing=True,
            kwargs=kwargs,
        )
        logger.info("Interval job registered: id=%s every=%s", job_id, interval)
        return job_id

    def remove_job(self, job_id: str) -> bool:
        """False si el job no estaba registrado."""
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning("Cannot remove job %s: not registered", job_id)
            return False
        logger.info("Job removed: id=%s", job_id)
        return True

    def get_jobs(self) -> list[dict[str, Any]]:
        return [_describe(job) for job in self._scheduler.get_jobs()]

    def get_job_status(self, job_id: str) -> Optional[dict[str, Any]]:
        job = self._scheduler.get_job(job_id)
        return _describe(job) if job is not None else None

    @property
    def is_running(self) -> bool:
        return self._started and self._scheduler.running


_scheduler_instance: Optional[SchedulerService] = None


def get_scheduler() -> SchedulerService:
    """Scheduler global del proceso (se crea en el primer uso)."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = SchedulerService()
    return _scheduler_instance


__all__ = ["SchedulerService", "get_scheduler", "MISFIRE_GRACE_SECONDS"]

# Fin del archivo creditledger/shared/scheduler/scheduler_service.py
