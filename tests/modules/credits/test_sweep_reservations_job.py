# -*- coding: utf-8 -*-
"""
Tests para el job programado de limpieza de reservas.

Cubre:
- Ejecución con sesión propia y throttle
- Errores registrados sin propagarse al scheduler
- Registro del job en el scheduler global
- startup()/shutdown() de la aplicación
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from creditledger.modules.credits.jobs import (
    SWEEP_JOB_ID,
    build_sweeper,
    register_sweep_job,
    run_reservation_sweep,
)
from creditledger.modules.credits.services import SweeperService


@pytest.mark.asyncio
async def test_run_reservation_sweep_executes_then_throttles(session_factory, reservation_service, fund, db_session, clock):
    await fund("u1", 10)
    await reservation_service.reserve(db_session, "u1", "flux-dev")
    clock.advance(minutes=31)
    sweeper = SweeperService(clock=clock, min_interval_seconds=300)

    first = await run_reservation_sweep(session_factory=session_factory, sweeper=sweeper)
    second = await run_reservation_sweep(session_factory=session_factory, sweeper=sweeper)

    assert first["executed"] is True
    assert first["result"].expired == 1
    assert second == {"executed": False, "result": None}


@pytest.mark.asyncio
async def test_run_reservation_sweep_logs_and_swallows_errors(session_factory, caplog):
    sweeper = MagicMock()
    sweeper.sweep_if_due = AsyncMock(side_effect=RuntimeError("boom"))

    with caplog.at_level("ERROR"):
        outcome = await run_reservation_sweep(session_factory=session_factory, sweeper=sweeper)

    assert outcome is None
    assert "Scheduled reservation sweep failed" in caplog.text


def test_build_sweeper_uses_settings(settings):
    sweeper = build_sweeper(settings)
    assert sweeper.min_interval.total_seconds() == settings.sweep_min_interval_seconds
    assert sweeper.retention.days == settings.reservation_retention_days


def test_register_sweep_job(settings):
    scheduler = MagicMock()
    scheduler.add_interval_job.return_value = SWEEP_JOB_ID

    with patch(
        "creditledger.modules.credits.jobs.sweep_reservations_job.get_scheduler",
        return_value=scheduler,
    ):
        job_id = register_sweep_job(interval_minutes=7, settings=settings)

    assert job_id == SWEEP_JOB_ID
    kwargs = scheduler.add_interval_job.call_args.kwargs
    assert kwargs["func"] is run_reservation_sweep
    assert kwargs["job_id"] == SWEEP_JOB_ID
    assert kwargs["minutes"] == 7
    assert isinstance(kwargs["sweeper"], SweeperService)


@pytest.mark.asyncio
async def test_startup_registers_job_when_enabled(settings):
    from creditledger import main

    scheduler = MagicMock()
    scheduler.is_running = True
    enabled = settings.model_copy(update={"sweep_job_enabled": True})

    with patch.object(main, "get_scheduler", return_value=scheduler), \
         patch.object(main, "register_sweep_job") as register, \
         patch.object(main, "setup_logging"), \
         patch.object(main, "dispose_engine", new=AsyncMock()) as dispose:
        await main.startup(enabled)
        register.assert_called_once_with(settings=enabled)
        scheduler.start.assert_called_once()

        await main.shutdown()
        scheduler.shutdown.assert_called_once_with(wait=False)
        dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_startup_skips_job_when_disabled(settings):
    from creditledger import main

    scheduler = MagicMock()
    with patch.object(main, "get_scheduler", return_value=scheduler), \
         patch.object(main, "register_sweep_job") as register, \
         patch.object(main, "setup_logging"):
        await main.startup(settings)

    register.assert_not_called()
    scheduler.start.assert_called_once()
