# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/jobs/__init__.py

Jobs programados del módulo de créditos.
"""

from .sweep_reservations_job import (
    SWEEP_JOB_ID,
    build_sweeper,
    register_sweep_job,
    run_reservation_sweep,
    unregister_sweep_job,
)

__all__ = [
    "SWEEP_JOB_ID",
    "build_sweeper",
    "register_sweep_job",
    "run_reservation_sweep",
    "unregister_sweep_job",
]
