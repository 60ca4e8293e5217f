# -*- coding: utf-8 -*-
"""
creditledger/shared/scheduler/__init__.py

Sistema de jobs programados usando APScheduler.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from .scheduler_service import SchedulerService, get_scheduler

__all__ = [
    "SchedulerService",
    "get_scheduler",
]
