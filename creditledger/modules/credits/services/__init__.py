# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/services/__init__.py

Servicios del ledger de créditos.

Autor: CreditLedger
Fecha: 2026-10-09
"""

from .balance_service import BalanceService
from .ledger_service import LedgerService
from .reservation_service import ReservationService
from .spend_service import SpendService
from .sweeper_service import SWEEP_JOB_ID, SweeperService, reset_sweep_state

__all__ = [
    "BalanceService",
    "LedgerService",
    "ReservationService",
    "SpendService",
    "SweeperService",
    "SWEEP_JOB_ID",
    "reset_sweep_state",
]
