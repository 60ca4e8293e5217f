# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/__init__.py

Módulo de créditos: saldo, ledger append-only, reservas en dos fases,
limpieza de reservas expiradas y monitoreo de consistencia.

Autor: CreditLedger
Fecha: 2026-10-06
"""

from .enums import ReservationStatus, TransactionType
from .models import CreditReservation, CreditTransaction, PriceableItem, UserBalance

__all__ = [
    "TransactionType",
    "ReservationStatus",
    "UserBalance",
    "CreditTransaction",
    "CreditReservation",
    "PriceableItem",
]
