# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/enums.py

Enums para el sistema de créditos.

Autor: CreditLedger
Fecha: 2026-10-06
"""

from enum import Enum


class TransactionType(str, Enum):
    """
    Tipo de movimiento en el ledger de créditos.

    EARNED/BONUS/REFUND abonan (+) y suman a total_earned;
    SPENT carga (-) y suma a total_spent.
    """
    EARNED = "earned"  # Compra / abono regular
    SPENT = "spent"    # Consumo (confirm o cargo directo)
    REFUND = "refund"  # Devolución
    BONUS = "bonus"    # Regalo (p.ej. créditos de bienvenida)


class ReservationStatus(str, Enum):
    """
    Estado de una reservación de créditos.

    PENDING es el único estado no terminal.
    """
    PENDING = "pending"      # Creada, a la espera de confirm/cancel
    CONFIRMED = "confirmed"  # Cobrada (terminal)
    CANCELLED = "cancelled"  # Cancelada o expirada (terminal)

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.PENDING


# Tipos aceptados por earn()
EARN_TYPES = frozenset({
    TransactionType.EARNED,
    TransactionType.BONUS,
    TransactionType.REFUND,
})


__all__ = [
    "TransactionType",
    "ReservationStatus",
    "EARN_TYPES",
]
