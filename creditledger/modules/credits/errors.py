# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/errors.py

Excepciones de dominio para el módulo de créditos.

Cada excepción lleva un `code` estable (lo usa el facade para construir
el OperationResult) y un dict `details` con los datos que el llamador
necesita para decidir si reintenta, vuelve a reservar o informa al usuario.

Autor: CreditLedger
Fecha: 2026-10-06
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class CreditsError(Exception):
    """Base de todos los errores del ledger de créditos."""

    code = "CREDITS_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: dict[str, Any] = details
        super().__init__(message)


class UserNotFound(CreditsError):
    """No existe fila de saldo para el usuario."""

    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Usuario sin saldo registrado: {user_id}", user_id=user_id)


class ReservationNotFound(CreditsError):
    """La reserva no existe o no pertenece al usuario."""

    code = "RESERVATION_NOT_FOUND"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(
            f"Reserva no encontrada: {reservation_id}",
            reservation_id=reservation_id,
        )


class ItemNotFound(CreditsError):
    """El item no existe en la tabla de precios o está inactivo."""

    code = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, inactive: bool = False):
        self.item_id = item_id
        self.inactive = inactive
        msg = f"Item inactivo: {item_id}" if inactive else f"Item no encontrado: {item_id}"
        super().__init__(msg, item_id=item_id, inactive=inactive)


class TransactionNotFound(CreditsError):
    """La transacción original (refund) no existe o es de otro usuario."""

    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(
            f"Transacción no encontrada: {transaction_id}",
            transaction_id=transaction_id,
        )


class InsufficientCredits(CreditsError):
    """Saldo por debajo del monto requerido."""

    code = "INSUFFICIENT_CREDITS"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Créditos insuficientes: requeridos {required}, disponibles {available}",
            required=required,
            available=available,
        )


class ReservationExpired(CreditsError):
    """La reserva pasó su fecha límite sin confirmarse."""

    code = "RESERVATION_EXPIRED"

    def __init__(self, reservation_id: str, expires_at: datetime):
        self.reservation_id = reservation_id
        self.expires_at = expires_at
        super().__init__(
            f"Reserva expirada: {reservation_id}",
            reservation_id=reservation_id,
            expires_at=expires_at.isoformat(),
            status="cancelled",
        )


class CannotCancelConfirmed(CreditsError):
    """Una reserva confirmada ya movió créditos: se usa refund, no cancel."""

    code = "CANNOT_CANCEL_CONFIRMED"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(
            f"No se puede cancelar una reserva confirmada: {reservation_id}",
            reservation_id=reservation_id,
            status="confirmed",
        )


class CannotConfirmCancelled(CreditsError):
    """Otro camino (cancel o limpieza) terminó la reserva antes que confirm."""

    code = "CANNOT_CONFIRM_CANCELLED"

    def __init__(self, reservation_id: str, message: Optional[str] = None):
        self.reservation_id = reservation_id
        super().__init__(
            message or f"No se puede confirmar una reserva cancelada: {reservation_id}",
            reservation_id=reservation_id,
            status="cancelled",
        )


class ReservationCancelled(CannotConfirmCancelled):
    """La reserva ya estaba cancelada al momento de confirmar."""

    code = "RESERVATION_CANCELLED"

    def __init__(self, reservation_id: str):
        super().__init__(reservation_id, f"Reserva cancelada: {reservation_id}")


class CreditsValidationError(CreditsError):
    """Entrada mal formada o regla de negocio violada (p.ej. sobre-reembolso)."""

    code = "VALIDATION_ERROR"


class StorageUnavailable(CreditsError):
    """Fallo de I/O del backend; el llamador puede reintentar con backoff."""

    code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str = "Almacenamiento no disponible", **details: Any):
        super().__init__(message, **details)


class ReconciliationRequired(CreditsError):
    """
    La reserva quedó confirmada pero el cargo al saldo falló.

    No se reintenta automáticamente: requiere conciliación manual.
    """

    code = "RECONCILIATION_REQUIRED"

    def __init__(self, reservation_id: str, user_id: str, amount: int, cause: str):
        self.reservation_id = reservation_id
        self.user_id = user_id
        self.amount = amount
        super().__init__(
            f"Reserva {reservation_id} confirmada sin cargo aplicado; requiere conciliación",
            reservation_id=reservation_id,
            user_id=user_id,
            amount=amount,
            cause=cause,
        )


__all__ = [
    "CreditsError",
    "UserNotFound",
    "ReservationNotFound",
    "ItemNotFound",
    "TransactionNotFound",
    "InsufficientCredits",
    "ReservationExpired",
    "CannotCancelConfirmed",
    "CannotConfirmCancelled",
    "ReservationCancelled",
    "CreditsValidationError",
    "StorageUnavailable",
    "ReconciliationRequired",
]

# Fin del archivo creditledger/modules/credits/errors.py
