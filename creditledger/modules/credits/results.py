# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/results.py

Resultados tipados de las operaciones del ledger y envoltorio
OperationResult que expone el facade.

Autor: CreditLedger
Fecha: 2026-10-06
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from creditledger.shared.utils.datetime_helpers import to_iso8601


def _jsonable(value: Any) -> Any:
    """Convierte datetimes/enums anidados a tipos serializables."""
    if isinstance(value, datetime):
        return to_iso8601(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))  # type: ignore[call-overload]


@dataclass
class BalanceMutation(_Serializable):
    """Resultado de apply_delta / earn / refund."""
    transaction_id: Optional[str]
    new_balance: int


@dataclass
class ReservationResult(_Serializable):
    """Reserva creada (cotización congelada)."""
    reservation_id: str
    user_id: str
    item_id: str
    amount: int
    expires_at: datetime


@dataclass
class ConfirmResult(_Serializable):
    """Resultado de confirm; already_confirmed indica la rama idempotente."""
    reservation_id: str
    transaction_id: Optional[str]
    new_balance: int
    amount_spent: int
    already_confirmed: bool = False


@dataclass
class CancelResult(_Serializable):
    reservation_id: str
    amount: int
    reason: Optional[str] = None
    already_cancelled: bool = False


@dataclass
class SpendResult(_Serializable):
    transaction_id: Optional[str]
    new_balance: int
    amount_spent: int


@dataclass
class TransactionView(_Serializable):
    """Vista de solo lectura de una fila del ledger."""
    id: str
    type: str
    amount: int
    balance_after: int
    description: Optional[str]
    related_item_id: Optional[str]
    reservation_id: Optional[str]
    original_transaction_id: Optional[str]
    created_at: datetime


@dataclass
class CreditsSummary(_Serializable):
    user_id: str
    balance: int = 0
    total_earned: int = 0
    total_spent: int = 0
    recent_transactions: List[TransactionView] = field(default_factory=list)


@dataclass
class SweepResult(_Serializable):
    """Resultado de una ronda de limpieza de reservas."""
    expired: int = 0
    purged: int = 0
    errors: List[str] = field(default_factory=list)
    forced: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return not self.errors


# ===== Envoltorio para el facade =====

@dataclass
class ErrorInfo(_Serializable):
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """
    Resultado tipado de una operación pública: éxito con `data`
    o fallo con `error` (nunca ambos).
    """
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls, data: T) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, **details: Any) -> "OperationResult[T]":
        return cls(success=False, error=ErrorInfo(code=code, message=message, details=details))

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            data = self.data
            if is_dataclass(data) and not isinstance(data, type):
                data = asdict(data)
            payload["data"] = _jsonable(data)
        else:
            payload["error"] = self.error.to_dict() if self.error else None
        return payload


__all__ = [
    "BalanceMutation",
    "ReservationResult",
    "ConfirmResult",
    "CancelResult",
    "SpendResult",
    "TransactionView",
    "CreditsSummary",
    "SweepResult",
    "ErrorInfo",
    "OperationResult",
]

# Fin del archivo creditledger/modules/credits/results.py
