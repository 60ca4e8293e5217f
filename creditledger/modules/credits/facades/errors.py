# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/facades/errors.py

Traducción de excepciones a OperationResult para el facade.

- CreditsError             -> su propio code/details
- pydantic.ValidationError -> VALIDATION_ERROR
- errores de conectividad de SQLAlchemy -> STORAGE_UNAVAILABLE
- DataError (valor fuera de rango para la columna) -> VALIDATION_ERROR

Cualquier otra excepción se propaga.

Autor: CreditLedger
Fecha: 2026-10-11
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import DataError, DBAPIError, InterfaceError, OperationalError

from ..errors import CreditsError, CreditsValidationError, StorageUnavailable
from ..results import OperationResult


def is_storage_unavailable(exc: BaseException) -> bool:
    """True si el error indica que el backend no está disponible."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, ConnectionError)


def validation_result(exc: ValidationError) -> OperationResult[Any]:
    return OperationResult.fail(
        CreditsValidationError.code,
        "Datos de entrada inválidos",
        errors=exc.errors(include_url=False, include_context=False),
    )


def error_result(exc: BaseException) -> Optional[OperationResult[Any]]:
    """OperationResult de fallo para `exc`, o None si no es un error traducible."""
    if isinstance(exc, CreditsError):
        return OperationResult.fail(exc.code, exc.message, **exc.details)
    if isinstance(exc, ValidationError):
        return validation_result(exc)
    if is_storage_unavailable(exc):
        return OperationResult.fail(
            StorageUnavailable.code,
            "Almacenamiento no disponible; reintentar con backoff",
            cause=type(exc).__name__,
        )
    if isinstance(exc, DataError):
        return OperationResult.fail(
            CreditsValidationError.code,
            "Valor fuera del rango admitido por el almacenamiento",
            cause=type(exc.orig).__name__ if exc.orig is not None else type(exc).__name__,
        )
    return None


__all__ = ["error_result", "validation_result", "is_storage_unavailable"]
