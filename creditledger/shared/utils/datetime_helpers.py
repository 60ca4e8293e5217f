# -*- coding: utf-8 -*-
"""
creditledger/shared/utils/datetime_helpers.py

Utilidades para manejo consistente de timestamps UTC e ISO 8601.

Los servicios reciben un `clock` (callable sin argumentos que devuelve
un datetime UTC timezone-aware); `utcnow` es el reloj por defecto.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from datetime import datetime, timezone
from typing import Callable, Optional

# Reloj inyectable
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """
    Retorna el timestamp UTC actual (timezone-aware).

    Examples:
        >>> now = utcnow()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def from_iso8601(iso_string: str) -> datetime:
    """
    Parsea una cadena ISO 8601 y retorna datetime UTC timezone-aware.

    Examples:
        >>> dt = from_iso8601("2026-10-26T14:30:00Z")
        >>> dt.tzinfo == timezone.utc
        True
    """
    dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
    return ensure_utc(dt)


def ensure_utc(dt: datetime) -> datetime:
    """
    Asegura que un datetime sea UTC timezone-aware.

    SQLite devuelve datetimes naive aunque la columna sea
    DateTime(timezone=True); se interpretan como UTC.

    Examples:
        >>> dt_naive = datetime(2026, 10, 26, 14, 30, 0)
        >>> ensure_utc(dt_naive).tzinfo == timezone.utc
        True
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def to_iso8601(dt: Optional[datetime]) -> Optional[str]:
    """
    Convierte datetime a string ISO 8601 con 'Z' para UTC.

    Examples:
        >>> dt = datetime(2026, 10, 26, 14, 30, 0, tzinfo=timezone.utc)
        >>> to_iso8601(dt)
        '2026-10-26T14:30:00Z'
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace('+00:00', 'Z')


__all__ = ["Clock", "utcnow", "to_iso8601", "from_iso8601", "ensure_utc"]
# Fin del archivo
