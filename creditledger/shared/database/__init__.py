# -*- coding: utf-8 -*-
"""
creditledger/shared/database/__init__.py

Re-exporta utilidades comunes de base de datos.

Autor: CreditLedger
Fecha: 2026-10-05
"""

from __future__ import annotations

from .base import Base, NAMING_CONVENTION, str_enum
from .database import (
    build_engine,
    get_engine,
    get_session_factory,
    session_scope,
    check_database_health,
    create_schema,
    dispose_engine,
)

__all__ = [
    "Base",
    "NAMING_CONVENTION",
    "str_enum",
    "build_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "check_database_health",
    "create_schema",
    "dispose_engine",
]

# Fin del archivo creditledger/shared/database/__init__.py
