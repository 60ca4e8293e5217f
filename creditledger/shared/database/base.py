# -*- coding: utf-8 -*-
"""
creditledger/shared/database/base.py

Base declarativa y convención de nombres para modelos ORM.

Este módulo proporciona:
- Base: clase base declarativa de SQLAlchemy
- NAMING_CONVENTION: convención de nombres para constraints
- str_enum: helper para persistir enums Python como su valor string

Autor: CreditLedger
Fecha: 2026-10-05
"""

from __future__ import annotations

from enum import Enum
from typing import Type

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# ===== NAMING CONVENTION =====
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


# ===== BASE DECLARATIVA =====
class Base(DeclarativeBase):
    """
    Base declarativa para todos los modelos ORM de CreditLedger.
    Incluye convención de nombres para constraints.
    """
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# ===== HELPER GENÉRICO PARA ENUMS =====
def str_enum(enum_cls: Type[Enum], length: int = 16) -> SQLEnum:
    """
    Devuelve un tipo Enum de SQLAlchemy que guarda el `.value` del enum
    en una columna VARCHAR (sin tipo ENUM nativo).

    Uso típico:

        status: Mapped[ReservationStatus] = mapped_column(
            str_enum(ReservationStatus),
            nullable=False,
        )

    Funciona igual en PostgreSQL y SQLite; el conjunto de valores
    válidos se valida del lado de Python.
    """

    def _values(_: object) -> list[str]:
        return [e.value for e in enum_cls]  # type: ignore[arg-type]

    return SQLEnum(
        enum_cls,
        native_enum=False,
        create_constraint=False,
        length=length,
        values_callable=_values,
    )


__all__ = ["Base", "NAMING_CONVENTION", "str_enum"]

# Fin del archivo creditledger/shared/database/base.py
