# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/models.py

Modelos ORM para el sistema de créditos.

Tablas:
- user_credits          (saldo por usuario)
- credit_transactions   (ledger append-only)
- credit_reservations   (reservas en dos fases)
- item_costs            (tabla de precios)

Los timestamps se asignan desde el reloj de los servicios; el default
de columna es solo respaldo para inserciones fuera de ellos.

Autor: CreditLedger
Fecha: 2026-10-06
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.shared.database.base import Base, str_enum
from creditledger.shared.utils.datetime_helpers import utcnow
from .enums import ReservationStatus, TransactionType


def new_id() -> str:
    """Identificador opaco (UUID4 en texto)."""
    return str(uuid.uuid4())


class UserBalance(Base):
    """
    Saldo de créditos del usuario.

    Invariante: balance == total_earned - total_spent.
    Solo se muta vía BalanceRepository.apply_delta.
    """

    __tablename__ = "user_credits"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_spent: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "total_earned >= 0 AND total_spent >= 0",
            name="counters_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserBalance user={self.user_id} balance={self.balance} "
            f"earned={self.total_earned} spent={self.total_spent}>"
        )


class CreditTransaction(Base):
    """
    Ledger de movimientos de créditos; tras el INSERT solo cambia refunded_amount.

    - amount: con signo (negativo para SPENT), nunca 0
    - balance_after: saldo resultante tras aplicar el movimiento
    - refunded_amount: reembolsado hasta ahora contra un SPENT (tope: -amount)
    - uq_credit_transactions_reservation_spent: a lo sumo un SPENT por reserva
    """

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    type: Mapped[TransactionType] = mapped_column(
        str_enum(TransactionType),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    related_item_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reservation_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    original_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        index=True,
    )

    # Único campo mutable: acumulado de reembolsos contra este cargo
    refunded_amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    # "metadata" está reservado en DeclarativeBase; se mapea con otro atributo
    tx_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    __table_args__ = (
        CheckConstraint("amount <> 0", name="amount_nonzero"),
        CheckConstraint("refunded_amount >= 0", name="refunded_amount_non_negative"),
        Index(
            "uq_credit_transactions_reservation_spent",
            "reservation_id",
            unique=True,
            postgresql_where=text("type = 'spent'"),
            sqlite_where=text("type = 'spent'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction id={self.id} user={self.user_id} "
            f"type={self.type.value} amount={self.amount:+d} after={self.balance_after}>"
        )


class CreditReservation(Base):
    """
    Reserva de créditos (cotización congelada).

    Estados: pending -> confirmed | cancelled (ambos terminales).
    `amount` se fija al crear y nunca se recalcula.
    """

    __tablename__ = "credit_reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ReservationStatus] = mapped_column(
        str_enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditReservation id={self.id} user={self.user_id} "
            f"item={self.item_id} amount={self.amount} status={self.status.value}>"
        )


class PriceableItem(Base):
    """Costo en créditos de un item cobrable (datos de referencia)."""

    __tablename__ = "item_costs"

    item_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint("cost >= 0", name="cost_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PriceableItem {self.item_id} cost={self.cost} active={self.is_active}>"


__all__ = [
    "new_id",
    "UserBalance",
    "CreditTransaction",
    "CreditReservation",
    "PriceableItem",
]

# Fin del archivo creditledger/modules/credits/models.py
