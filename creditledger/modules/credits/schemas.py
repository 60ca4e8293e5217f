# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/schemas.py

Esquemas de entrada (Pydantic v2) para las operaciones públicas
del ledger de créditos.

Autor: CreditLedger
Fecha: 2026-10-07
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import TransactionType

UsagePeriod = Literal["hour", "day", "week", "month"]

# Tope por operación: cabe en un INTEGER de 32 bits
MAX_CREDITS_PER_OPERATION = 2_147_483_647
MAX_SUMMARY_TRANSACTIONS = 100


class _CreditsRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")


class ReserveCreditsRequest(_CreditsRequest):
    """Reservar créditos para un item cobrable."""

    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1, description="Item cobrable (p.ej. modelo).")
    description: Optional[str] = Field(default=None, max_length=500)


class ConfirmCreditsRequest(_CreditsRequest):
    """Confirmar (cobrar) una reserva pendiente."""

    reservation_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    related_item_id: Optional[str] = Field(
        default=None,
        description="Artefacto generado (p.ej. id de la imagen).",
    )
    description: Optional[str] = Field(default=None, max_length=500)


class CancelReservationRequest(_CreditsRequest):
    reservation_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    reason: Optional[str] = Field(default=None, max_length=500)


class SpendCreditsRequest(_CreditsRequest):
    """Cargo directo sin reserva (operación síncrona)."""

    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    related_item_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)


class EarnCreditsRequest(_CreditsRequest):
    user_id: str = Field(min_length=1)
    amount: int = Field(gt=0, le=MAX_CREDITS_PER_OPERATION, description="Créditos a abonar.")
    type: TransactionType = TransactionType.EARNED
    description: str = Field(min_length=1, max_length=500)
    related_item_id: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: TransactionType) -> TransactionType:
        if value is TransactionType.SPENT:
            raise ValueError("type must be one of earned, bonus, refund")
        return value


class RefundCreditsRequest(_CreditsRequest):
    user_id: str = Field(min_length=1)
    amount: int = Field(gt=0, le=MAX_CREDITS_PER_OPERATION, description="Créditos a devolver.")
    description: str = Field(min_length=1, max_length=500)
    related_item_id: Optional[str] = None
    original_transaction_id: Optional[str] = Field(default=None, min_length=1)


class BalanceRequest(_CreditsRequest):
    user_id: str = Field(min_length=1)
    initial_grant: int = Field(default=0, ge=0, le=MAX_CREDITS_PER_OPERATION)


class SummaryRequest(_CreditsRequest):
    user_id: str = Field(min_length=1)
    transaction_limit: int = Field(default=10, ge=1, le=MAX_SUMMARY_TRANSACTIONS)


class ItemCostRequest(_CreditsRequest):
    item_id: str = Field(min_length=1)


class SweepIfDueRequest(_CreditsRequest):
    min_interval_seconds: Optional[int] = Field(default=None, ge=0)


class SweepJobRequest(_CreditsRequest):
    """Intervalo del job programado (default: CREDITS_SWEEP_JOB_INTERVAL_MINUTES)."""

    interval_minutes: Optional[int] = Field(default=None, ge=1, le=1440)


class UsageMetricsRequest(_CreditsRequest):
    period: UsagePeriod = "day"


class TopUsersRequest(_CreditsRequest):
    limit: int = Field(default=10, ge=1, le=100)


__all__ = [
    "UsagePeriod",
    "MAX_CREDITS_PER_OPERATION",
    "MAX_SUMMARY_TRANSACTIONS",
    "ReserveCreditsRequest",
    "ConfirmCreditsRequest",
    "CancelReservationRequest",
    "SpendCreditsRequest",
    "EarnCreditsRequest",
    "RefundCreditsRequest",
    "BalanceRequest",
    "SummaryRequest",
    "ItemCostRequest",
    "SweepIfDueRequest",
    "SweepJobRequest",
    "UsageMetricsRequest",
    "TopUsersRequest",
]

# Fin del archivo creditledger/modules/credits/schemas.py
