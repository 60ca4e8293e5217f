# -*- coding: utf-8 -*-
"""
tests/modules/credits/test_balance_service.py

Tests del Balance Store:
- ensure_balance crea la fila una sola vez (con o sin regalo inicial)
- apply_delta mueve saldo, contador y ledger en una sola unidad
- la guarda de no-negativo rechaza cargos sin escribir nada

Autor: CreditLedger
Fecha: 2026-10-13
"""

import pytest
from sqlalchemy import func, select

from creditledger.modules.credits.enums import TransactionType
from creditledger.modules.credits.errors import InsufficientCredits, UserNotFound
from creditledger.modules.credits.models import CreditTransaction
from creditledger.modules.credits.repositories import counter_deltas


async def _tx_count(session, user_id):
    stmt = select(func.count()).select_from(CreditTransaction).where(CreditTransaction.user_id == user_id)
    return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_get_balance_unknown_user_returns_none(db_session, balance_service):
    """Un usuario sin movimientos no tiene fila de saldo."""
    assert await balance_service.get_balance(db_session, "ghost") is None


@pytest.mark.asyncio
async def test_ensure_balance_creates_zero_row(db_session, balance_service):
    row = await balance_service.ensure_balance(db_session, "u1")

    assert (row.balance, row.total_earned, row.total_spent) == (0, 0, 0)
    assert await _tx_count(db_session, "u1") == 0


@pytest.mark.asyncio
async def test_ensure_balance_with_grant_records_bonus_once(db_session, balance_service):
    """El regalo inicial se registra como BONUS solo al crear la fila."""
    first = await balance_service.ensure_balance(db_session, "u1", initial_grant=10)
    second = await balance_service.ensure_balance(db_session, "u1", initial_grant=10)

    assert first.balance == 10
    assert second.balance == 10
    assert second.total_earned == 10

    txs = (await db_session.execute(
        select(CreditTransaction).where(CreditTransaction.user_id == "u1")
    )).scalars().all()
    assert len(txs) == 1
    assert txs[0].type is TransactionType.BONUS
    assert txs[0].amount == 10
    assert txs[0].balance_after == 10


@pytest.mark.asyncio
async def test_apply_delta_unknown_user_raises(db_session, balance_service):
    with pytest.raises(UserNotFound):
        await balance_service.apply_delta(db_session, "ghost", 5, TransactionType.EARNED, "x")


@pytest.mark.asyncio
async def test_apply_delta_create_if_missing(db_session, balance_service):
    mutation = await balance_service.apply_delta(
        db_session, "u1", 7, TransactionType.EARNED, "compra", create_if_missing=True
    )

    assert mutation.new_balance == 7
    row = await balance_service.get_balance(db_session, "u1")
    assert (row.balance, row.total_earned, row.total_spent) == (7, 7, 0)


@pytest.mark.asyncio
async def test_apply_delta_debit_updates_spent_counter(db_session, balance_service):
    await balance_service.ensure_balance(db_session, "u1", initial_grant=10)

    mutation = await balance_service.apply_delta(
        db_session, "u1", -4, TransactionType.SPENT, "uso", related_item_id="img-1"
    )

    assert mutation.new_balance == 6
    row = await balance_service.get_balance(db_session, "u1")
    assert (row.balance, row.total_earned, row.total_spent) == (6, 10, 4)

    tx = await db_session.get(CreditTransaction, mutation.transaction_id)
    assert tx.amount == -4
    assert tx.balance_after == 6
    assert tx.related_item_id == "img-1"


@pytest.mark.asyncio
async def test_apply_delta_guard_rejects_overdraft_without_writing(db_session, balance_service):
    """Un cargo mayor al saldo falla con required/available y no deja rastro."""
    await balance_service.ensure_balance(db_session, "u1", initial_grant=3)

    with pytest.raises(InsufficientCredits) as exc_info:
        await balance_service.apply_delta(db_session, "u1", -5, TransactionType.SPENT, "uso")

    assert exc_info.value.required == 5
    assert exc_info.value.available == 3
    row = await balance_service.get_balance(db_session, "u1")
    assert (row.balance, row.total_spent) == (3, 0)
    assert await _tx_count(db_session, "u1") == 1  # solo el BONUS


def test_counter_deltas_by_type():
    assert counter_deltas(TransactionType.SPENT, -3) == (0, 3)
    assert counter_deltas(TransactionType.EARNED, 3) == (3, 0)
    assert counter_deltas(TransactionType.BONUS, 3) == (3, 0)
    assert counter_deltas(TransactionType.REFUND, 3) == (3, 0)


@pytest.mark.parametrize(
    "tx_type,amount",
    [
        (TransactionType.SPENT, 5),
        (TransactionType.SPENT, 0),
        (TransactionType.EARNED, -5),
        (TransactionType.REFUND, 0),
    ],
)
def test_counter_deltas_rejects_wrong_sign(tx_type, amount):
    with pytest.raises(ValueError):
        counter_deltas(tx_type, amount)
