# -*- coding: utf-8 -*-
"""
tests/modules/credits/test_spend_and_ledger.py

Cargo directo (spend_direct), abonos (earn), reembolsos (refund) y
resumen de cuenta (get_summary).

Autor: CreditLedger
Fecha: 2026-10-13
"""

import pytest
from sqlalchemy import select

from creditledger.modules.credits.enums import TransactionType
from creditledger.modules.credits.errors import (
    CreditsValidationError,
    InsufficientCredits,
    ItemNotFound,
    TransactionNotFound,
    UserNotFound,
)
from creditledger.modules.credits.models import CreditTransaction
from creditledger.modules.credits.repositories import TransactionRepository
from creditledger.modules.credits.services import LedgerService


# ---------------------------------------------------------------------------
# spend_direct
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_spend_direct_debits_and_records_item(db_session, spend_service, balance_service, fund):
    await fund("u1", 10)

    result = await spend_service.spend_direct(db_session, "u1", "flux-pro", related_item_id="img-7")

    assert result.amount_spent == 5
    assert result.new_balance == 5
    tx = await TransactionRepository().get(db_session, result.transaction_id)
    assert tx.type is TransactionType.SPENT
    assert tx.amount == -5
    assert tx.balance_after == 5
    assert tx.description == "Uso de Flux Pro"
    assert tx.related_item_id == "img-7"
    assert tx.reservation_id is None
    assert tx.tx_metadata == {"item_id": "flux-pro"}
    balance = await balance_service.get_balance(db_session, "u1")
    assert (balance.total_earned, balance.total_spent) == (10, 5)


@pytest.mark.asyncio
async def test_spend_direct_exact_balance_reaches_zero(db_session, spend_service, fund):
    await fund("u1", 10)
    result = await spend_service.spend_direct(db_session, "u1", "premium", description="Render final")
    assert result.new_balance == 0


@pytest.mark.asyncio
async def test_spend_direct_insufficient_leaves_no_trace(db_session, spend_service, balance_service, fund):
    await fund("u1", 4)

    with pytest.raises(InsufficientCredits) as exc_info:
        await spend_service.spend_direct(db_session, "u1", "flux-pro")

    assert (exc_info.value.required, exc_info.value.available) == (5, 4)
    assert (await balance_service.get_balance(db_session, "u1")).balance == 4
    spent = (
        await db_session.execute(
            select(CreditTransaction).where(CreditTransaction.type == TransactionType.SPENT)
        )
    ).scalars().all()
    assert spent == []


@pytest.mark.asyncio
async def test_spend_direct_unknown_user(db_session, spend_service):
    with pytest.raises(UserNotFound):
        await spend_service.spend_direct(db_session, "ghost", "flux-dev")


@pytest.mark.asyncio
async def test_spend_direct_inactive_item(db_session, spend_service, fund):
    await fund("u1", 10)
    with pytest.raises(ItemNotFound):
        await spend_service.spend_direct(db_session, "u1", "retired")


@pytest.mark.asyncio
async def test_spend_direct_free_item_skips_ledger(db_session, spend_service, fund):
    await fund("u1", 3)
    result = await spend_service.spend_direct(db_session, "u1", "flux-schnell")
    assert result.transaction_id is None
    assert result.new_balance == 3


# ---------------------------------------------------------------------------
# earn
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_earn_creates_balance_and_counts_as_earned(db_session, ledger_service, balance_service):
    mutation = await ledger_service.earn(db_session, "new-user", 25, TransactionType.BONUS, "Promo")

    assert mutation.new_balance == 25
    balance = await balance_service.get_balance(db_session, "new-user")
    assert (balance.balance, balance.total_earned, balance.total_spent) == (25, 25, 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -3])
async def test_earn_rejects_non_positive_amount(db_session, ledger_service, amount):
    with pytest.raises(CreditsValidationError):
        await ledger_service.earn(db_session, "u1", amount, TransactionType.EARNED, "x")


@pytest.mark.asyncio
async def test_earn_rejects_spent_type(db_session, ledger_service):
    with pytest.raises(CreditsValidationError) as exc_info:
        await ledger_service.earn(db_session, "u1", 5, TransactionType.SPENT, "x")
    assert exc_info.value.details["type"] == "spent"


# ---------------------------------------------------------------------------
# refund
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_refund_against_spent_transaction(db_session, spend_service, ledger_service, balance_service, fund, clock):
    await fund("u1", 10)
    spend = await spend_service.spend_direct(db_session, "u1", "flux-pro")
    clock.advance(seconds=1)

    mutation = await ledger_service.refund(
        db_session, "u1", 5, "Fallo del proveedor", original_transaction_id=spend.transaction_id
    )

    assert mutation.new_balance == 10
    tx = await TransactionRepository().get(db_session, mutation.transaction_id)
    assert tx.type is TransactionType.REFUND
    assert tx.original_transaction_id == spend.transaction_id
    balance = await balance_service.get_balance(db_session, "u1")
    # El reembolso suma a total_earned; total_spent no se revierte
    assert (balance.total_earned, balance.total_spent) == (15, 5)


@pytest.mark.asyncio
async def test_refund_cannot_exceed_original(db_session, spend_service, ledger_service, fund):
    await fund("u1", 10)
    spend = await spend_service.spend_direct(db_session, "u1", "flux-pro")
    await ledger_service.refund(db_session, "u1", 3, "Parcial", original_transaction_id=spend.transaction_id)

    with pytest.raises(CreditsValidationError) as exc_info:
        await ledger_service.refund(db_session, "u1", 3, "Exceso", original_transaction_id=spend.transaction_id)

    assert exc_info.value.details["already_refunded"] == 3
    assert exc_info.value.details["original_amount"] == 5


class _RacingTransactionRepository(TransactionRepository):
    """Ejecuta `competitor` una sola vez justo antes de reservar el tope de reembolso."""

    def __init__(self, competitor):
        self.competitor = competitor
        self.fired = False

    async def add_refunded(self, session, original_transaction_id, amount):
        if not self.fired:
            self.fired = True
            await self.competitor(session, original_transaction_id)
        return await super().add_refunded(session, original_transaction_id, amount)


@pytest.mark.asyncio
async def test_concurrent_refunds_cannot_exceed_original(
    db_session, spend_service, ledger_service, balance_service, fund, clock
):
    """Un webhook reintentado reembolsa el total primero: el segundo reembolso se rechaza."""
    await fund("u1", 10)
    spend = await spend_service.spend_direct(db_session, "u1", "flux-pro")

    async def competitor(session, original_id):
        await ledger_service.refund(session, "u1", 5, "Reintento", original_transaction_id=original_id)

    racing = LedgerService(
        clock=clock,
        balance_service=balance_service,
        tx_repo=_RacingTransactionRepository(competitor),
    )
    with pytest.raises(CreditsValidationError) as exc_info:
        await racing.refund(db_session, "u1", 5, "Fallo del proveedor", original_transaction_id=spend.transaction_id)

    assert exc_info.value.details["already_refunded"] == 5
    repo = TransactionRepository()
    assert await repo.refunded_total(db_session, spend.transaction_id) == 5
    original = await repo.get(db_session, spend.transaction_id)
    assert original.refunded_amount == 5
    balance = await balance_service.get_balance(db_session, "u1")
    assert balance.balance == 10


@pytest.mark.asyncio
async def test_refund_tracks_refunded_amount_on_original(db_session, spend_service, ledger_service, fund):
    await fund("u1", 10)
    spend = await spend_service.spend_direct(db_session, "u1", "flux-pro")
    await ledger_service.refund(db_session, "u1", 2, "Parcial", original_transaction_id=spend.transaction_id)
    await ledger_service.refund(db_session, "u1", 3, "Resto", original_transaction_id=spend.transaction_id)

    original = await TransactionRepository().get(db_session, spend.transaction_id)
    assert original.refunded_amount == 5


@pytest.mark.asyncio
async def test_refund_of_foreign_or_unknown_transaction(db_session, spend_service, ledger_service, fund):
    await fund("u1", 10)
    spend = await spend_service.spend_direct(db_session, "u1", "flux-dev")

    with pytest.raises(TransactionNotFound):
        await ledger_service.refund(db_session, "u2", 2, "x", original_transaction_id=spend.transaction_id)
    with pytest.raises(TransactionNotFound):
        await ledger_service.refund(db_session, "u1", 2, "x", original_transaction_id="missing")


@pytest.mark.asyncio
async def test_refund_of_non_spent_transaction(db_session, ledger_service, fund):
    mutation = await fund("u1", 10)
    with pytest.raises(CreditsValidationError):
        await ledger_service.refund(db_session, "u1", 1, "x", original_transaction_id=mutation.transaction_id)


@pytest.mark.asyncio
async def test_goodwill_refund_without_original(db_session, ledger_service):
    mutation = await ledger_service.refund(db_session, "u9", 4, "Compensación")
    assert mutation.new_balance == 4


# ---------------------------------------------------------------------------
# get_summary
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_summary_lists_recent_transactions_newest_first(
    db_session, ledger_service, spend_service, fund, clock
):
    await fund("u1", 10)
    await spend_service.spend_direct(db_session, "u1", "flux-dev")
    clock.advance(seconds=1)
    await spend_service.spend_direct(db_session, "u1", "flux-pro")

    summary = await ledger_service.get_summary(db_session, "u1", transaction_limit=2)

    assert (summary.balance, summary.total_earned, summary.total_spent) == (3, 10, 7)
    assert [tx.amount for tx in summary.recent_transactions] == [-5, -2]
    assert summary.recent_transactions[0].type == "spent"
    assert summary.to_dict()["recent_transactions"][0]["created_at"].startswith("2026-10-01T12:00:02")


@pytest.mark.asyncio
async def test_summary_of_unknown_user_is_zeroed(db_session, ledger_service):
    summary = await ledger_service.get_summary(db_session, "ghost")
    assert summary.balance == 0
    assert summary.recent_transactions == []


@pytest.mark.asyncio
async def test_welcome_credits_granted_once(db_session, ledger_service, balance_service):
    await ledger_service.ensure_welcome_credits(db_session, "u1")
    await ledger_service.ensure_welcome_credits(db_session, "u1")

    balance = await balance_service.get_balance(db_session, "u1")
    assert balance.balance == 10
    bonuses = (
        await db_session.execute(
            select(CreditTransaction).where(CreditTransaction.type == TransactionType.BONUS)
        )
    ).scalars().all()
    assert len(bonuses) == 1


# ---------------------------------------------------------------------------
# Identidad del ledger
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_ledger_identity_after_mixed_operations(
    db_session, ledger_service, spend_service, reservation_service, balance_service, fund, clock
):
    await ledger_service.ensure_welcome_credits(db_session, "u1")
    await fund("u1", 40)
    first = await spend_service.spend_direct(db_session, "u1", "flux-pro")
    reservation = await reservation_service.reserve(db_session, "u1", "premium")
    await reservation_service.confirm(db_session, reservation.reservation_id, "u1", "premium")
    clock.advance(seconds=1)
    await ledger_service.refund(db_session, "u1", 3, "Parcial", original_transaction_id=first.transaction_id)
    dropped = await reservation_service.reserve(db_session, "u1", "premium")
    await reservation_service.cancel(db_session, dropped.reservation_id, "u1")

    balance = await balance_service.get_balance(db_session, "u1")
    ledger_sum = await TransactionRepository().sum_for_user(db_session, "u1")

    assert balance.balance == 10 + 40 - 5 - 10 + 3
    assert balance.balance == balance.total_earned - balance.total_spent
    assert ledger_sum == balance.balance
