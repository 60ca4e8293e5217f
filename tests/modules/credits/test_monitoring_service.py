# -*- coding: utf-8 -*-
"""
tests/modules/credits/test_monitoring_service.py

Reportes de monitoreo: métricas del sistema, salud/consistencia,
series de uso, rankings y exporter Prometheus.

Autor: CreditLedger
Fecha: 2026-10-14
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from creditledger.modules.credits.enums import TransactionType
from creditledger.modules.credits.models import UserBalance
from creditledger.modules.credits.monitoring import MonitoringService
from creditledger.modules.credits.monitoring.monitoring_service import (
    bucket_starts,
    classify_health,
    floor_to_period,
)
from creditledger.modules.credits.monitoring.prometheus_exporter import registry, render_metrics
from creditledger.modules.credits.pricing import seed_item_costs


@pytest.fixture
def monitoring(clock) -> MonitoringService:
    return MonitoringService(clock=clock, stuck_pending_minutes=60, stuck_pending_warning_count=1)


def _sample(name, **labels):
    return registry.get_sample_value(name, labels) or 0.0


# ---------------------------------------------------------------------------
# Helpers de buckets y clasificación
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "period,expected",
    [
        ("hour", datetime(2026, 10, 15, 14, 0, tzinfo=timezone.utc)),
        ("day", datetime(2026, 10, 15, tzinfo=timezone.utc)),
        ("week", datetime(2026, 10, 12, tzinfo=timezone.utc)),
        ("month", datetime(2026, 10, 1, tzinfo=timezone.utc)),
    ],
)
def test_floor_to_period(period, expected):
    assert floor_to_period(datetime(2026, 10, 15, 14, 37, 12, tzinfo=timezone.utc), period) == expected


def test_bucket_starts_month_crosses_year():
    starts = bucket_starts(datetime(2026, 3, 5, tzinfo=timezone.utc), "month")
    assert len(starts) == 12
    assert starts[0] == datetime(2025, 4, 1, tzinfo=timezone.utc)
    assert starts[-1] == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_bucket_starts_rejects_unknown_period():
    with pytest.raises(ValueError):
        bucket_starts(datetime(2026, 1, 1, tzinfo=timezone.utc), "year")


def _signals(**overrides):
    base = {
        "expired_reservations": 0,
        "stuck_pending_reservations": 0,
        "users_with_negative_balance": 0,
        "inconsistent_balances": 0,
        "ledger_mismatches": 0,
        "failure_rate": 0.0,
    }
    base.update(overrides)
    return base


def test_classify_health_levels():
    assert classify_health(_signals()) == ("healthy", [])
    status, issues = classify_health(_signals(expired_reservations=3))
    assert status == "warning"
    assert "3 expired reservations" in issues[0]
    status, _ = classify_health(_signals(expired_reservations=3, ledger_mismatches=1))
    assert status == "critical"
    status, _ = classify_health(_signals(failure_rate=25.0))
    assert status == "warning"


# ---------------------------------------------------------------------------
# Métricas del sistema
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_system_metrics_counts(db_session, monitoring, reservation_service, spend_service, fund, clock, settings):
    await seed_item_costs(db_session, settings.item_costs, now=clock())
    await fund("u1", 10)
    await fund("u2", 3)
    await spend_service.spend_direct(db_session, "u2", "flux-dev")
    kept = await reservation_service.reserve(db_session, "u1", "flux-pro")
    await reservation_service.confirm(db_session, kept.reservation_id, "u1", "flux-pro")
    dropped = await reservation_service.reserve(db_session, "u1", "flux-dev")
    await reservation_service.cancel(db_session, dropped.reservation_id, "u1")
    await reservation_service.reserve(db_session, "u1", "flux-dev")
    clock.advance(minutes=45)

    metrics = await monitoring.get_system_metrics(db_session)

    assert metrics["users"]["total"] == 2
    assert metrics["users"]["with_credits"] == 2
    assert metrics["users"]["total_balance"] == 6
    assert metrics["reservations"]["total"] == 3
    assert metrics["reservations"]["confirmed"] == 1
    assert metrics["reservations"]["cancelled"] == 1
    assert metrics["reservations"]["pending"] == 1
    assert metrics["reservations"]["expired_pending"] == 1
    assert metrics["transactions"]["by_type"]["spent"] == {"count": 2, "amount": 7}
    assert metrics["transactions"]["by_type"]["earned"] == {"count": 2, "amount": 13}
    assert metrics["transactions"]["total"] == 4
    assert metrics["items"]["total"] == len(settings.item_costs)


# ---------------------------------------------------------------------------
# Salud
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_health_is_healthy_on_consistent_ledger(db_session, monitoring, spend_service, fund):
    await fund("u1", 10)
    await spend_service.spend_direct(db_session, "u1", "flux-dev")

    report = await monitoring.get_health_metrics(db_session)

    assert report["status"] == "healthy"
    assert report["issues"] == []
    assert report["metrics"]["ledger_mismatches"] == 0
    assert _sample("credits_health_status") == 0.0


@pytest.mark.asyncio
async def test_health_warns_on_expired_and_stuck_pending(db_session, monitoring, reservation_service, fund, clock):
    await fund("u1", 10)
    await reservation_service.reserve(db_session, "u1", "flux-dev")
    await reservation_service.reserve(db_session, "u1", "flux-dev")
    clock.advance(minutes=61)

    report = await monitoring.get_health_metrics(db_session)

    assert report["status"] == "warning"
    assert report["metrics"]["expired_reservations"] == 2
    assert report["metrics"]["stuck_pending_reservations"] == 2
    assert _sample("credits_health_metric", metric="expired_reservations") == 2.0


@pytest.mark.asyncio
async def test_health_detects_drift_between_balance_and_ledger(db_session, monitoring, fund):
    await fund("u1", 10)
    # Escritura fuera del ledger: saldo y contadores se desalinean
    await db_session.execute(update(UserBalance).where(UserBalance.user_id == "u1").values(balance=12))
    await db_session.commit()

    report = await monitoring.get_health_metrics(db_session)

    assert report["status"] == "critical"
    assert report["metrics"]["ledger_mismatches"] == 1
    assert report["metrics"]["inconsistent_balances"] == 1
    assert _sample("credits_health_status") == 2.0


@pytest.mark.asyncio
async def test_failure_rate_counts_refunds_over_spends(db_session, monitoring, spend_service, ledger_service, fund):
    await fund("u1", 20)
    first = await spend_service.spend_direct(db_session, "u1", "flux-dev")
    await spend_service.spend_direct(db_session, "u1", "flux-dev")
    await ledger_service.refund(db_session, "u1", 2, "Fallo", original_transaction_id=first.transaction_id)

    report = await monitoring.get_health_metrics(db_session)

    assert report["metrics"]["failure_rate"] == 50.0
    assert report["status"] == "warning"


# ---------------------------------------------------------------------------
# Uso por periodo y rankings
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_usage_metrics_by_hour(db_session, monitoring, reservation_service, spend_service, fund, clock):
    await fund("u1", 20)
    reservation = await reservation_service.reserve(db_session, "u1", "flux-pro")
    await reservation_service.confirm(db_session, reservation.reservation_id, "u1", "flux-pro")
    clock.advance(hours=1)
    await spend_service.spend_direct(db_session, "u1", "flux-dev")

    usage = await monitoring.get_usage_metrics(db_session, "hour")

    assert usage["period"] == "hour"
    assert len(usage["buckets"]) == 24
    previous, current = usage["buckets"][-2], usage["buckets"][-1]
    assert previous["bucket"] == "2026-10-01T12:00:00Z"
    assert previous["transactions"] == {"spent": 5, "earned": 20, "refunded": 0, "count": 2}
    assert previous["reservations"] == {"created": 1, "confirmed": 1, "cancelled": 0}
    assert current["transactions"]["spent"] == 2


@pytest.mark.asyncio
async def test_top_users_ordered_by_spending(db_session, monitoring, spend_service, fund):
    await fund("small", 10)
    await fund("big", 20)
    await fund("idle", 5)
    await spend_service.spend_direct(db_session, "small", "flux-dev")
    await spend_service.spend_direct(db_session, "big", "premium")

    top = await monitoring.get_top_users(db_session, limit=2)

    assert [u["user_id"] for u in top] == ["big", "small"]
    assert top[0]["total_spent"] == 10
    assert top[0]["transaction_count"] == 2
    assert top[0]["last_activity"].startswith("2026-10-01T12:00")


@pytest.mark.asyncio
async def test_model_usage_includes_unseeded_items(db_session, monitoring, reservation_service, fund, clock):
    await seed_item_costs(db_session, {"flux-pro": {"name": "Flux Pro", "cost": 5}}, now=clock())
    await fund("u1", 20)
    confirmed = await reservation_service.reserve(db_session, "u1", "flux-pro")
    await reservation_service.confirm(db_session, confirmed.reservation_id, "u1", "flux-pro")
    await reservation_service.reserve(db_session, "u1", "flux-dev")

    stats = await monitoring.get_model_usage_stats(db_session)

    assert stats[0]["item_id"] == "flux-pro"
    assert stats[0]["credits_confirmed"] == 5
    assert stats[1]["item_id"] == "flux-dev"
    assert stats[1]["name"] == "flux-dev"
    assert stats[1]["reservations"] == 1


@pytest.mark.asyncio
async def test_dashboard_bundles_reports(db_session, monitoring, fund):
    await fund("u1", 10)
    dashboard = await monitoring.get_dashboard(db_session, "day")
    assert set(dashboard) == {"overview", "health", "usage", "top_users", "top_items", "generated_at"}
    assert len(dashboard["usage"]["buckets"]) == 30


# ---------------------------------------------------------------------------
# Exporter Prometheus
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_operation_counters_move(db_session, reservation_service, sweeper, fund, clock):
    created_before = _sample("credits_reserve_total", outcome="created")
    confirmed_before = _sample("credits_confirm_total", outcome="confirmed")
    swept_before = _sample("credits_reservations_swept_total")
    spent_before = _sample("credits_ledger_amount_total", type=TransactionType.SPENT.value)

    await fund("u1", 10)
    kept = await reservation_service.reserve(db_session, "u1", "flux-pro")
    await reservation_service.confirm(db_session, kept.reservation_id, "u1", "flux-pro")
    await reservation_service.reserve(db_session, "u1", "flux-dev")
    clock.advance(minutes=31)
    await sweeper.sweep_expired(db_session)

    assert _sample("credits_reserve_total", outcome="created") - created_before == 2
    assert _sample("credits_confirm_total", outcome="confirmed") - confirmed_before == 1
    assert _sample("credits_reservations_swept_total") - swept_before == 1
    assert _sample("credits_ledger_amount_total", type="spent") - spent_before == 5


def test_render_metrics_exposes_credit_series():
    output = render_metrics().decode("utf-8")
    assert "credits_reserve_total" in output
    assert "credits_health_status" in output
