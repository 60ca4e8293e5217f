# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/monitoring/prometheus_exporter.py

Exporter Prometheus para el ledger de créditos.
Contadores de resultados por operación y gauges de salud que se
refrescan con cada reporte de MonitoringService.get_health_metrics().

Autor: CreditLedger
Fecha: 2026-10-09
"""

import logging
from typing import Any, Mapping

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------
# Registro dedicado (no se mezcla con el REGISTRY global del proceso)
# --------------------------------------------------------------------------
registry = CollectorRegistry()

# --------------------------------------------------------------------------
# Contadores por operación
# --------------------------------------------------------------------------
RESERVE_TOTAL = Counter(
    "credits_reserve_total",
    "Reservas solicitadas por resultado",
    ["outcome"],  # created/insufficient_credits/item_not_found
    registry=registry,
)
CONFIRM_TOTAL = Counter(
    "credits_confirm_total",
    "Confirmaciones por resultado",
    ["outcome"],  # confirmed/already_confirmed/expired/cancelled/insufficient_credits/reconciliation_required
    registry=registry,
)
CANCEL_TOTAL = Counter(
    "credits_cancel_total",
    "Cancelaciones por resultado",
    ["outcome"],  # cancelled/already_cancelled/rejected_confirmed
    registry=registry,
)
SPEND_TOTAL = Counter(
    "credits_spend_direct_total",
    "Cargos directos por resultado",
    ["outcome"],  # spent/insufficient_credits/item_not_found/user_not_found
    registry=registry,
)
CREDITS_MOVED_TOTAL = Counter(
    "credits_ledger_amount_total",
    "Créditos movidos en el ledger por tipo de transacción",
    ["type"],
    registry=registry,
)
SWEPT_TOTAL = Counter(
    "credits_reservations_swept_total",
    "Reservas pendientes canceladas por expiración",
    registry=registry,
)
PURGED_TOTAL = Counter(
    "credits_reservations_purged_total",
    "Reservas terminales eliminadas por retención",
    registry=registry,
)

# --------------------------------------------------------------------------
# Gauges de salud
# --------------------------------------------------------------------------
HEALTH_STATUS = Gauge(
    "credits_health_status",
    "Estado de salud (0=healthy, 1=warning, 2=critical)",
    registry=registry,
)
HEALTH_METRIC = Gauge(
    "credits_health_metric",
    "Señales de consistencia del último reporte de salud",
    ["metric"],
    registry=registry,
)

_STATUS_VALUES = {"healthy": 0, "warning": 1, "critical": 2}


# --------------------------------------------------------------------------
# Funciones auxiliares
# --------------------------------------------------------------------------
def render_metrics() -> bytes:
    """Genera la salida actual de las métricas en formato Prometheus."""
    return generate_latest(registry)


def observe_reserve(outcome: str) -> None:
    RESERVE_TOTAL.labels(outcome=outcome).inc()


def observe_confirm(outcome: str) -> None:
    CONFIRM_TOTAL.labels(outcome=outcome).inc()


def observe_cancel(outcome: str) -> None:
    CANCEL_TOTAL.labels(outcome=outcome).inc()


def observe_spend(outcome: str) -> None:
    SPEND_TOTAL.labels(outcome=outcome).inc()


def observe_ledger_amount(tx_type: str, amount: int) -> None:
    """Registra créditos movidos (valor absoluto)."""
    CREDITS_MOVED_TOTAL.labels(type=tx_type).inc(abs(amount))


def observe_sweep(expired: int, purged: int) -> None:
    if expired:
        SWEPT_TOTAL.inc(expired)
    if purged:
        PURGED_TOTAL.inc(purged)


def update_health_gauges(status: str, metrics: Mapping[str, Any]) -> None:
    """Refresca los gauges a partir de un reporte de salud."""
    HEALTH_STATUS.set(_STATUS_VALUES.get(status, 2))
    for name, value in metrics.items():
        HEALTH_METRIC.labels(metric=name).set(float(value))
    logger.debug("[Prometheus] Health gauges updated status=%s", status)


__all__ = [
    "registry",
    "CONTENT_TYPE_LATEST",
    "render_metrics",
    "observe_reserve",
    "observe_confirm",
    "observe_cancel",
    "observe_spend",
    "observe_ledger_amount",
    "observe_sweep",
    "update_health_gauges",
]

# Fin del archivo creditledger/modules/credits/monitoring/prometheus_exporter.py
