# -*- coding: utf-8 -*-
"""
creditledger/modules/credits/monitoring/__init__.py

Monitoreo del ledger: reportes de consistencia y exporter Prometheus.
"""

from .monitoring_service import MonitoringService, classify_health
from .prometheus_exporter import registry, render_metrics

__all__ = ["MonitoringService", "classify_health", "registry", "render_metrics"]
