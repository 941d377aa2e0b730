"""Prometheus metrics for the charge engine."""

from __future__ import annotations

from lightning_charge.metrics.collector import EngineMetrics, MetricsCollector

__all__ = ["EngineMetrics", "MetricsCollector"]
