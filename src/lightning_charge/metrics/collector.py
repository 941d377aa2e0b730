"""Metrics collector: Prometheus counters, gauges, histograms.

- ``charge_invoices_created_total`` / ``charge_invoices_paid_total``
- ``charge_offers_paid_total``
- ``charge_webhook_deliveries_total{outcome}``
- ``charge_expired_invoices_deleted_total``
- ``charge_pending_waiters``
- ``charge_cron_histogram{job_name}`` / ``charge_cron_last_execution_gauge{job_name}``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

_PREFIX = "charge"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`EngineMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class EngineMetrics:
    """High-level engine metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._invoices_created = self._collector.counter(
            f"{_PREFIX}_invoices_created", "Invoices created"
        )
        self._invoices_paid = self._collector.counter(
            f"{_PREFIX}_invoices_paid", "Invoices transitioned to paid"
        )
        self._offers_paid = self._collector.counter(
            f"{_PREFIX}_offers_paid", "Payments applied to offers"
        )
        self._webhooks = self._collector.counter(
            f"{_PREFIX}_webhook_deliveries", "Webhook delivery attempts", ("outcome",)
        )
        self._expired_deleted = self._collector.counter(
            f"{_PREFIX}_expired_invoices_deleted", "Expired invoices removed by the reconciler"
        )
        self._pending_waiters = self._collector.gauge(
            f"{_PREFIX}_pending_waiters", "Long-poll callers currently waiting for payment"
        )

        # Cron metrics
        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def invoice_created(self) -> None:
        self._invoices_created.inc()

    def invoice_paid(self) -> None:
        self._invoices_paid.inc()

    def offer_paid(self) -> None:
        self._offers_paid.inc()

    def webhook_delivered(self, *, success: bool) -> None:
        self._webhooks.labels(outcome="success" if success else "failure").inc()

    def expired_deleted(self, count: int) -> None:
        self._expired_deleted.inc(count)

    # -- Gauges --

    def track_pending_waiters(self, source: Callable[[], float]) -> None:
        """Sample the pending waiter count from *source* at scrape time."""
        self._pending_waiters.set_function(source)

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
