"""Tests for the Prometheus metrics collector."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, generate_latest

from lightning_charge.metrics.collector import EngineMetrics, MetricsCollector


class TestMetricsCollector:
    def test_own_registry(self) -> None:
        collector = MetricsCollector()
        assert isinstance(collector.registry, CollectorRegistry)

    def test_shared_registry(self) -> None:
        registry = CollectorRegistry()
        assert MetricsCollector(registry).registry is registry

    def test_two_engines_do_not_collide(self) -> None:
        EngineMetrics()
        EngineMetrics()


class TestEngineMetrics:
    def test_counters(self) -> None:
        m = EngineMetrics()
        m.invoice_created()
        m.invoice_created()
        m.invoice_paid()
        m.offer_paid()
        m.expired_deleted(3)

        r = m.registry
        assert r.get_sample_value("charge_invoices_created_total") == 2.0
        assert r.get_sample_value("charge_invoices_paid_total") == 1.0
        assert r.get_sample_value("charge_offers_paid_total") == 1.0
        assert r.get_sample_value("charge_expired_invoices_deleted_total") == 3.0

    def test_webhook_outcomes(self) -> None:
        m = EngineMetrics()
        m.webhook_delivered(success=True)
        m.webhook_delivered(success=False)
        m.webhook_delivered(success=False)

        name = "charge_webhook_deliveries_total"
        assert m.registry.get_sample_value(name, {"outcome": "success"}) == 1.0
        assert m.registry.get_sample_value(name, {"outcome": "failure"}) == 2.0

    def test_pending_waiters_sampled_at_scrape(self) -> None:
        m = EngineMetrics()
        pending = [0]
        m.track_pending_waiters(lambda: pending[0])

        assert m.registry.get_sample_value("charge_pending_waiters") == 0.0
        pending[0] = 5
        assert m.registry.get_sample_value("charge_pending_waiters") == 5.0

    def test_track_cron(self) -> None:
        m = EngineMetrics()
        with m.track_cron("job"):
            pass
        labels = {"job_name": "job"}
        assert m.registry.get_sample_value("charge_cron_histogram_count", labels) == 1.0

    def test_exposition(self) -> None:
        m = EngineMetrics()
        m.invoice_created()
        output = generate_latest(m.registry).decode()
        assert "charge_invoices_created_total 1.0" in output

    async def test_engine_tracks_registry(self, engine) -> None:
        view = await engine.invoice_service.new_invoice(msatoshi=1)
        with engine.wait_registry.subscribe(view.id):
            value = engine.metrics.registry.get_sample_value("charge_pending_waiters")
            assert value == 1.0
        assert engine.metrics.registry.get_sample_value("charge_pending_waiters") == 0.0
        created = engine.metrics.registry.get_sample_value("charge_invoices_created_total")
        assert created == 1.0
