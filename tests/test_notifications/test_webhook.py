"""Tests for the webhook dispatcher and events."""

from __future__ import annotations

import asyncio
import json

import httpx

from lightning_charge.notifications.events import INVOICE_PAID, RawEvent, invoice_paid
from lightning_charge.notifications.webhook import WebhookDispatcher


class TestRawEvent:
    def test_to_dict(self) -> None:
        event = RawEvent(type="invoice.paid", content={"id": "x"})
        assert event.to_dict() == {"type": "invoice.paid", "content": {"id": "x"}}

    def test_default_content(self) -> None:
        assert RawEvent(type="t").content == {}

    async def test_invoice_paid_payload(self, engine) -> None:
        view = await engine.invoice_service.new_invoice(msatoshi=5, metadata={"order": 1})
        event = invoice_paid(view)
        assert event.type == INVOICE_PAID
        assert event.content["id"] == view.id
        assert event.content["metadata"] == {"order": 1}
        json.dumps(event.to_dict())


class TestWebhookDispatcher:
    async def test_start_stop(self, engine) -> None:
        dispatcher = WebhookDispatcher(engine.webhooks)
        assert not dispatcher.is_running
        await dispatcher.start()
        assert dispatcher.is_running
        await dispatcher.stop()
        assert not dispatcher.is_running

    async def test_no_hooks(self, engine, webhook_sink) -> None:
        result = await engine.webhook_dispatcher.deliver("nobody", RawEvent(type="t"))
        assert result == []
        assert webhook_sink.requests == []

    async def test_success_logged(self, engine, webhook_sink) -> None:
        hook = await engine.webhooks.register("inv", "https://shop.example/hook")

        result = await engine.webhook_dispatcher.deliver("inv", RawEvent("t", {"id": "inv"}))

        assert result == [True]
        request = webhook_sink.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://shop.example/hook"
        assert json.loads(request.content) == {"type": "t", "content": {"id": "inv"}}
        logged = await engine.webhooks.get_by_id(hook.id)
        assert logged.success is True
        assert logged.resp_code == 200
        assert logged.requested_at is not None

    async def test_http_error_status_logged(self, engine, webhook_sink) -> None:
        hook = await engine.webhooks.register("inv", "https://shop.example/hook")
        webhook_sink.status_code = 500

        assert await engine.webhook_dispatcher.deliver("inv", RawEvent("t")) == [False]
        logged = await engine.webhooks.get_by_id(hook.id)
        assert logged.success is False
        assert logged.resp_code is None
        assert logged.resp_error == "HTTP 500"

    async def test_unreachable_logged(self, engine, webhook_sink) -> None:
        hook = await engine.webhooks.register("inv", "https://down.example/hook")
        webhook_sink.error = httpx.ConnectError("connection refused")

        assert await engine.webhook_dispatcher.deliver("inv", RawEvent("t")) == [False]
        logged = await engine.webhooks.get_by_id(hook.id)
        assert logged.success is False
        assert logged.resp_error == "connection refused"

    async def test_failures_isolated_per_url(self, engine) -> None:
        await engine.webhooks.register("inv", "https://ok.example/hook")
        await engine.webhooks.register("inv", "https://bad.example/hook")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200 if request.url.host == "ok.example" else 404)

        dispatcher = engine.webhook_dispatcher
        await dispatcher._client.aclose()
        dispatcher._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert await engine.webhook_dispatcher.deliver("inv", RawEvent("t")) == [True, False]

    async def test_invalid_url_logged(self, engine, webhook_sink) -> None:
        bad = await engine.webhooks.register("inv", "https://shop.example:99999/hook")
        await engine.webhooks.register("inv", "https://shop.example/hook")

        result = await engine.webhook_dispatcher.deliver("inv", RawEvent("t"))

        assert result == [False, True]
        logged = await engine.webhooks.get_by_id(bad.id)
        assert logged.success is False
        assert logged.resp_error
        assert len(webhook_sink.requests) == 1

    async def test_timeout(self, engine) -> None:
        hook = await engine.webhooks.register("inv", "https://slow.example/hook")

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200)

        dispatcher = WebhookDispatcher(engine.webhooks, timeout=0.05)
        dispatcher._client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        try:
            assert await dispatcher.deliver("inv", RawEvent("t")) == [False]
        finally:
            await dispatcher.stop()

        logged = await engine.webhooks.get_by_id(hook.id)
        assert logged.resp_error == "timed out after 0.05s"

    async def test_not_started(self, engine) -> None:
        hook = await engine.webhooks.register("inv", "https://shop.example/hook")
        dispatcher = WebhookDispatcher(engine.webhooks)

        assert await dispatcher.deliver("inv", RawEvent("t")) == [False]
        logged = await engine.webhooks.get_by_id(hook.id)
        assert logged.resp_error == "webhook dispatcher not started"

    async def test_dispatch_is_fire_and_forget(self, engine, webhook_sink) -> None:
        hook = await engine.webhooks.register("inv", "https://shop.example/hook")
        dispatcher = engine.webhook_dispatcher

        task = dispatcher.dispatch("inv", RawEvent("t"))
        assert dispatcher.pending == 1
        await dispatcher.drain()

        assert task.done()
        assert dispatcher.pending == 0
        assert (await engine.webhooks.get_by_id(hook.id)).success is True

    async def test_dispatch_swallows_errors(self, engine, monkeypatch) -> None:
        async def broken(owner_id):
            raise RuntimeError("store down")

        monkeypatch.setattr(engine.webhooks, "list_for", broken)
        task = engine.webhook_dispatcher.dispatch("inv", RawEvent("t"))
        await engine.webhook_dispatcher.drain()
        assert task.exception() is None

    async def test_metrics(self, engine, webhook_sink) -> None:
        await engine.webhooks.register("inv", "https://shop.example/hook")
        await engine.webhook_dispatcher.deliver("inv", RawEvent("t"))
        webhook_sink.status_code = 502
        await engine.webhook_dispatcher.deliver("inv", RawEvent("t"))

        registry = engine.metrics.registry
        name = "charge_webhook_deliveries_total"
        assert registry.get_sample_value(name, {"outcome": "success"}) == 1.0
        assert registry.get_sample_value(name, {"outcome": "failure"}) == 1.0

    async def test_stop_drains_pending(self, engine) -> None:
        hook = await engine.webhooks.register("inv", "https://shop.example/hook")

        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.05)
            return httpx.Response(204)

        dispatcher = WebhookDispatcher(engine.webhooks, drain_timeout=2)
        dispatcher._client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        dispatcher.dispatch("inv", RawEvent("t"))
        await dispatcher.stop()

        assert dispatcher.pending == 0
        assert (await engine.webhooks.get_by_id(hook.id)).resp_code == 204
