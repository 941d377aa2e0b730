"""Tests for the invoice, offer and webhook repositories."""

from __future__ import annotations

import asyncio

import pytest

from lightning_charge.config.settings import DatabaseConfig
from lightning_charge.datastore.client import Datastore
from lightning_charge.engine.models.invoice import Invoice
from lightning_charge.engine.models.offer import Offer
from lightning_charge.engine.repository import (
    InvoiceRepository,
    OfferRepository,
    WebhookRepository,
)
from lightning_charge.errors import DuplicateIDError

NOW = 1_700_000_000


def _invoice(id_: str, *, expires_at: int = NOW + 3600, **kw) -> Invoice:
    inv = Invoice(
        id=id_,
        msatoshi=kw.pop("msatoshi", 1000),
        description="test",
        payment_hash=f"hash-{id_}",
        payment_request=f"lnbc-{id_}",
        expires_at=expires_at,
        created_at=kw.pop("created_at", NOW),
        **kw,
    )
    inv.set_metadata(None)
    return inv


def _offer(id_: str, offer_id: str, **kw) -> Offer:
    offer = Offer(id=id_, offer_id=offer_id, bolt12=f"lno-{offer_id}", created_at=NOW, **kw)
    offer.set_metadata(None)
    return offer


class TestInvoiceRepository:
    async def test_create_and_get(self, engine) -> None:
        await engine.invoices.create(_invoice("a"))
        found = await engine.invoices.get_by_id("a")
        assert found is not None
        assert found.msatoshi == 1000
        assert found.pay_index is None

    async def test_get_missing_returns_none(self, engine) -> None:
        assert await engine.invoices.get_by_id("nope") is None

    async def test_duplicate_id(self, engine) -> None:
        await engine.invoices.create(_invoice("dup"))
        with pytest.raises(DuplicateIDError) as exc_info:
            await engine.invoices.create(_invoice("dup"))
        assert exc_info.value.status_code == 409
        assert exc_info.value.id == "dup"

    async def test_any_amount_stored_as_null(self, engine) -> None:
        await engine.invoices.create(_invoice("any", msatoshi=None))
        found = await engine.invoices.get_by_id("any")
        assert found.msatoshi is None

    async def test_list_all_oldest_first(self, engine) -> None:
        await engine.invoices.create(_invoice("b", created_at=NOW + 10))
        await engine.invoices.create(_invoice("a", created_at=NOW))
        ids = [i.id for i in await engine.invoices.list_all()]
        assert ids == ["a", "b"]

    async def test_mark_paid_once(self, engine) -> None:
        await engine.invoices.create(_invoice("p"))
        assert await engine.invoices.mark_paid("p", 5, NOW + 1, 1000) is True
        assert await engine.invoices.mark_paid("p", 6, NOW + 2, 2000) is False

        found = await engine.invoices.get_by_id("p")
        assert found.pay_index == 5
        assert found.paid_at == NOW + 1
        assert found.msatoshi_received == 1000

    async def test_mark_paid_unknown(self, engine) -> None:
        assert await engine.invoices.mark_paid("ghost", 1, NOW, 1) is False

    async def test_max_pay_index(self, engine) -> None:
        assert await engine.invoices.get_max_pay_index() is None
        await engine.invoices.create(_invoice("x"))
        await engine.invoices.create(_invoice("y"))
        await engine.invoices.mark_paid("x", 3, NOW, 1)
        await engine.invoices.mark_paid("y", 9, NOW, 1)
        assert await engine.invoices.get_max_pay_index() == 9

    async def test_list_expired_unpaid(self, engine) -> None:
        await engine.invoices.create(_invoice("old", expires_at=NOW - 100))
        await engine.invoices.create(_invoice("edge", expires_at=NOW))
        await engine.invoices.create(_invoice("fresh", expires_at=NOW + 100))
        await engine.invoices.create(_invoice("paid", expires_at=NOW - 100))
        await engine.invoices.mark_paid("paid", 1, NOW - 200, 1)

        assert await engine.invoices.list_expired_unpaid(NOW) == ["old"]

    async def test_delete_cascades_webhooks(self, engine) -> None:
        await engine.invoices.create(_invoice("d"))
        await engine.webhooks.register("d", "https://example.com/hook")
        await engine.webhooks.register("other", "https://example.com/other")

        assert await engine.invoices.delete_by_id("d") is True
        assert await engine.invoices.get_by_id("d") is None
        assert await engine.webhooks.list_for("d") == []
        assert len(await engine.webhooks.list_for("other")) == 1

    async def test_delete_missing(self, engine) -> None:
        assert await engine.invoices.delete_by_id("missing") is False

    async def test_delete_many(self, engine) -> None:
        for id_ in ("a", "b", "c"):
            await engine.invoices.create(_invoice(id_))
        assert await engine.invoices.delete_many(["a", "c", "zzz"]) == 2
        assert [i.id for i in await engine.invoices.list_all()] == ["b"]

    async def test_delete_many_unpaid_only(self, engine) -> None:
        for id_ in ("open", "settled"):
            await engine.invoices.create(_invoice(id_))
            await engine.webhooks.register(id_, f"https://example.com/{id_}")
        await engine.invoices.mark_paid("settled", 1, NOW, 1000)

        deleted = await engine.invoices.delete_many(["open", "settled"], unpaid_only=True)

        assert deleted == 1
        assert [i.id for i in await engine.invoices.list_all()] == ["settled"]
        assert await engine.webhooks.list_for("open") == []
        assert len(await engine.webhooks.list_for("settled")) == 1

    async def test_delete_many_empty(self, engine) -> None:
        assert await engine.invoices.delete_many([]) == 0


class TestConcurrentMarkPaid:
    """Duplicate payment events racing on separate connections."""

    async def test_exactly_one_wins(self, tmp_path) -> None:
        ds = Datastore(DatabaseConfig(dsn=f"sqlite+aiosqlite:///{tmp_path / 'race.db'}"))
        await ds.open()
        await ds.create_schema()
        try:
            repo = InvoiceRepository(ds)
            await repo.create(_invoice("race"))

            results = await asyncio.gather(
                *(repo.mark_paid("race", 10 + n, NOW + n, 1000) for n in range(8))
            )

            assert results.count(True) == 1
            found = await repo.get_by_id("race")
            winner = results.index(True)
            assert found.pay_index == 10 + winner
        finally:
            await ds.close()


class TestOfferRepository:
    async def test_create_and_lookup(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1"))
        assert (await engine.offers.get_by_id("o1")).offer_id == "node-1"
        assert (await engine.offers.get_by_offer_id("node-1")).id == "o1"
        assert await engine.offers.get_by_offer_id("node-2") is None

    async def test_duplicate_node_offer_id(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1"))
        with pytest.raises(DuplicateIDError):
            await engine.offers.create(_offer("o2", "node-1"))

    async def test_defaults(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1"))
        found = await engine.offers.get_by_id("o1")
        assert found.amount == "any"
        assert found.pay_count == 0
        assert found.msatoshi_received == 0
        assert found.single_use is False

    async def test_mark_paid_accumulates(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1", recurrence="1week"))
        assert await engine.offers.mark_paid("o1", 4, NOW, 1000) is True
        assert await engine.offers.mark_paid("o1", 7, NOW + 1, 2500) is True

        found = await engine.offers.get_by_id("o1")
        assert found.pay_count == 2
        assert found.msatoshi_received == 3500
        assert found.pay_index == 7

    async def test_mark_paid_replay_ignored(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1"))
        await engine.offers.mark_paid("o1", 4, NOW, 1000)
        assert await engine.offers.mark_paid("o1", 4, NOW, 1000) is False
        assert await engine.offers.mark_paid("o1", 3, NOW, 1000) is False
        assert (await engine.offers.get_by_id("o1")).pay_count == 1

    async def test_max_pay_index(self, engine) -> None:
        assert await engine.offers.get_max_pay_index() is None
        await engine.offers.create(_offer("o1", "node-1"))
        await engine.offers.mark_paid("o1", 12, NOW, None)
        assert await engine.offers.get_max_pay_index() == 12

    async def test_delete_cascades_webhooks(self, engine) -> None:
        await engine.offers.create(_offer("o1", "node-1"))
        await engine.webhooks.register("o1", "https://example.com/hook")
        assert await engine.offers.delete_by_id("o1") is True
        assert await engine.webhooks.list_for("o1") == []
        assert await engine.offers.delete_by_id("o1") is False


class TestWebhookRepository:
    async def test_register_and_list(self, engine) -> None:
        first = await engine.webhooks.register("inv", "https://a.example/hook")
        second = await engine.webhooks.register("inv", "https://b.example/hook")
        hooks = await engine.webhooks.list_for("inv")
        assert [h.id for h in hooks] == [first.id, second.id]
        assert hooks[0].success is None
        assert hooks[0].requested_at is None

    async def test_log_success(self, engine, frozen_clock) -> None:
        hook = await engine.webhooks.register("inv", "https://a.example/hook")
        await engine.webhooks.log_outcome(hook.id, resp_code=204)

        found = await engine.webhooks.get_by_id(hook.id)
        assert found.success is True
        assert found.resp_code == 204
        assert found.resp_error is None
        assert found.requested_at == frozen_clock.current

    async def test_log_failure_overwrites(self, engine) -> None:
        hook = await engine.webhooks.register("inv", "https://a.example/hook")
        await engine.webhooks.log_outcome(hook.id, resp_code=200)
        await engine.webhooks.log_outcome(hook.id, error="connection refused")

        found = await engine.webhooks.get_by_id(hook.id)
        assert found.success is False
        assert found.resp_code is None
        assert found.resp_error == "connection refused"

    async def test_standalone_repository(self, app_config) -> None:
        ds = Datastore(app_config.db)
        await ds.open()
        await ds.create_schema()
        try:
            repo = WebhookRepository(ds)
            hook = await repo.register("x", "https://x.example")
            assert (await repo.get_by_id(hook.id)).url == "https://x.example"
            assert await OfferRepository(ds).list_all() == []
        finally:
            await ds.close()
