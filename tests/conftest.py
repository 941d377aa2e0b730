"""Shared test fixtures for the lightning-charge test suite."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from lightning_charge.config.settings import (
    AppConfig,
    DatabaseConfig,
    DatabaseEngine,
    ListenerConfig,
    TaskConfig,
)
from lightning_charge.engine.client import ChargeEngine
from lightning_charge.errors.node_errors import NodeRejectedError, NodeUnavailableError
from lightning_charge.node.client import (
    NodeInvoice,
    NodeInvoiceRecord,
    NodeOffer,
    NodeRPC,
    PaidInvoice,
)
from lightning_charge.rates import RateProvider
from lightning_charge.utils import clock

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MEMORY_DSN = "sqlite+aiosqlite:///:memory:"


class FakeNode(NodeRPC):
    """In-memory stand-in for a Lightning node."""

    def __init__(self) -> None:
        self.invoices: dict[str, dict[str, Any]] = {}
        self.offers: dict[str, dict[str, Any]] = {}
        self.disabled_offers: list[str] = []
        self.payments: asyncio.Queue[PaidInvoice] = asyncio.Queue()
        self.list_calls: list[str] = []
        self.wait_calls: list[int] = []
        self.default_expiry = 3600
        self.connected = False
        # Failure switches
        self.fail_create = False
        self.reject_delete = False
        self.reject_offers = False
        self.list_errors: set[str] = set()
        self.wait_errors = 0

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def create_invoice(
        self,
        amount: int | str,
        label: str,
        description: str,
        expiry: int | None = None,
    ) -> NodeInvoice:
        if self.fail_create:
            raise NodeUnavailableError("invoice failed: connection refused")
        expires_at = clock.now() + (expiry or self.default_expiry)
        self.invoices[label] = {
            "amount": amount,
            "description": description,
            "expiry": expiry,
            "expires_at": expires_at,
            "status": "unpaid",
        }
        return NodeInvoice(
            payment_hash=f"hash-{label}", bolt11=f"lnbc-{label}", expires_at=expires_at
        )

    async def delete_invoice(self, label: str, status: str) -> None:
        if self.reject_delete:
            raise NodeRejectedError("delinvoice rejected: status mismatch", rpc_code=905)
        self.invoices.pop(label, None)

    async def list_invoice(self, label: str) -> NodeInvoiceRecord | None:
        self.list_calls.append(label)
        if label in self.list_errors:
            raise NodeUnavailableError("listinvoices failed: timeout")
        inv = self.invoices.get(label)
        if inv is None:
            return None
        return NodeInvoiceRecord(label=label, status=inv["status"])

    async def create_offer(self, fields: dict[str, Any]) -> NodeOffer | None:
        if self.reject_offers:
            return None
        offer_id = f"offer-{len(self.offers) + 1}"
        self.offers[offer_id] = dict(fields)
        return NodeOffer(
            offer_id=offer_id,
            bolt12=f"lno-{offer_id}",
            single_use=bool(fields.get("single_use")),
        )

    async def disable_offer(self, offer_id: str) -> None:
        if self.reject_delete:
            raise NodeRejectedError("disableoffer rejected")
        self.disabled_offers.append(offer_id)

    async def wait_any_invoice(
        self,
        last_pay_index: int,
        timeout: int | None = None,
    ) -> PaidInvoice | None:
        self.wait_calls.append(last_pay_index)
        if self.wait_errors:
            self.wait_errors -= 1
            raise NodeUnavailableError("waitanyinvoice failed: connection reset")
        try:
            async with asyncio.timeout(timeout):
                return await self.payments.get()
        except TimeoutError:
            return None


class FixedRates(RateProvider):
    """Converts every currency at a fixed msat-per-unit rate."""

    def __init__(self, msat_per_unit: int = 2_000_000) -> None:
        self.msat_per_unit = msat_per_unit
        self.calls: list[tuple[str, Decimal]] = []

    async def to_msat(self, currency: str, amount: Decimal) -> int:
        self.calls.append((currency, amount))
        return int(amount * self.msat_per_unit)


class FrozenClock:
    """Replacement for ``clock.now`` that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class WebhookSink:
    """Records webhook POSTs and answers with a configurable status."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"ok": True})


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig with safe defaults."""
    return AppConfig(
        db=DatabaseConfig(engine=DatabaseEngine.SQLITE, dsn=MEMORY_DSN),
        listener=ListenerConfig(enabled=False, retry_delay=0.01),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def frozen_clock(monkeypatch: pytest.MonkeyPatch) -> FrozenClock:
    """Freeze the engine clock; advance it with ``frozen_clock.advance(n)``."""
    fc = FrozenClock()
    monkeypatch.setattr(clock, "now", fc)
    return fc


@pytest.fixture
async def engine(app_config: AppConfig, fake_node: FakeNode) -> AsyncIterator[ChargeEngine]:
    """An initialized engine on in-memory SQLite and a fake node."""
    eng = ChargeEngine(app_config, node=fake_node)
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
async def webhook_sink(engine: ChargeEngine) -> WebhookSink:
    """Route the engine's webhook deliveries to an in-process sink."""
    sink = WebhookSink()
    dispatcher = engine.webhook_dispatcher
    old = dispatcher._client
    dispatcher._client = httpx.AsyncClient(transport=httpx.MockTransport(sink))
    if old is not None:
        await old.aclose()
    return sink


@pytest.fixture
def fixed_rates() -> FixedRates:
    """Rate provider converting one unit of any currency to 2,000,000 msat."""
    return FixedRates(msat_per_unit=2_000_000)
