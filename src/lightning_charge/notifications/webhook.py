"""Webhook delivery: fire-and-forget dispatch with outcome logging.

Every registration of an invoice/offer gets one POST per event. The outcome
of each attempt overwrites the registration's delivery log. Failures are
recorded, never retried here and never raised to the caller that triggered
the dispatch.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import httpx
from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from lightning_charge.engine.models.webhook import Webhook
    from lightning_charge.engine.repository.webhooks import WebhookRepository
    from lightning_charge.metrics.collector import EngineMetrics
    from lightning_charge.notifications.events import RawEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_DRAIN_TIMEOUT = 5.0


class WebhookDispatcher:
    """Delivers events to the URLs registered for an invoice or offer.

    Usage::

        dispatcher = WebhookDispatcher(webhook_repo)
        await dispatcher.start()
        dispatcher.dispatch(invoice_id, event)   # returns immediately
        await dispatcher.stop()                  # drains in-flight deliveries
    """

    def __init__(
        self,
        webhooks: WebhookRepository,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._webhooks = webhooks
        self._timeout = timeout
        self._drain_timeout = drain_timeout
        self._metrics = metrics
        self._client: httpx.AsyncClient | None = None
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._client is not None

    @property
    def pending(self) -> int:
        """Number of dispatches still in flight."""
        return len(self._pending)

    async def start(self) -> None:
        """Create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"User-Agent": "lightning-charge"},
            )

    async def stop(self) -> None:
        """Wait briefly for in-flight deliveries, cancel the rest, close the client."""
        if self._pending:
            _, still_running = await asyncio.wait(
                set(self._pending), timeout=self._drain_timeout
            )
            for task in still_running:
                task.cancel()
            for task in still_running:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def drain(self) -> None:
        """Wait until every dispatched delivery has finished."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def dispatch(self, owner_id: str, event: RawEvent) -> asyncio.Task[Any]:
        """Schedule delivery of *event* to all hooks of *owner_id* and return at once."""
        task = asyncio.create_task(self._dispatch_safely(owner_id, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, owner_id: str, event: RawEvent) -> list[bool]:
        """Deliver *event* to every registration of *owner_id* now.

        Returns:
            One success flag per registration, in registration order.
        """
        hooks = await self._webhooks.list_for(owner_id)
        if not hooks:
            return []
        payload = event.to_dict()
        return list(await asyncio.gather(*(self._deliver_one(h, payload) for h in hooks)))

    async def _dispatch_safely(self, owner_id: str, event: RawEvent) -> None:
        try:
            await self.deliver(owner_id, event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Webhook dispatch failed for %s", owner_id)

    async def _deliver_one(self, hook: Webhook, payload: dict[str, Any]) -> bool:
        """POST *payload* to one registration and record the outcome."""
        client = self._client
        error: str | None = None
        resp_code: int | None = None

        if client is None:
            error = "webhook dispatcher not started"
        else:
            try:
                async with asyncio.timeout(self._timeout):
                    response = await client.post(hook.url, json=payload)
            except TimeoutError:
                error = f"timed out after {self._timeout:g}s"
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                error = str(exc) or type(exc).__name__
            else:
                if response.status_code < 400:
                    resp_code = response.status_code
                else:
                    error = f"HTTP {response.status_code}"

        success = error is None
        if success:
            logger.debug("Webhook %d -> %s: %d", hook.id, hook.url, resp_code)
        else:
            logger.warning("Webhook %d -> %s failed: %s", hook.id, hook.url, error)
        if self._metrics:
            self._metrics.webhook_delivered(success=success)

        try:
            await self._webhooks.log_outcome(hook.id, resp_code=resp_code, error=error)
        except SQLAlchemyError:
            logger.exception("Could not record webhook outcome for hook %d", hook.id)
        return success
