"""Payment listener: applies the node's settlement stream to the store.

Resumes from the highest pay index already recorded, so events processed
before a restart are not applied twice. Each successfully applied payment
wakes waiters in the :class:`WaitRegistry` and fires webhooks; neither is
attempted for duplicates.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from lightning_charge.engine.views import InvoiceView, OfferView
from lightning_charge.errors.node_errors import NodeError
from lightning_charge.notifications.events import invoice_paid, offer_paid

if TYPE_CHECKING:
    from lightning_charge.engine.repository.invoices import InvoiceRepository
    from lightning_charge.engine.repository.offers import OfferRepository
    from lightning_charge.metrics.collector import EngineMetrics
    from lightning_charge.node.client import NodeRPC, PaidInvoice
    from lightning_charge.notifications.waiter import WaitRegistry
    from lightning_charge.notifications.webhook import WebhookDispatcher

logger = logging.getLogger(__name__)


class PaymentListener:
    """Background consumer of ``NodeRPC.wait_any_invoice``."""

    def __init__(
        self,
        node: NodeRPC,
        invoices: InvoiceRepository,
        offers: OfferRepository,
        registry: WaitRegistry,
        dispatcher: WebhookDispatcher,
        *,
        retry_delay: float = 5.0,
        wait_timeout: int | None = 60,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._node = node
        self._invoices = invoices
        self._offers = offers
        self._registry = registry
        self._dispatcher = dispatcher
        self._retry_delay = retry_delay
        self._wait_timeout = wait_timeout
        self._metrics = metrics
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._last_pay_index = 0

    @property
    def is_running(self) -> bool:
        """Whether the consumer task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def last_pay_index(self) -> int:
        """Highest pay index processed so far."""
        return self._last_pay_index

    async def start(self) -> None:
        """Start the consumer loop."""
        if self.is_running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run(), name="payment-listener")

    async def stop(self) -> None:
        """Stop the consumer loop."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Payment listener ended with an error")

    async def resume_index(self) -> int:
        """Highest pay index recorded on any invoice or offer (0 if none)."""
        indexes = (
            await self._invoices.get_max_pay_index(),
            await self._offers.get_max_pay_index(),
        )
        return max((i for i in indexes if i is not None), default=0)

    async def _run(self) -> None:
        resumed = False
        while self._running:
            try:
                if not resumed:
                    self._last_pay_index = await self.resume_index()
                    resumed = True
                    logger.info(
                        "Payment listener resuming after pay_index %d", self._last_pay_index
                    )
                paid = await self._node.wait_any_invoice(self._last_pay_index, self._wait_timeout)
            except asyncio.CancelledError:
                raise
            except NodeError as exc:
                logger.warning("waitanyinvoice failed, retrying: %s", exc.message)
                await asyncio.sleep(self._retry_delay)
                continue
            except Exception:
                logger.exception("Payment listener poll failed, retrying")
                await asyncio.sleep(self._retry_delay)
                continue
            if paid is None:
                continue
            try:
                await self.handle_payment(paid)
            except asyncio.CancelledError:
                raise
            except Exception:
                # Not advancing the index makes the node replay this payment
                logger.exception(
                    "Failed to apply payment %s (pay_index=%d)", paid.label, paid.pay_index
                )
                await asyncio.sleep(self._retry_delay)
                continue
            self._last_pay_index = max(self._last_pay_index, paid.pay_index)

    async def handle_payment(self, paid: PaidInvoice) -> bool:
        """Apply one settlement event.

        Returns:
            True if the event changed stored state (first delivery of this
            payment), False for duplicates and unknown invoices.
        """
        if paid.local_offer_id:
            return await self._handle_offer_payment(paid)

        updated = await self._invoices.mark_paid(
            paid.label, paid.pay_index, paid.paid_at, paid.msatoshi_received
        )
        if not updated:
            return False
        invoice = await self._invoices.get_by_id(paid.label)
        if invoice is None:
            return True

        view = InvoiceView.from_model(invoice)
        logger.info("Invoice %s paid (pay_index=%d)", view.id, paid.pay_index)
        self._registry.signal(view.id, view)
        self._dispatcher.dispatch(view.id, invoice_paid(view))
        if self._metrics:
            self._metrics.invoice_paid()
        return True

    async def _handle_offer_payment(self, paid: PaidInvoice) -> bool:
        offer = await self._offers.get_by_offer_id(paid.local_offer_id or "")
        if offer is None:
            logger.debug("Payment for unknown offer %s ignored", paid.local_offer_id)
            return False
        applied = await self._offers.mark_paid(
            offer.id, paid.pay_index, paid.paid_at, paid.msatoshi_received
        )
        if not applied:
            return False
        offer = await self._offers.get_by_id(offer.id)
        if offer is None:
            return True

        view = OfferView.from_model(offer)
        logger.info(
            "Offer %s paid (pay_index=%d, count=%d)", view.id, paid.pay_index, view.pay_count
        )
        self._registry.signal(view.id, view, sticky=not offer.is_recurring)
        self._dispatcher.dispatch(view.id, offer_paid(view, paid))
        if self._metrics:
            self._metrics.offer_paid()
        return True
