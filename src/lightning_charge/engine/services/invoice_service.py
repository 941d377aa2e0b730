"""Invoice service: create, inspect, delete, wait for and reconcile invoices."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from lightning_charge.engine.models.invoice import Invoice
from lightning_charge.engine.schemas import InvoiceRequest, parse_request
from lightning_charge.engine.services.waiting import WaitResult, WaitStatus, bound_wait
from lightning_charge.engine.status import Amount, InvoiceStatus, resolve_status
from lightning_charge.engine.views import InvoiceView
from lightning_charge.errors.charge_errors import ConversionUnavailableError
from lightning_charge.errors.definitions import ErrInvoiceNotFound, ErrInvoiceNotPaid
from lightning_charge.notifications.events import invoice_paid
from lightning_charge.utils import clock, ids

if TYPE_CHECKING:
    from lightning_charge.engine.client import ChargeEngine

logger = logging.getLogger(__name__)


class InvoiceService:
    """Business logic for single-use invoices.

    Every operation that touches the node does so before changing local
    state, so a node failure never leaves the store out of step with it.
    """

    def __init__(self, engine: ChargeEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def new_invoice(
        self,
        request: InvoiceRequest | dict[str, Any] | None = None,
        **fields: Any,
    ) -> InvoiceView:
        """Create an invoice on the node and persist it.

        Accepts an :class:`InvoiceRequest`, a dict, or keyword fields
        (``msatoshi``, ``currency``/``amount``, ``description``, ``expiry``,
        ``metadata``, ``webhook``).

        Raises:
            InvalidRequestError: If the request does not validate.
            ConversionUnavailableError: If a quoted amount cannot be converted.
            NodeError: If the node fails to create the invoice.
            DuplicateIDError: If the generated id collides with a stored one.
        """
        req = parse_request(InvoiceRequest, request, fields)
        engine = self._engine
        amount = await self._resolve_amount(req)

        invoice_id = ids.new_id()
        description = req.description or engine.config.invoice.default_description
        node_invoice = await engine.node.create_invoice(
            amount.node_value(), invoice_id, description, req.expiry
        )

        invoice = Invoice(
            id=invoice_id,
            msatoshi=amount.msatoshi,
            description=description,
            quoted_currency=req.currency,
            quoted_amount=str(req.amount) if req.amount is not None else None,
            payment_hash=node_invoice.payment_hash,
            payment_request=node_invoice.bolt11,
            expires_at=node_invoice.expires_at,
            created_at=clock.now(),
        )
        invoice.set_metadata(req.metadata)

        logger.debug("Saving invoice %s (msatoshi=%s)", invoice_id, invoice.msatoshi)
        await engine.invoices.create(invoice)

        if req.webhook_url:
            await engine.webhooks.register(invoice_id, req.webhook_url)

        if engine.metrics:
            engine.metrics.invoice_created()
        return InvoiceView.from_model(invoice)

    async def list_invoices(self) -> list[InvoiceView]:
        """All invoices with their current status."""
        now = clock.now()
        return [InvoiceView.from_model(i, now=now) for i in await self._engine.invoices.list_all()]

    async def fetch_invoice(self, invoice_id: str) -> InvoiceView | None:
        """One invoice, or None if unknown."""
        invoice = await self._engine.invoices.get_by_id(invoice_id)
        return InvoiceView.from_model(invoice) if invoice is not None else None

    async def get_last_pay_index(self) -> int | None:
        """Highest pay index recorded on any invoice."""
        return await self._engine.invoices.get_max_pay_index()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_invoice(self, invoice_id: str, status: str | None = None) -> bool:
        """Delete an invoice on the node, then locally.

        Args:
            invoice_id: The invoice to delete.
            status: Status the caller believes the invoice has; the node
                refuses the deletion on mismatch. Defaults to the current
                derived status.

        Returns:
            False if the invoice is unknown.

        Raises:
            NodeError: If the node refuses; the local row is kept.
        """
        engine = self._engine
        invoice = await engine.invoices.get_by_id(invoice_id)
        if invoice is None:
            return False
        expected = status or resolve_status(invoice.pay_index, invoice.expires_at)
        await engine.node.delete_invoice(invoice_id, str(expected))
        deleted = await engine.invoices.delete_by_id(invoice_id)
        engine.wait_registry.clear(invoice_id)
        logger.info("Deleted invoice %s (status=%s)", invoice_id, expected)
        return deleted

    async def delete_expired(self, ttl: int) -> list[str]:
        """Delete unpaid invoices expired more than *ttl* seconds ago.

        Each candidate is looked up on the node first; only those the node no
        longer has are deleted, in a single batch. A lookup failure keeps that
        candidate and does not affect the others.

        Returns:
            Ids of the deleted invoices.
        """
        engine = self._engine
        candidates = await engine.invoices.list_expired_unpaid(clock.now() - ttl)
        if not candidates:
            return []

        results = await asyncio.gather(
            *(engine.node.list_invoice(invoice_id) for invoice_id in candidates),
            return_exceptions=True,
        )
        gone: list[str] = []
        for invoice_id, result in zip(candidates, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Could not check expired invoice %s on node: %s", invoice_id, result)
            elif result is None:
                gone.append(invoice_id)
            else:
                logger.debug("Expired invoice %s still on node; kept", invoice_id)

        if gone:
            deleted = await engine.invoices.delete_many(gone, unpaid_only=True)
            if deleted < len(gone):
                # Paid after the candidate scan; the store kept those rows
                gone = [i for i in gone if await engine.invoices.get_by_id(i) is None]
            for invoice_id in gone:
                engine.wait_registry.clear(invoice_id)
            if engine.metrics:
                engine.metrics.expired_deleted(len(gone))
        return gone

    # ------------------------------------------------------------------
    # Wait / notify
    # ------------------------------------------------------------------

    async def wait_for_payment(
        self,
        invoice_id: str,
        timeout: float | None = None,
    ) -> WaitResult[InvoiceView] | None:
        """Block until the invoice is paid, it expires, or *timeout* passes.

        The wait is bounded by the caller's timeout (default
        ``wait.default_timeout``), the time left until expiry, and
        ``wait.max_wait``.

        Returns:
            ``PAID`` with the paid snapshot, ``EXPIRED`` if the invoice can no
            longer be paid, ``PENDING`` if the caller's timeout ran out first,
            or None for an unknown invoice.
        """
        engine = self._engine
        cfg = engine.config.wait
        with engine.wait_registry.subscribe(invoice_id) as waiter:
            invoice = await engine.invoices.get_by_id(invoice_id)
            if invoice is None:
                return None
            view = InvoiceView.from_model(invoice)
            if view.status is InvoiceStatus.PAID:
                return WaitResult(WaitStatus.PAID, view)
            if view.status is InvoiceStatus.EXPIRED:
                return WaitResult(WaitStatus.EXPIRED, view)

            duration, bound_by_expiry = bound_wait(
                timeout,
                view.expires_at - clock.now(),
                default=cfg.default_timeout,
                max_wait=cfg.max_wait,
            )
            paid = await waiter.wait(duration)

        if paid is not None:
            return WaitResult(WaitStatus.PAID, paid)
        if bound_by_expiry:
            return WaitResult(
                WaitStatus.EXPIRED, dataclasses.replace(view, status=InvoiceStatus.EXPIRED)
            )
        return WaitResult(WaitStatus.PENDING, view)

    async def redeliver_webhooks(self, invoice_id: str) -> list[bool]:
        """Deliver the paid notification again to every hook of a paid invoice.

        Returns:
            One success flag per registration.

        Raises:
            ChargeError: If the invoice is unknown or not paid.
        """
        view = await self.fetch_invoice(invoice_id)
        if view is None:
            raise ErrInvoiceNotFound
        if not view.is_paid:
            raise ErrInvoiceNotPaid
        return await self._engine.webhook_dispatcher.deliver(invoice_id, invoice_paid(view))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _resolve_amount(self, req: InvoiceRequest) -> Amount:
        if req.msatoshi is not None:
            return Amount.of(req.msatoshi)
        if req.currency and req.amount is not None:
            rates = self._engine.rates
            if rates is None:
                raise ConversionUnavailableError(
                    f"no rate provider configured to convert {req.currency}"
                )
            return Amount.of(await rates.to_msat(req.currency, req.amount))
        return Amount.any()
