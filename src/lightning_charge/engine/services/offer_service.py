"""Offer service: BOLT12 offers and their payments."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from lightning_charge.engine.models.offer import Offer
from lightning_charge.engine.schemas import OfferRequest, parse_request
from lightning_charge.engine.services.waiting import WaitResult, WaitStatus, bound_wait
from lightning_charge.engine.status import ANY, InvoiceStatus
from lightning_charge.engine.views import OfferView
from lightning_charge.errors.definitions import ErrOfferRejected
from lightning_charge.utils import clock, ids

if TYPE_CHECKING:
    from lightning_charge.engine.client import ChargeEngine

logger = logging.getLogger(__name__)

# Request fields forwarded to the node as-is
_NODE_FIELDS = (
    "vendor",
    "label",
    "quantity_min",
    "quantity_max",
    "absolute_expiry",
    "recurrence",
    "recurrence_base",
    "recurrence_paywindow",
    "recurrence_limit",
    "single_use",
)


def _offer_amount(req: OfferRequest) -> str:
    """Amount argument for the node: quoted currency, fixed msat, or any."""
    if req.currency and req.amount is not None:
        return f"{req.amount}{req.currency.upper()}"
    if req.msatoshi is not None:
        return str(req.msatoshi)
    return ANY


class OfferService:
    """Business logic for reusable offers."""

    def __init__(self, engine: ChargeEngine) -> None:
        self._engine = engine

    async def new_offer(
        self,
        request: OfferRequest | dict[str, Any] | None = None,
        **fields: Any,
    ) -> OfferView:
        """Register an offer on the node and persist it.

        Raises:
            InvalidRequestError: If the request does not validate.
            NodeRejectedError: If the node declines the offer.
            NodeUnavailableError: If the node cannot be reached.
        """
        req = parse_request(OfferRequest, request, fields)
        engine = self._engine

        node_fields: dict[str, Any] = {
            "amount": _offer_amount(req),
            "description": req.description or engine.config.invoice.default_offer_description,
        }
        for name in _NODE_FIELDS:
            value = getattr(req, name)
            if value is not None:
                node_fields[name] = value

        node_offer = await engine.node.create_offer(node_fields)
        if node_offer is None:
            raise ErrOfferRejected

        offer = Offer(
            id=ids.new_id(),
            offer_id=node_offer.offer_id,
            bolt12=node_offer.bolt12,
            amount=node_fields["amount"],
            description=node_fields["description"],
            vendor=req.vendor,
            label=req.label,
            quantity_min=req.quantity_min,
            quantity_max=req.quantity_max,
            absolute_expiry=req.absolute_expiry,
            recurrence=req.recurrence,
            recurrence_base=req.recurrence_base,
            recurrence_paywindow=req.recurrence_paywindow,
            recurrence_limit=req.recurrence_limit,
            single_use=bool(req.single_use or node_offer.single_use),
            quoted_currency=req.currency,
            quoted_amount=str(req.amount) if req.amount is not None else None,
            created_at=clock.now(),
        )
        offer.set_metadata(req.metadata)

        logger.debug("Saving offer %s (node offer %s)", offer.id, offer.offer_id)
        await engine.offers.create(offer)

        if req.webhook_url:
            await engine.webhooks.register(offer.id, req.webhook_url)
        return OfferView.from_model(offer)

    async def list_offers(self) -> list[OfferView]:
        now = clock.now()
        return [OfferView.from_model(o, now=now) for o in await self._engine.offers.list_all()]

    async def fetch_offer(self, id_: str) -> OfferView | None:
        offer = await self._engine.offers.get_by_id(id_)
        return OfferView.from_model(offer) if offer is not None else None

    async def delete_offer(self, id_: str) -> bool:
        """Disable the offer on the node, then delete it locally.

        Returns:
            False if the offer is unknown.

        Raises:
            NodeError: If the node refuses; the local row is kept.
        """
        engine = self._engine
        offer = await engine.offers.get_by_id(id_)
        if offer is None:
            return False
        await engine.node.disable_offer(offer.offer_id)
        deleted = await engine.offers.delete_by_id(id_)
        engine.wait_registry.clear(id_)
        logger.info("Deleted offer %s", id_)
        return deleted

    async def wait_for_payment(
        self,
        id_: str,
        timeout: float | None = None,
    ) -> WaitResult[OfferView] | None:
        """Block until the offer receives a payment, expires, or *timeout* passes.

        A one-shot offer that was already paid returns at once. A recurring
        offer waits for its next payment.
        """
        engine = self._engine
        cfg = engine.config.wait
        with engine.wait_registry.subscribe(id_) as waiter:
            offer = await engine.offers.get_by_id(id_)
            if offer is None:
                return None
            view = OfferView.from_model(offer)
            if view.status is InvoiceStatus.PAID:
                return WaitResult(WaitStatus.PAID, view)
            if view.status is InvoiceStatus.EXPIRED:
                return WaitResult(WaitStatus.EXPIRED, view)

            expires_in = (
                view.absolute_expiry - clock.now() if view.absolute_expiry is not None else None
            )
            duration, bound_by_expiry = bound_wait(
                timeout, expires_in, default=cfg.default_timeout, max_wait=cfg.max_wait
            )
            paid = await waiter.wait(duration)

        if paid is not None:
            return WaitResult(WaitStatus.PAID, paid)
        if bound_by_expiry:
            return WaitResult(
                WaitStatus.EXPIRED, dataclasses.replace(view, status=InvoiceStatus.EXPIRED)
            )
        return WaitResult(WaitStatus.PENDING, view)
