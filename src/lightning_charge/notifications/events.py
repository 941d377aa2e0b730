"""Event payloads delivered to webhooks."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lightning_charge.engine.views import InvoiceView, OfferView
    from lightning_charge.node.client import PaidInvoice

INVOICE_PAID = "invoice.paid"
OFFER_PAID = "offer.paid"


@dataclass(frozen=True)
class RawEvent:
    """Generic event envelope posted to webhook URLs."""

    type: str
    content: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return asdict(self)


def invoice_paid(view: InvoiceView) -> RawEvent:
    """Event for a settled invoice; the content is the invoice snapshot."""
    return RawEvent(type=INVOICE_PAID, content=view.to_dict())


def offer_paid(view: OfferView, payment: PaidInvoice) -> RawEvent:
    """Event for one payment against an offer.

    Recurring offers produce one of these per payment, so the payment that
    triggered it is carried next to the offer snapshot.
    """
    return RawEvent(
        type=OFFER_PAID,
        content={
            **view.to_dict(),
            "payment": {
                "pay_index": payment.pay_index,
                "paid_at": payment.paid_at,
                "msatoshi_received": payment.msatoshi_received,
                "payment_hash": payment.payment_hash,
            },
        },
    )
