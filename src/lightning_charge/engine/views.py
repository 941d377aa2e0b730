"""Read-side snapshots of invoices and offers.

A view is built from an ORM row at read time: metadata is parsed and the
status resolved against the current clock. Views are immutable and safe to
hand to waiters and webhook payloads.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from lightning_charge.engine.status import InvoiceStatus, resolve_status

if TYPE_CHECKING:
    from lightning_charge.engine.models.invoice import Invoice
    from lightning_charge.engine.models.offer import Offer


@dataclass(frozen=True)
class InvoiceView:
    """Invoice snapshot with derived status."""

    id: str
    msatoshi: int | None
    description: str
    quoted_currency: str | None
    quoted_amount: str | None
    payment_hash: str
    payment_request: str
    expires_at: int
    created_at: int
    pay_index: int | None
    paid_at: int | None
    msatoshi_received: int | None
    metadata: Any
    status: InvoiceStatus

    @classmethod
    def from_model(cls, invoice: Invoice, *, now: int | None = None) -> InvoiceView:
        """Build a view from a row.

        Raises:
            CorruptMetadataError: If the row's metadata is not valid JSON.
        """
        return cls(
            id=invoice.id,
            msatoshi=invoice.msatoshi,
            description=invoice.description,
            quoted_currency=invoice.quoted_currency,
            quoted_amount=invoice.quoted_amount,
            payment_hash=invoice.payment_hash,
            payment_request=invoice.payment_request,
            expires_at=invoice.expires_at,
            created_at=invoice.created_at,
            pay_index=invoice.pay_index,
            paid_at=invoice.paid_at,
            msatoshi_received=invoice.msatoshi_received,
            metadata=invoice.get_metadata(),
            status=resolve_status(invoice.pay_index, invoice.expires_at, now),
        )

    @property
    def is_paid(self) -> bool:
        return self.status is InvoiceStatus.PAID

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        d = asdict(self)
        d["status"] = str(self.status)
        return d


@dataclass(frozen=True)
class OfferView:
    """Offer snapshot with derived status.

    A recurring offer stays ``unpaid`` (open for payment) after each payment;
    a one-shot offer becomes ``paid`` on its first payment.
    """

    id: str
    offer_id: str
    bolt12: str
    amount: str
    description: str
    vendor: str | None
    label: str | None
    quantity_min: int | None
    quantity_max: int | None
    absolute_expiry: int | None
    recurrence: str | None
    recurrence_base: str | None
    recurrence_paywindow: str | None
    recurrence_limit: int | None
    single_use: bool
    quoted_currency: str | None
    quoted_amount: str | None
    created_at: int
    pay_index: int | None
    paid_at: int | None
    msatoshi_received: int
    pay_count: int
    metadata: Any
    status: InvoiceStatus

    @classmethod
    def from_model(cls, offer: Offer, *, now: int | None = None) -> OfferView:
        """Build a view from a row.

        Raises:
            CorruptMetadataError: If the row's metadata is not valid JSON.
        """
        settled = None if offer.is_recurring else offer.pay_index
        return cls(
            id=offer.id,
            offer_id=offer.offer_id,
            bolt12=offer.bolt12,
            amount=offer.amount,
            description=offer.description,
            vendor=offer.vendor,
            label=offer.label,
            quantity_min=offer.quantity_min,
            quantity_max=offer.quantity_max,
            absolute_expiry=offer.absolute_expiry,
            recurrence=offer.recurrence,
            recurrence_base=offer.recurrence_base,
            recurrence_paywindow=offer.recurrence_paywindow,
            recurrence_limit=offer.recurrence_limit,
            single_use=offer.single_use,
            quoted_currency=offer.quoted_currency,
            quoted_amount=offer.quoted_amount,
            created_at=offer.created_at,
            pay_index=offer.pay_index,
            paid_at=offer.paid_at,
            msatoshi_received=offer.msatoshi_received,
            pay_count=offer.pay_count,
            metadata=offer.get_metadata(),
            status=resolve_status(settled, offer.absolute_expiry, now),
        )

    @property
    def is_paid(self) -> bool:
        return self.status is InvoiceStatus.PAID

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        d = asdict(self)
        d["status"] = str(self.status)
        return d
