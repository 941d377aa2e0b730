"""Node RPC interface and the records it exchanges with the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class NodeInvoice:
    """Result of creating an invoice on the node."""

    payment_hash: str
    bolt11: str
    expires_at: int


@dataclass(frozen=True)
class NodeInvoiceRecord:
    """An invoice as the node currently knows it."""

    label: str
    status: str
    payment_hash: str = ""
    pay_index: int | None = None


@dataclass(frozen=True)
class NodeOffer:
    """Result of registering an offer on the node."""

    offer_id: str
    bolt12: str
    active: bool = True
    single_use: bool = False


@dataclass(frozen=True)
class PaidInvoice:
    """A settlement event from the node's payment stream.

    ``label`` is the invoice id for invoices created by the engine.
    ``local_offer_id`` is set when the paid invoice belongs to an offer.
    """

    label: str
    pay_index: int
    paid_at: int
    msatoshi_received: int | None = None
    payment_hash: str = ""
    local_offer_id: str | None = None


class NodeRPC(ABC):
    """Operations the engine needs from a Lightning node.

    Implementations raise ``NodeUnavailableError`` when the node cannot be
    reached and ``NodeRejectedError`` when it refuses a request.
    """

    async def connect(self) -> None:  # noqa: B027
        """Open any underlying connection (optional)."""

    async def close(self) -> None:  # noqa: B027
        """Release any underlying connection (optional)."""

    @abstractmethod
    async def create_invoice(
        self,
        amount: int | str,
        label: str,
        description: str,
        expiry: int | None = None,
    ) -> NodeInvoice:
        """Create an invoice for *amount* msat, or ``"any"``."""

    @abstractmethod
    async def delete_invoice(self, label: str, status: str) -> None:
        """Delete an invoice; fails if its node-side status differs from *status*."""

    @abstractmethod
    async def list_invoice(self, label: str) -> NodeInvoiceRecord | None:
        """Look up one invoice; ``None`` once the node no longer has it."""

    @abstractmethod
    async def create_offer(self, fields: dict[str, Any]) -> NodeOffer | None:
        """Register an offer; ``None`` if the node declined it."""

    @abstractmethod
    async def disable_offer(self, offer_id: str) -> None:
        """Stop the node from accepting payments for an offer."""

    @abstractmethod
    async def wait_any_invoice(
        self,
        last_pay_index: int,
        timeout: int | None = None,
    ) -> PaidInvoice | None:
        """Block until an invoice with a higher pay index settles.

        Returns ``None`` if *timeout* elapses first.
        """
