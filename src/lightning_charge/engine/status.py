"""Status resolution: the lifecycle state of an invoice is derived, never stored.

``paid`` iff a pay index was recorded, else ``expired`` iff the expiry time
has been reached, else ``unpaid``. Always recompute on read: the answer
depends on the current time.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from lightning_charge.errors.definitions import ErrInvalidAmount
from lightning_charge.utils import clock

ANY = "any"


class InvoiceStatus(enum.StrEnum):
    """Externally visible lifecycle states."""

    UNPAID = "unpaid"
    PAID = "paid"
    EXPIRED = "expired"


def resolve_status(
    pay_index: int | None,
    expires_at: int | None,
    now: int | None = None,
) -> InvoiceStatus:
    """Map persisted fields to a lifecycle state.

    Args:
        pay_index: Node pay index, set once the request was paid.
        expires_at: Absolute expiry in unix seconds; ``None`` never expires.
        now: Reference time; defaults to the engine clock.
    """
    if pay_index is not None:
        return InvoiceStatus.PAID
    if expires_at is not None and expires_at <= (clock.now() if now is None else now):
        return InvoiceStatus.EXPIRED
    return InvoiceStatus.UNPAID


@dataclass(frozen=True)
class Amount:
    """Requested amount: a fixed number of millisatoshi, or any amount.

    ``Amount.any()`` carries ``msatoshi=None``; a fixed amount is always
    positive, so "any" can never be mistaken for zero.
    """

    msatoshi: int | None = None

    def __post_init__(self) -> None:
        if self.msatoshi is not None and self.msatoshi <= 0:
            raise ErrInvalidAmount

    @classmethod
    def any(cls) -> Amount:
        return cls(None)

    @classmethod
    def of(cls, msatoshi: int) -> Amount:
        return cls(int(msatoshi))

    @property
    def is_any(self) -> bool:
        return self.msatoshi is None

    def node_value(self) -> int | str:
        """Amount as passed to the node's invoice call."""
        return ANY if self.msatoshi is None else self.msatoshi
