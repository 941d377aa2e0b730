"""Long-poll outcome types and wait-duration bounding."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


class WaitStatus(enum.StrEnum):
    """How a long-poll wait ended."""

    PAID = "paid"
    EXPIRED = "expired"
    PENDING = "pending"

    @property
    def http_status(self) -> int:
        """Status code an HTTP layer should answer with.

        200 carries the paid snapshot, 410 means the request can no longer be
        paid, 402 means it is still payable and the client may poll again.
        """
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    WaitStatus.PAID: 200,
    WaitStatus.EXPIRED: 410,
    WaitStatus.PENDING: 402,
}


@dataclass(frozen=True)
class WaitResult(Generic[V]):
    """Outcome of a wait plus the freshest snapshot known to it."""

    status: WaitStatus
    view: V


def bound_wait(
    requested: float | None,
    expires_in: float | None,
    *,
    default: float,
    max_wait: float,
) -> tuple[float, bool]:
    """Effective wait duration and whether the expiry is what bounds it.

    The duration is the smallest of the caller's timeout (or *default*), the
    time left until expiry, and *max_wait*.
    """
    caller = requested if requested is not None and requested > 0 else default
    caller = min(caller, max_wait)
    if expires_in is not None and expires_in <= caller:
        return max(expires_in, 0), True
    return caller, False
