"""Currency conversion collaborator.

The engine does not know any exchange rates itself; it asks a
``RateProvider`` to turn a quoted fiat amount into millisatoshi.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal


class RateProvider(ABC):
    """Converts a quoted amount into millisatoshi."""

    @abstractmethod
    async def to_msat(self, currency: str, amount: Decimal) -> int:
        """Return the millisatoshi value of *amount* in *currency*.

        Raises:
            ConversionUnavailableError: If no rate can be obtained.
        """


__all__ = ["RateProvider"]
