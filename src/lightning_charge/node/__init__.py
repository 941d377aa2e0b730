"""Lightning node collaborators.

Provides:
- ``NodeRPC``: the interface the engine consumes
- ``ClnRestNode``: Core Lightning implementation over its REST plugin
"""

from __future__ import annotations

from lightning_charge.node.client import (
    NodeInvoice,
    NodeInvoiceRecord,
    NodeOffer,
    NodeRPC,
    PaidInvoice,
)
from lightning_charge.node.cln.service import ClnRestNode

__all__ = [
    "ClnRestNode",
    "NodeInvoice",
    "NodeInvoiceRecord",
    "NodeOffer",
    "NodeRPC",
    "PaidInvoice",
]
