"""Error hierarchy for the charge engine."""

from __future__ import annotations

from lightning_charge.errors.charge_errors import (
    ChargeError,
    ConversionUnavailableError,
    CorruptMetadataError,
    DuplicateIDError,
    InvalidRequestError,
)
from lightning_charge.errors.node_errors import (
    NodeError,
    NodeRejectedError,
    NodeUnavailableError,
)

__all__ = [
    "ChargeError",
    "ConversionUnavailableError",
    "CorruptMetadataError",
    "DuplicateIDError",
    "InvalidRequestError",
    "NodeError",
    "NodeRejectedError",
    "NodeUnavailableError",
]
