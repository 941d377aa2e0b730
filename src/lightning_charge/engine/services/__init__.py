"""Engine services: the operations exposed to an API layer."""

from __future__ import annotations

from lightning_charge.engine.services.invoice_service import InvoiceService
from lightning_charge.engine.services.offer_service import OfferService
from lightning_charge.engine.services.waiting import WaitResult, WaitStatus

__all__ = ["InvoiceService", "OfferService", "WaitResult", "WaitStatus"]
