"""Store: data access for invoices, offers and webhook registrations.

The repositories are the only code that mutates persisted state.
"""

from __future__ import annotations

from lightning_charge.engine.repository.invoices import InvoiceRepository
from lightning_charge.engine.repository.offers import OfferRepository
from lightning_charge.engine.repository.webhooks import WebhookRepository

__all__ = ["InvoiceRepository", "OfferRepository", "WebhookRepository"]
