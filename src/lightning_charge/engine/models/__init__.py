"""Engine data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for table creation.
"""

from lightning_charge.engine.models.base import Base, CreatedAtMixin, MetadataMixin
from lightning_charge.engine.models.invoice import Invoice
from lightning_charge.engine.models.offer import Offer
from lightning_charge.engine.models.webhook import Webhook

ALL_MODELS: list[type[Base]] = [
    Invoice,
    Offer,
    Webhook,
]

__all__ = [
    "ALL_MODELS",
    "Base",
    "CreatedAtMixin",
    "Invoice",
    "MetadataMixin",
    "Offer",
    "Webhook",
]
