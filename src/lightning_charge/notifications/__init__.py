"""Notifications: payment waiters and webhook dispatch.

Provides:
- ``WaitRegistry``: in-memory one-shot broadcast per invoice/offer id
- ``WebhookDispatcher``: fire-and-forget webhook delivery with outcome log
- ``PaymentListener``: consumes the node payment stream and drives both
"""

from __future__ import annotations

from lightning_charge.notifications.events import RawEvent
from lightning_charge.notifications.listener import PaymentListener
from lightning_charge.notifications.waiter import WaitRegistry, Waiter
from lightning_charge.notifications.webhook import WebhookDispatcher

__all__ = [
    "PaymentListener",
    "RawEvent",
    "WaitRegistry",
    "Waiter",
    "WebhookDispatcher",
]
