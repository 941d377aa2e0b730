"""Background task definitions: cron job handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lightning_charge.engine.client import ChargeEngine

logger = logging.getLogger(__name__)

DELETE_EXPIRED_JOB = "delete_expired_invoices"
PRUNE_WAITERS_JOB = "prune_wait_registry"
PRUNE_WAITERS_PERIOD = 300  # 5 min


async def task_delete_expired_invoices(engine: ChargeEngine) -> None:
    """Remove unpaid invoices expired more than ``reconciler.ttl`` ago.

    Only invoices the node no longer knows are deleted; see
    ``InvoiceService.delete_expired``.
    """
    deleted = await engine.invoice_service.delete_expired(engine.config.reconciler.ttl)
    if deleted:
        logger.info("Deleted %d expired invoices", len(deleted))


async def task_prune_wait_registry(engine: ChargeEngine) -> None:
    """Forget cached payment resolutions older than ``wait.resolved_ttl``."""
    removed = engine.wait_registry.prune(engine.config.wait.resolved_ttl)
    if removed:
        logger.debug("Pruned %d resolved wait slots", removed)
