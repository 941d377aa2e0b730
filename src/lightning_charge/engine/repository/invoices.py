"""Invoice repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from lightning_charge.engine.models.invoice import Invoice
from lightning_charge.engine.models.webhook import Webhook
from lightning_charge.errors.charge_errors import DuplicateIDError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from lightning_charge.datastore.client import Datastore

logger = logging.getLogger(__name__)


class InvoiceRepository:
    """Data access layer for invoices."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def create(self, invoice: Invoice) -> Invoice:
        """Persist a new invoice.

        Raises:
            DuplicateIDError: If an invoice with the same id already exists.
        """
        async with self._ds.session() as session:
            session.add(invoice)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateIDError("invoice", invoice.id) from exc
            await session.refresh(invoice)
        return invoice

    async def get_by_id(self, invoice_id: str) -> Invoice | None:
        """Find an invoice by primary key."""
        async with self._ds.session() as session:
            return await session.get(Invoice, invoice_id)

    async def list_all(self) -> list[Invoice]:
        """Return every invoice, oldest first."""
        async with self._ds.session() as session:
            stmt = select(Invoice).order_by(Invoice.created_at, Invoice.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def delete_by_id(self, invoice_id: str) -> bool:
        """Delete an invoice and its webhook registrations. Returns True if deleted."""
        return await self.delete_many([invoice_id]) > 0

    async def delete_many(self, invoice_ids: Sequence[str], *, unpaid_only: bool = False) -> int:
        """Delete a batch of invoices and their webhooks in one transaction.

        With ``unpaid_only`` a row that has been paid since the caller chose
        it is kept, together with its webhook registrations.

        Returns:
            Number of invoice rows removed. An empty batch touches nothing.
        """
        if not invoice_ids:
            return 0
        ids = list(invoice_ids)
        stmt = delete(Invoice).where(Invoice.id.in_(ids))
        if unpaid_only:
            stmt = stmt.where(Invoice.pay_index.is_(None))
        still_stored = (
            select(Invoice.id).where(Invoice.id == Webhook.owner_id).correlate(Webhook).exists()
        )
        async with self._ds.transaction() as session:
            result = await session.execute(stmt)
            deleted: int = result.rowcount  # type: ignore[attr-defined]
            await session.execute(
                delete(Webhook).where(Webhook.owner_id.in_(ids), ~still_stored)
            )
        return deleted

    async def mark_paid(
        self,
        invoice_id: str,
        pay_index: int,
        paid_at: int,
        msatoshi_received: int | None,
    ) -> bool:
        """Record a payment unless one was already recorded.

        A single conditional UPDATE; under concurrent duplicate events exactly
        one caller observes ``True``.
        """
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.pay_index.is_(None))
            .values(
                pay_index=pay_index,
                paid_at=paid_at,
                msatoshi_received=msatoshi_received,
            )
        )
        async with self._ds.transaction() as session:
            result = await session.execute(stmt)
            updated = result.rowcount > 0  # type: ignore[attr-defined]
        if not updated:
            logger.debug("mark_paid ignored for %s (unknown or already paid)", invoice_id)
        return updated

    async def get_max_pay_index(self) -> int | None:
        """Highest pay index recorded on any invoice."""
        async with self._ds.session() as session:
            result = await session.execute(select(func.max(Invoice.pay_index)))
            return result.scalar()

    async def list_expired_unpaid(self, before: int) -> list[str]:
        """Ids of unpaid invoices whose expiry lies strictly before *before*."""
        async with self._ds.session() as session:
            stmt = select(Invoice.id).where(
                Invoice.pay_index.is_(None),
                Invoice.expires_at < before,
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())
