"""Offer repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from lightning_charge.engine.models.offer import Offer
from lightning_charge.engine.models.webhook import Webhook
from lightning_charge.errors.charge_errors import DuplicateIDError

if TYPE_CHECKING:
    from lightning_charge.datastore.client import Datastore


class OfferRepository:
    """Data access layer for offers."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def create(self, offer: Offer) -> Offer:
        """Persist a new offer.

        Raises:
            DuplicateIDError: If the id or the node offer id is already stored.
        """
        async with self._ds.session() as session:
            session.add(offer)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateIDError("offer", offer.id) from exc
            await session.refresh(offer)
        return offer

    async def get_by_id(self, id_: str) -> Offer | None:
        """Find an offer by primary key."""
        async with self._ds.session() as session:
            return await session.get(Offer, id_)

    async def get_by_offer_id(self, offer_id: str) -> Offer | None:
        """Find an offer by its node-issued offer id."""
        async with self._ds.session() as session:
            result = await session.execute(select(Offer).where(Offer.offer_id == offer_id))
            return result.scalar_one_or_none()

    async def list_all(self) -> list[Offer]:
        """Return every offer, oldest first."""
        async with self._ds.session() as session:
            result = await session.execute(select(Offer).order_by(Offer.created_at, Offer.id))
            return list(result.scalars().all())

    async def delete_by_id(self, id_: str) -> bool:
        """Delete an offer and its webhook registrations. Returns True if deleted."""
        async with self._ds.transaction() as session:
            await session.execute(delete(Webhook).where(Webhook.owner_id == id_))
            result = await session.execute(delete(Offer).where(Offer.id == id_))
            deleted = result.rowcount > 0  # type: ignore[attr-defined]
        return deleted

    async def mark_paid(
        self,
        id_: str,
        pay_index: int,
        paid_at: int,
        msatoshi_received: int | None,
    ) -> bool:
        """Apply one payment to the offer if *pay_index* is newer than the last one.

        Replayed events (same or older pay index) are no-ops, so a payment is
        never counted twice.
        """
        stmt = (
            update(Offer)
            .where(
                Offer.id == id_,
                or_(Offer.pay_index.is_(None), Offer.pay_index < pay_index),
            )
            .values(
                pay_index=pay_index,
                paid_at=paid_at,
                pay_count=Offer.pay_count + 1,
                msatoshi_received=Offer.msatoshi_received + (msatoshi_received or 0),
            )
        )
        async with self._ds.transaction() as session:
            result = await session.execute(stmt)
            applied = result.rowcount > 0  # type: ignore[attr-defined]
        return applied

    async def get_max_pay_index(self) -> int | None:
        """Highest pay index applied to any offer."""
        async with self._ds.session() as session:
            result = await session.execute(select(func.max(Offer.pay_index)))
            return result.scalar()
