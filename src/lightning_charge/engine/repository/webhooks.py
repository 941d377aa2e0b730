"""Webhook registration repository and delivery outcome log."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from lightning_charge.engine.models.webhook import Webhook
from lightning_charge.utils import clock

if TYPE_CHECKING:
    from lightning_charge.datastore.client import Datastore


class WebhookRepository:
    """Data access layer for webhook registrations."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def register(self, owner_id: str, url: str) -> Webhook:
        """Register *url* to be notified about *owner_id*."""
        hook = Webhook(owner_id=owner_id, url=url, created_at=clock.now())
        async with self._ds.session() as session:
            session.add(hook)
            await session.commit()
            await session.refresh(hook)
        return hook

    async def get_by_id(self, hook_id: int) -> Webhook | None:
        async with self._ds.session() as session:
            return await session.get(Webhook, hook_id)

    async def list_for(self, owner_id: str) -> list[Webhook]:
        """All registrations for an invoice or offer, in registration order."""
        async with self._ds.session() as session:
            stmt = select(Webhook).where(Webhook.owner_id == owner_id).order_by(Webhook.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def log_outcome(
        self,
        hook_id: int,
        *,
        resp_code: int | None = None,
        error: str | None = None,
    ) -> None:
        """Overwrite the latest delivery outcome of a registration.

        Pass ``resp_code`` for a successful delivery or ``error`` for a failed
        one; the other field is cleared.
        """
        if error is None:
            values = {"success": True, "resp_code": resp_code, "resp_error": None}
        else:
            values = {"success": False, "resp_code": None, "resp_error": error}
        stmt = (
            update(Webhook)
            .where(Webhook.id == hook_id)
            .values(requested_at=clock.now(), **values)
        )
        async with self._ds.transaction() as session:
            await session.execute(stmt)
