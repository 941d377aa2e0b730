"""Webhook model: per-invoice/offer callback registrations."""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lightning_charge.engine.models.base import Base, CreatedAtMixin


class Webhook(Base, CreatedAtMixin):
    """A callback URL registered for one invoice or offer.

    The ``requested_at``/``success``/``resp_code``/``resp_error`` columns hold
    the outcome of the most recent delivery attempt and are overwritten on
    every attempt.
    """

    __tablename__ = "invoice_webhooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True, comment="Invoice or offer ID"
    )
    url: Mapped[str] = mapped_column(Text, nullable=False, comment="Callback URL")
    requested_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    success: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=None)
    resp_code: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    resp_error: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    def __repr__(self) -> str:
        return f"<Webhook id={self.id} owner={self.owner_id} url={self.url[:30]}>"
