"""Offer model: reusable BOLT12 payment requests."""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lightning_charge.engine.models.base import Base, CreatedAtMixin, MetadataMixin


class Offer(Base, CreatedAtMixin, MetadataMixin):
    """A BOLT12 offer registered on the node.

    Unlike an invoice an offer may be paid many times. ``pay_index`` holds the
    latest node pay index applied to the row and only ever moves forward.
    """

    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    offer_id: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, comment="Node-issued offer ID"
    )
    bolt12: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[str] = mapped_column(
        String(64), nullable=False, default="any", comment="'any', msat, or '<amount><CUR>'"
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    vendor: Mapped[str | None] = mapped_column(Text, nullable=True)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quantity_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    absolute_expiry: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    recurrence: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recurrence_base: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recurrence_paywindow: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recurrence_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    single_use: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quoted_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quoted_amount: Mapped[str | None] = mapped_column(String(64), nullable=True)
    pay_index: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    paid_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    msatoshi_received: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    pay_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    @property
    def is_recurring(self) -> bool:
        """Whether the offer can legitimately be paid more than once."""
        return bool(self.recurrence) and not self.single_use

    def __repr__(self) -> str:
        return f"<Offer id={self.id} offer_id={self.offer_id[:16]}... pay_count={self.pay_count}>"
