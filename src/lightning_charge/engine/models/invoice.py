"""Invoice model: single-use payment requests."""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lightning_charge.engine.models.base import Base, CreatedAtMixin, MetadataMixin


class Invoice(Base, CreatedAtMixin, MetadataMixin):
    """A single-use Lightning invoice issued through the node.

    ``msatoshi`` is NULL for invoices that accept any amount. ``pay_index``
    is assigned by the node when the invoice settles and doubles as the paid
    flag; it is written once and never cleared.
    """

    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_unpaid_expiry", "pay_index", "expires_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, comment="Invoice ID / node label")
    msatoshi: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, comment="Requested amount; NULL accepts any amount"
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quoted_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quoted_amount: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_request: Mapped[str] = mapped_column(Text, nullable=False, comment="BOLT11 string")
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    pay_index: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    paid_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    msatoshi_received: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} pay_index={self.pay_index}>"
