"""Declarative base and shared column mixins."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import BigInteger, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lightning_charge.errors.charge_errors import CorruptMetadataError
from lightning_charge.utils import clock


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""


class CreatedAtMixin:
    """Creation time in unix seconds, taken from the shared engine clock."""

    created_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=lambda: clock.now(),
    )


class MetadataMixin:
    """Opaque client metadata stored as JSON text.

    ``None`` is stored as the JSON literal ``null`` so a missing value and
    an unparseable one can never be confused.
    """

    metadata_: Mapped[str] = mapped_column(
        "metadata",
        Text,
        nullable=False,
        default="null",
    )

    def set_metadata(self, value: Any) -> None:
        """Serialize *value* into the metadata column."""
        self.metadata_ = json.dumps(value)

    def get_metadata(self) -> Any:
        """Parse the metadata column.

        Raises:
            CorruptMetadataError: If the stored text is not valid JSON.
        """
        raw = self.metadata_
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CorruptMetadataError(getattr(self, "id", "?"), raw) from exc
