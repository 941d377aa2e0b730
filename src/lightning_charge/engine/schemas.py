"""Creation request schemas (Pydantic models)."""

from __future__ import annotations

from decimal import Decimal  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any, TypeVar

from pydantic import AnyHttpUrl, BaseModel, Field, ValidationError, model_validator

from lightning_charge.errors.charge_errors import InvalidRequestError

T = TypeVar("T", bound=BaseModel)


class _AmountFields(BaseModel):
    """Amount options shared by invoices and offers.

    ``msatoshi`` wins over a quoted ``currency``/``amount`` pair; with
    neither, any amount is accepted.
    """

    msatoshi: int | None = Field(None, gt=0, description="Fixed amount in millisatoshi")
    currency: str | None = Field(None, min_length=1, max_length=16)
    amount: Decimal | None = Field(None, gt=0, description="Amount in `currency` units")
    description: str | None = None
    metadata: Any = None
    webhook: AnyHttpUrl | None = None

    @model_validator(mode="after")
    def _check_quote(self) -> _AmountFields:
        if self.currency and self.amount is None:
            raise ValueError("currency given without an amount")
        if self.amount is not None and not self.currency:
            raise ValueError("amount given without a currency")
        return self

    @property
    def webhook_url(self) -> str | None:
        return str(self.webhook) if self.webhook is not None else None


class InvoiceRequest(_AmountFields):
    """Create an invoice."""

    expiry: int | None = Field(None, gt=0, description="Seconds until the invoice expires")


class OfferRequest(_AmountFields):
    """Create a BOLT12 offer."""

    vendor: str | None = None
    label: str | None = None
    quantity_min: int | None = Field(None, ge=1)
    quantity_max: int | None = Field(None, ge=1)
    absolute_expiry: int | None = Field(None, gt=0, description="Unix time the offer expires")
    recurrence: str | None = None
    recurrence_base: str | None = None
    recurrence_paywindow: str | None = None
    recurrence_limit: int | None = Field(None, ge=1)
    single_use: bool | None = None

    @model_validator(mode="after")
    def _check_quantity(self) -> OfferRequest:
        if (
            self.quantity_min is not None
            and self.quantity_max is not None
            and self.quantity_min > self.quantity_max
        ):
            raise ValueError("quantity_min exceeds quantity_max")
        return self


def parse_request(
    model: type[T],
    request: T | dict[str, Any] | None,
    fields: dict[str, Any],
) -> T:
    """Coerce a model instance, a dict, or keyword fields into *model*.

    Raises:
        InvalidRequestError: If validation fails.
    """
    if isinstance(request, model):
        return request
    data = {**(request or {}), **fields}
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidRequestError(f"invalid request: {details}") from exc
