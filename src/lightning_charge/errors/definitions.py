"""Pre-defined error instances for validation, lookups and state checks."""

from __future__ import annotations

from lightning_charge.errors.charge_errors import ChargeError
from lightning_charge.errors.node_errors import NodeRejectedError

# -- Validation ------------------------------------------------------------

ErrInvalidAmount = ChargeError(
    "amount must be a positive number of millisatoshi", status_code=400, code="invalid-amount"
)

# -- Not Found -------------------------------------------------------------

ErrInvoiceNotFound = ChargeError("invoice not found", status_code=404, code="invoice-not-found")

# -- State -----------------------------------------------------------------

ErrInvoiceNotPaid = ChargeError("invoice is not paid", status_code=409, code="invoice-not-paid")

# -- Node ------------------------------------------------------------------

ErrOfferRejected = NodeRejectedError("node refused to create the offer")
