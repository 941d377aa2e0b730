"""Core Lightning REST client.

Talks to the ``clnrest`` plugin, which exposes every RPC method as
``POST /v1/<method>`` with a JSON body and authenticates with a rune:

- invoice / delinvoice / listinvoices
- offer / disableoffer
- waitanyinvoice
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from lightning_charge.errors.node_errors import NodeRejectedError, NodeUnavailableError
from lightning_charge.node.client import (
    NodeInvoice,
    NodeInvoiceRecord,
    NodeOffer,
    NodeRPC,
    PaidInvoice,
)

if TYPE_CHECKING:
    from lightning_charge.config.settings import NodeConfig

logger = logging.getLogger(__name__)

# lightningd error code for an expired waitanyinvoice timeout
_WAIT_TIMED_OUT = 904

# Offer fields renamed between the engine's vocabulary and the RPC's
_OFFER_FIELD_NAMES = {"vendor": "issuer"}


def _msat(value: Any) -> int | None:
    """Parse an msat amount that may come back as int or as ``"1000msat"``."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.removesuffix("msat")
    return int(value)


class ClnRestNode(NodeRPC):
    """Async HTTP client for Core Lightning's REST interface.

    Usage::

        node = ClnRestNode(config)
        await node.connect()
        try:
            inv = await node.create_invoice(1000, "label", "desc")
        finally:
            await node.close()
    """

    def __init__(self, config: NodeConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers = {"Content-Type": "application/json"}
        if self._config.rune:
            headers["Rune"] = self._config.rune
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
            verify=self._config.verify_tls,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # NodeRPC
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        amount: int | str,
        label: str,
        description: str,
        expiry: int | None = None,
    ) -> NodeInvoice:
        params: dict[str, Any] = {
            "amount_msat": amount,
            "label": label,
            "description": description,
        }
        if expiry is not None:
            params["expiry"] = expiry
        data = await self._call("invoice", params)
        return NodeInvoice(
            payment_hash=data["payment_hash"],
            bolt11=data["bolt11"],
            expires_at=int(data["expires_at"]),
        )

    async def delete_invoice(self, label: str, status: str) -> None:
        await self._call("delinvoice", {"label": label, "status": status})

    async def list_invoice(self, label: str) -> NodeInvoiceRecord | None:
        data = await self._call("listinvoices", {"label": label})
        invoices = data.get("invoices") or []
        if not invoices:
            return None
        inv = invoices[0]
        return NodeInvoiceRecord(
            label=inv.get("label", label),
            status=inv.get("status", ""),
            payment_hash=inv.get("payment_hash", ""),
            pay_index=inv.get("pay_index"),
        )

    async def create_offer(self, fields: dict[str, Any]) -> NodeOffer | None:
        params = {_OFFER_FIELD_NAMES.get(k, k): v for k, v in fields.items() if v is not None}
        try:
            data = await self._call("offer", params)
        except NodeRejectedError as exc:
            logger.warning("Node declined offer: %s", exc.message)
            return None
        if not data.get("offer_id"):
            return None
        return NodeOffer(
            offer_id=data["offer_id"],
            bolt12=data.get("bolt12", ""),
            active=data.get("active", True),
            single_use=data.get("single_use", False),
        )

    async def disable_offer(self, offer_id: str) -> None:
        await self._call("disableoffer", {"offer_id": offer_id})

    async def wait_any_invoice(
        self,
        last_pay_index: int,
        timeout: int | None = None,
    ) -> PaidInvoice | None:
        params: dict[str, Any] = {"lastpay_index": last_pay_index}
        request_timeout: float | None = None
        if timeout is not None:
            params["timeout"] = timeout
            # The HTTP request must outlive the RPC-side wait
            request_timeout = timeout + self._config.timeout
        try:
            data = await self._call("waitanyinvoice", params, timeout=request_timeout)
        except NodeRejectedError as exc:
            if exc.rpc_code == _WAIT_TIMED_OUT:
                return None
            raise
        try:
            return PaidInvoice(
                label=data["label"],
                pay_index=int(data["pay_index"]),
                paid_at=int(data["paid_at"]),
                msatoshi_received=_msat(data.get("amount_received_msat")),
                payment_hash=data.get("payment_hash", ""),
                local_offer_id=data.get("local_offer_id"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"waitanyinvoice returned malformed payment: {exc!r}"
            raise NodeUnavailableError(msg) from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            raise NodeUnavailableError("node client not connected. Call connect() first.")
        return self._client

    async def _call(
        self,
        method: str,
        params: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST one RPC call and return the decoded result.

        Raises:
            NodeUnavailableError: Transport failure or unreadable response.
            NodeRejectedError: The node returned an RPC error.
        """
        client = self._ensure_connected()
        kwargs: dict[str, Any] = {"json": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await client.post(f"/v1/{method}", **kwargs)
        except httpx.HTTPError as exc:
            raise NodeUnavailableError(f"{method} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise NodeUnavailableError(
                f"{method} returned unreadable response (HTTP {response.status_code})"
            ) from exc

        if response.status_code >= 400:
            rpc_code = data.get("code") if isinstance(data, dict) else None
            message = data.get("message") if isinstance(data, dict) else None
            raise NodeRejectedError(
                f"{method} rejected: {message or response.status_code}",
                rpc_code=rpc_code,
            )
        if not isinstance(data, dict):
            raise NodeUnavailableError(f"{method} returned unexpected payload")
        return data
