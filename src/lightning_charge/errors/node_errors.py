"""Errors raised by Lightning node collaborators."""

from __future__ import annotations

from lightning_charge.errors.charge_errors import ChargeError


class NodeError(ChargeError):
    """Base error for node RPC failures."""

    def __init__(self, message: str, *, status_code: int = 502, code: str = "node-error") -> None:
        super().__init__(message, status_code=status_code, code=code)


class NodeUnavailableError(NodeError):
    """The node could not be reached or did not answer in time."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="node-unavailable")


class NodeRejectedError(NodeError):
    """The node answered but refused the request.

    Attributes:
        rpc_code: Node-side error code, when the node reported one.
    """

    def __init__(self, message: str, *, rpc_code: int | None = None) -> None:
        super().__init__(message, code="node-rejected")
        self.rpc_code = rpc_code
