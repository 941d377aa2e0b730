"""ChargeError: base exception class and engine-level errors."""

from __future__ import annotations


class ChargeError(Exception):
    """Base error for all charge engine operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code for an upstream API layer.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "charge-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class DuplicateIDError(ChargeError):
    """An insert collided with an existing primary key.

    Safe to retry the whole operation with a freshly generated id.
    """

    def __init__(self, entity: str, id_: str) -> None:
        super().__init__(
            f"{entity} id already exists: {id_}", status_code=409, code="duplicate-id"
        )
        self.entity = entity
        self.id = id_


class ConversionUnavailableError(ChargeError):
    """A quoted currency amount could not be converted to millisatoshi."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=503, code="conversion-unavailable")


class CorruptMetadataError(ChargeError):
    """Stored metadata is not valid JSON.

    Metadata is only ever written by the engine itself, so this points at a
    bug in a previous write path and is never silently defaulted.
    """

    def __init__(self, owner_id: str, raw: str) -> None:
        super().__init__(
            f"corrupt metadata stored for {owner_id}: {raw[:64]!r}",
            status_code=500,
            code="corrupt-metadata",
        )
        self.owner_id = owner_id


class InvalidRequestError(ChargeError):
    """Creation input failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400, code="invalid-request")
