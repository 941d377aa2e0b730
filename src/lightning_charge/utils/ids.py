"""Identifier generation for invoices and offers."""

from __future__ import annotations

import secrets

# 16 random bytes -> 22 URL-safe characters (128 bits of entropy)
_ID_BYTES = 16


def new_id() -> str:
    """Return a new high-entropy, URL-safe identifier."""
    return secrets.token_urlsafe(_ID_BYTES)
