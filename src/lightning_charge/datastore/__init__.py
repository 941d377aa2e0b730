"""Persistence plumbing: async engine, sessions and table creation."""

from __future__ import annotations

from lightning_charge.datastore.client import Datastore

__all__ = ["Datastore"]
