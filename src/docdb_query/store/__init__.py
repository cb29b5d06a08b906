"""Store client implementations."""

from __future__ import annotations

from .memory import InMemoryStoreClient

__all__ = ["InMemoryStoreClient"]
