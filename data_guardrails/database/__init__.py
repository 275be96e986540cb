"""Persistence backends for guardrail state."""

from data_guardrails.database.store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLKeyValueStore,
    StorageError,
    create_store,
)

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLKeyValueStore",
    "StorageError",
    "create_store",
]
