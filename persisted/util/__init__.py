"""
Persisted Store Utils - In-Memory Host Store
============================================

- KeyValueStore: thread-safe, LRU-cached dictionary of primitives
- ReactiveKeyValueStore: KeyValueStore with per-key change notifications
"""

from .kv_store import KeyValueStore
from .reactive_kv_store import (
    ChangeEvent,
    ChangeType,
    ReactiveKeyValueStore,
    Subscription,
    create_reactive_store,
)

__all__ = [
    "KeyValueStore",
    "ReactiveKeyValueStore",
    "ChangeEvent",
    "ChangeType",
    "Subscription",
    "create_reactive_store",
]
