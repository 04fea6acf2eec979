"""
Default Store - process-wide store singleton.

Persisted values declared without an explicit store read from and write to
this shared instance, configured from the environment on first use.

Thread Safety:
    Creation is guarded by a module lock so concurrent first use yields a
    single store.
"""

import threading
from typing import Optional

from .config import StoreConfig
from .protocols import SettingsStore

_default_store: Optional[SettingsStore] = None
_default_store_lock = threading.Lock()


def get_default_store() -> SettingsStore:
    """
    Get or create the default store instance.

    Lazy singleton pattern: creates on first access, reuses thereafter.
    Testing can reset via _reset_default_store().
    """
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = StoreConfig.from_env().create_store()
        return _default_store


def set_default_store(store: SettingsStore) -> None:
    """Replace the default store, e.g. with one built from a custom config."""
    global _default_store
    with _default_store_lock:
        _default_store = store


def _reset_default_store() -> None:
    """
    Reset the default store for testing purposes.

    Clears singleton to enable fresh state in tests. Not for production use.
    """
    global _default_store
    with _default_store_lock:
        close = getattr(_default_store, "close", None)
        if close is not None:
            close()
        _default_store = None
