"""
Key-Value Store Implementation
==============================

Thread-safe, string-keyed store of primitive values with an LRU read cache.

This is the host dictionary that persisted values read from and write to. It
only accepts the shapes listed in ``persisted.primitives`` and copies list and
dict values on the way in and out, so a caller mutating a value it read cannot
change what is stored behind the store's back.
"""

import concurrent.futures
import copy
import threading
from typing import Any, Callable, Dict, List, Tuple

from cachetools import LRUCache

from ..primitives import is_stored_primitive


def _detach(value: Any) -> Any:
    """Copy mutable containers; scalars are immutable and shared as-is."""
    if isinstance(value, (list, dict)):
        return copy.deepcopy(value)
    return value


class KeyValueStore:
    """
    Key-value store of primitives with LRU caching.

    Features:
    - O(1) get, set, delete operations
    - Thread-safe operations (single operations are atomic, read-modify-write
      sequences are not)
    - LRU caching for frequently read keys
    - Optional thread pool for running work off the caller's thread

    Usage:
        store = KeyValueStore()
        store.set("volume", 7)
        store.get("volume")        # 7
        store.delete("volume")
    """

    # Sentinel object for "key not found"
    _MISSING = object()

    def __init__(
        self,
        cache_size: int = 1024,
        async_operations: bool = False,
        max_workers: int = 1,
    ):
        """
        Initialize the store.

        Args:
            cache_size: Size of the LRU cache for frequently read values
            async_operations: Whether to enable async operation support
            max_workers: Maximum number of worker threads for async operations
        """
        self._data: Dict[str, Any] = {}
        self._cache = LRUCache(maxsize=cache_size)
        self._lock = threading.RLock()
        self._async_operations = async_operations

        self._executor = (
            concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
            if async_operations
            else None
        )

    @staticmethod
    def _check_key(key: Any) -> None:
        if not isinstance(key, str):
            raise TypeError(f"store keys must be str, got {type(key).__name__}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get value for key. O(1) operation.

        Args:
            key: The key to lookup
            default: Value to return if key not found

        Returns:
            A copy of the value associated with key, or default if not found
        """
        with self._lock:
            cached_value = self._cache.get(key, self._MISSING)
            if cached_value is not self._MISSING:
                return _detach(cached_value)

            value = self._data.get(key, self._MISSING)
            if value is self._MISSING:
                return default

            self._cache[key] = value
            return _detach(value)

    def set(self, key: str, value: Any) -> None:
        """
        Set key to value. O(1) operation.

        Args:
            key: The key to set
            value: A storable primitive (see ``persisted.primitives``)

        Raises:
            TypeError: If key is not a str or value is not a storable primitive
        """
        self._check_key(key)
        if not is_stored_primitive(value):
            raise TypeError(
                f"cannot store {type(value).__name__} under {key!r}: not a primitive"
            )
        value = _detach(value)
        with self._lock:
            self._data[key] = value
            self._cache[key] = value

    def delete(self, key: str) -> bool:
        """
        Delete key from store. O(1) operation.

        Returns:
            True if key was deleted, False if key didn't exist
        """
        with self._lock:
            if key not in self._data:
                return False

            del self._data[key]
            self._cache.pop(key, None)
            return True

    def remove(self, key: str) -> None:
        """Remove key if present. Removing a missing key is a no-op."""
        self.delete(key)

    def has(self, key: str) -> bool:
        """Check if key exists. O(1) operation."""
        with self._lock:
            return key in self._data

    def keys(self) -> List[str]:
        """Return all keys."""
        with self._lock:
            return list(self._data.keys())

    def items(self) -> List[Tuple[str, Any]]:
        """Return all (key, value) pairs."""
        with self._lock:
            return [(k, _detach(v)) for k, v in self._data.items()]

    def clear(self) -> None:
        """Clear all data from store."""
        with self._lock:
            self._data.clear()
            self._cache.clear()

    def size(self) -> int:
        """Return number of keys in store."""
        with self._lock:
            return len(self._data)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __getitem__(self, key: str) -> Any:
        """Get value for key, raises KeyError if not found."""
        value = self.get(key, self._MISSING)
        if value is self._MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        """Delete key, raises KeyError if not found."""
        if not self.delete(key):
            raise KeyError(key)

    def execute_async(
        self, func: Callable, *args, **kwargs
    ) -> concurrent.futures.Future:
        """
        Execute a function asynchronously using the thread pool.

        Returns:
            Future object representing the async operation
        """
        if not self._async_operations or not self._executor:
            raise RuntimeError("Async operations not enabled")

        return self._executor.submit(func, *args, **kwargs)

    def close(self):
        """Clean up resources, especially the thread pool executor."""
        if self._executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def async_enabled(self) -> bool:
        """Check if async operations are enabled."""
        return self._async_operations and self._executor is not None
