"""
Reactive Key-Value Store
========================

Extension of KeyValueStore with push-based change notifications.

Persisted values rely on one narrow capability: ``observe(key, callback)``
returns a subscription token and ``unobserve(token)`` releases it.
``subscribe`` without keys watches the whole store.
"""

import logging
import weakref
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """Types of changes that can occur in the store."""

    SET = "set"
    DELETE = "delete"
    CLEAR = "clear"


@dataclass
class ChangeEvent:
    """
    Represents a change event in the store.

    Attributes:
        key: The key that changed
        change_type: Type of change (SET, DELETE, CLEAR)
        old_value: Previous value (None if new key)
        new_value: New value (None if deleted or cleared)
    """

    key: str
    change_type: ChangeType
    old_value: Any = None
    new_value: Any = None

    def __repr__(self):
        if self.change_type == ChangeType.SET:
            return f"ChangeEvent(SET {self.key}: {self.old_value!r} -> {self.new_value!r})"
        elif self.change_type == ChangeType.DELETE:
            return f"ChangeEvent(DELETE {self.key}: {self.old_value!r})"
        else:
            return f"ChangeEvent(CLEAR {self.key})"


class Subscription:
    """
    A registered callback, for a set of keys or for the whole store.

    Holds only a weak reference to its store.
    """

    def __init__(
        self,
        subscriber_id: int,
        callback: Callable[[ChangeEvent], None],
        store: "ReactiveKeyValueStore",
        keys: Optional[Set[str]] = None,
    ):
        self.id = subscriber_id
        self.callback = callback
        self._store_ref = weakref.ref(store)
        self.keys = keys  # None means every key

    def unsubscribe(self) -> bool:
        """Stop receiving notifications."""
        store = self._store_ref()
        if store is None:
            return False
        return store.unsubscribe(self.id)

    def matches_key(self, key: str) -> bool:
        return self.keys is None or key in self.keys

    def notify(self, event: ChangeEvent):
        """Deliver an event, logging rather than raising callback failures."""
        if self.matches_key(event.key):
            try:
                self.callback(event)
            except Exception:
                logger.exception("Error in subscription %s for key %r", self.id, event.key)

    def __repr__(self) -> str:
        target = sorted(self.keys) if self.keys is not None else "*"
        return f"Subscription(id={self.id}, keys={target!r})"


class ReactiveKeyValueStore(KeyValueStore):
    """
    Key-value store with push-based change notifications.

    Features:
    - All features of KeyValueStore (primitive checking, caching, thread-safety)
    - Per-key observation with opaque tokens (``observe`` / ``unobserve``)
    - Whole-store subscriptions
    - Batch updates coalesced to one notification per key; batches nest
    - Async notification dispatch on a worker pool

    Usage:
        store = ReactiveKeyValueStore()

        token = store.observe("theme", lambda event: print(event.new_value))
        store.set("theme", "dark")        # prints "dark"
        store.unobserve(token)

        with store.batch():
            store.set("window.width", 800)
            store.set("window.height", 600)
            # Notifications sent after the outermost batch completes
    """

    def __init__(
        self,
        cache_size: int = 1024,
        async_notifications: bool = False,
        max_workers: int = 1,
    ):
        super().__init__(
            cache_size=cache_size,
            async_operations=async_notifications,
            max_workers=max_workers,
        )

        self._subscriptions: Dict[int, Subscription] = {}
        self._next_sub_id = 0

        # Maps key -> subscription IDs interested in that key
        self._key_subscribers: Dict[str, Set[int]] = defaultdict(set)

        # Subscribers interested in every key
        self._global_subscribers: Set[int] = set()

        self._batch_depth = 0
        self._batch_events: List[ChangeEvent] = []

    def subscribe(
        self,
        callback: Callable[[ChangeEvent], None],
        keys: Optional[List[str]] = None,
    ) -> Subscription:
        """
        Subscribe to store changes.

        Args:
            callback: Function to call on changes, receives ChangeEvent
            keys: Keys to watch. None watches every key.

        Returns:
            Subscription object that can be used to unsubscribe
        """
        with self._lock:
            sub_id = self._next_sub_id
            self._next_sub_id += 1

            keys_set = set(keys) if keys else None
            subscription = Subscription(sub_id, callback, self, keys_set)
            self._subscriptions[sub_id] = subscription

            if keys_set is None:
                self._global_subscribers.add(sub_id)
            else:
                for key in keys_set:
                    self._key_subscribers[key].add(sub_id)

            logger.debug("Registered %r", subscription)
            return subscription

    def observe(self, key: str, callback: Callable[[ChangeEvent], None]) -> Subscription:
        """Watch a single key. The returned subscription is the token for ``unobserve``."""
        self._check_key(key)
        return self.subscribe(callback, keys=[key])

    def unobserve(self, token: Subscription) -> bool:
        """Release a token returned by ``observe``."""
        return self.unsubscribe(token.id)

    def unsubscribe(self, subscription_id: int) -> bool:
        """
        Remove a subscription.

        Returns:
            True if subscription was removed, False if not found
        """
        with self._lock:
            subscription = self._subscriptions.pop(subscription_id, None)
            if subscription is None:
                return False

            if subscription.keys is None:
                self._global_subscribers.discard(subscription_id)
            else:
                for key in subscription.keys:
                    self._key_subscribers[key].discard(subscription_id)
                    if not self._key_subscribers[key]:
                        del self._key_subscribers[key]

            logger.debug("Released %r", subscription)
            return True

    def subscription_count(self, key: Optional[str] = None) -> int:
        """Number of live subscriptions, or of those watching ``key``."""
        with self._lock:
            if key is None:
                return len(self._subscriptions)
            return len(self._key_subscribers.get(key, ()))

    def _notify(self, event: ChangeEvent):
        """
        Notify all interested subscribers of an event.

        Delivery is synchronous on the writing thread unless async
        notifications are enabled. Called with the store lock held.
        """
        if self._batch_depth:
            self._batch_events.append(event)
            return

        interested_ids = set(self._global_subscribers)
        interested_ids.update(self._key_subscribers.get(event.key, ()))

        # Ascending ids keep delivery in subscription order
        for sub_id in sorted(interested_ids):
            subscription = self._subscriptions.get(sub_id)
            if subscription is None:
                continue
            if self.async_enabled:
                self.execute_async(subscription.notify, event)
            else:
                subscription.notify(event)

    def set(self, key: str, value: Any) -> None:
        """Set key to value and notify subscribers."""
        with self._lock:
            old_value = self.get(key)
            super().set(key, value)
            event = ChangeEvent(
                key=key,
                change_type=ChangeType.SET,
                old_value=old_value,
                new_value=self.get(key),
            )
            self._notify(event)

    def delete(self, key: str) -> bool:
        """Delete key and notify subscribers."""
        with self._lock:
            old_value = self.get(key, self._MISSING)
            result = super().delete(key)

            if result:
                event = ChangeEvent(
                    key=key,
                    change_type=ChangeType.DELETE,
                    old_value=old_value,
                )
                self._notify(event)

            return result

    def clear(self) -> None:
        """Clear all data and notify subscribers."""
        with self._lock:
            keys_to_clear = self.keys()
            super().clear()

            for key in keys_to_clear:
                self._notify(ChangeEvent(key=key, change_type=ChangeType.CLEAR))

    def batch(self):
        """
        Context manager for batching multiple updates.

        Notifications are held until the outermost batch completes, then sent
        once per key carrying the latest change.
        """
        return _BatchContext(self)

    def _begin_batch(self) -> None:
        with self._lock:
            self._batch_depth += 1

    def _end_batch(self) -> None:
        with self._lock:
            self._batch_depth -= 1
            if self._batch_depth:
                return

            events, self._batch_events = self._batch_events, []

            # Keep only the latest event per key
            latest: Dict[str, ChangeEvent] = {}
            for event in events:
                latest[event.key] = event

            for event in latest.values():
                self._notify(event)


class _BatchContext:
    """Context manager for batch updates."""

    def __init__(self, store: ReactiveKeyValueStore):
        self.store = store

    def __enter__(self):
        self.store._begin_batch()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.store._end_batch()
        return False


def create_reactive_store(
    cache_size: int = 1024,
    async_notifications: bool = False,
    max_workers: int = 1,
) -> ReactiveKeyValueStore:
    """
    Create a reactive key-value store with specified settings.

    Args:
        cache_size: Size of the LRU read cache
        async_notifications: Whether to dispatch notifications on a worker pool
        max_workers: Maximum number of worker threads for async dispatch

    Returns:
        Configured ReactiveKeyValueStore instance
    """
    return ReactiveKeyValueStore(
        cache_size=cache_size,
        async_notifications=async_notifications,
        max_workers=max_workers,
    )
