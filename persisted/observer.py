"""
Persisted Observer - Republishing Store Changes
===============================================

``ObservedValue`` wraps a ``PersistedValue`` and keeps the current converted
value at hand, refreshing it whenever the store reports a change to the key,
whoever made it. Listeners registered with ``subscribe`` receive the new
exposed value.

```python
theme = PersistedValue.required("theme", Theme.LIGHT, store=store)

with theme.observe() as observed:
    observed.subscribe(lambda value: print("theme is now", value))
    store.set("theme", "dark")     # prints "theme is now Theme.DARK"
    observed.set(Theme.LIGHT)      # prints "theme is now Theme.LIGHT"
```

Lifecycle:
    construct -> subscribed, cached value = initial read
    store change -> cached value re-read, listeners notified once
    local set -> store written, cached value re-read, listeners notified once
    close (or garbage collection) -> store subscription released, listeners
        are no longer notified

Every write to the key notifies, even one that leaves the converted value
unchanged (rewriting the same value, or bad data while the default is
already cached). ``refresh()`` notifies only when the value changed.
"""

import logging
import threading
import weakref
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .exceptions import SubscriptionError
from .protocols import SettingsStore
from .value import PersistedValue

logger = logging.getLogger(__name__)

E = TypeVar("E")


class StoreObserver:
    """
    Runs one action whenever the store reports a change to one key.

    ``register`` may be called only once per observer. ``release`` removes the
    store subscription and is safe to call repeatedly.
    """

    def __init__(self, store: SettingsStore, key: str) -> None:
        self._store = store
        self._key = key
        self._action: Optional[Callable[[], None]] = None
        self._token: Any = None

    @property
    def registered(self) -> bool:
        return self._token is not None

    def register(self, action: Callable[[], None]) -> None:
        if self._action is not None:
            raise SubscriptionError(f"observer for {self._key!r} is already registered")
        self._action = action
        self._token = self._store.observe(self._key, self._on_change)
        logger.debug("Observing key %r", self._key)

    def _on_change(self, event: Any) -> None:
        if self._action is not None:
            self._action()

    def release(self) -> None:
        token, self._token = self._token, None
        if token is not None:
            self._store.unobserve(token)
            logger.debug("Stopped observing key %r", self._key)


class ObservedValue(Generic[E]):
    """
    A persisted value that tracks its key for changes.

    The cached value is guarded by a lock, so it may be read while a
    notification from another thread refreshes it.
    """

    def __init__(self, persisted: PersistedValue[E]) -> None:
        self.persisted = persisted
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Optional[E]], Any]] = []
        self._local = threading.local()
        self._generation = 0
        self._published = 0
        self._cached = persisted.read()

        self._observer = StoreObserver(persisted.store, persisted.key)
        # The store must not keep this object alive through its callback.
        method = weakref.WeakMethod(self._on_store_change)

        def action() -> None:
            bound = method()
            if bound is not None:
                bound()

        self._observer.register(action)
        self._finalizer = weakref.finalize(self, self._observer.release)

    @property
    def key(self) -> str:
        return self.persisted.key

    @property
    def value(self) -> Optional[E]:
        """The last known converted value."""
        with self._lock:
            return self._cached

    @value.setter
    def value(self, value: Optional[E]) -> None:
        self.set(value)

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def set(self, value: Optional[E]) -> "ObservedValue[E]":
        """Write through to the store, then refresh and notify once."""
        self._local.writing = True
        try:
            self.persisted.write(value)
        finally:
            self._local.writing = False
        self._refresh(always=True)
        return self

    def refresh(self) -> Optional[E]:
        """Re-read the store, notifying listeners if the value changed."""
        self._refresh(always=False)
        return self.value

    def subscribe(self, listener: Callable[[Optional[E]], Any]) -> "ObservedValue[E]":
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
        return self

    def unsubscribe(self, listener: Callable[[Optional[E]], Any]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def close(self) -> None:
        """Release the store subscription. Listeners are no longer notified."""
        self._finalizer()

    def __enter__(self) -> "ObservedValue[E]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _on_store_change(self) -> None:
        # A local write refreshes itself once the store call returns.
        if getattr(self._local, "writing", False):
            return
        self._refresh(always=True)

    def _refresh(self, always: bool) -> None:
        # The read happens outside the lock: a synchronous store notifies
        # while holding its own lock. Each refresh takes a generation first,
        # and a result older than the last one published is dropped.
        with self._lock:
            if self.closed:
                return
            self._generation += 1
            generation = self._generation

        value = self.persisted.read()

        with self._lock:
            if self.closed or generation < self._published:
                return
            self._published = generation
            changed = value != self._cached
            self._cached = value
            if not (changed or always):
                return
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Listener for key %r failed", self.key)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "observing"
        return f"ObservedValue({self.key!r}, {state}, value={self.value!r})"
