"""
Persisted Protocols - The Host Store Capability
===============================================

Persisted values need only five operations from the store that backs them.
Any object providing these methods can be used, whether it wraps an
in-memory dictionary, a settings file, or a platform preferences API.
"""

from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class SettingsStore(Protocol):
    """A string-keyed dictionary of primitives that reports changes per key."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored primitive for key, or default if absent."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store a primitive under key."""
        ...

    def remove(self, key: str) -> None:
        """Delete key. Removing an absent key is a no-op."""
        ...

    def observe(self, key: str, callback: Callable[[Any], None]) -> Any:
        """Call ``callback`` after every change to key; return a release token."""
        ...

    def unobserve(self, token: Any) -> Any:
        """Release a token returned by ``observe``."""
        ...
