"""Store configuration for persisted."""

import dataclasses
import os
from typing import Any, Optional

from .util.reactive_kv_store import ReactiveKeyValueStore, create_reactive_store


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Settings for the in-memory reactive store.

    Parameters
    ----------
    cache_size : int
        Number of keys held in the LRU read cache.
    async_notifications : bool
        Deliver change notifications on a worker pool instead of the
        writing thread. Observers then refresh concurrently with reads.
    max_workers : int
        Size of the notification worker pool.
    """

    cache_size: int = 1024
    async_notifications: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.cache_size <= 0:
            raise ValueError("cache_size must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> "StoreConfig":
        """Create configuration from environment variables.

        Reads ``PERSISTED_CACHE_SIZE``, ``PERSISTED_ASYNC_NOTIFICATIONS`` and
        ``PERSISTED_MAX_WORKERS``. Explicit keyword arguments override
        environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        cache_env = env.get("PERSISTED_CACHE_SIZE")
        if cache_env is not None:
            config_kwargs["cache_size"] = int(cache_env)

        async_env = env.get("PERSISTED_ASYNC_NOTIFICATIONS")
        if async_env is not None:
            config_kwargs["async_notifications"] = _env_bool(async_env, False)

        workers_env = env.get("PERSISTED_MAX_WORKERS")
        if workers_env is not None:
            config_kwargs["max_workers"] = int(workers_env)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    def create_store(self) -> ReactiveKeyValueStore:
        """Build a store with these settings."""
        return create_reactive_store(
            cache_size=self.cache_size,
            async_notifications=self.async_notifications,
            max_workers=self.max_workers,
        )
