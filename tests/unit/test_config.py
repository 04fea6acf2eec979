"""Unit tests for store configuration."""

import pytest

from persisted import ReactiveKeyValueStore, StoreConfig, get_default_store


@pytest.mark.unit
def test_defaults(monkeypatch):
    """Without environment variables the defaults apply"""
    for name in ("PERSISTED_CACHE_SIZE", "PERSISTED_ASYNC_NOTIFICATIONS", "PERSISTED_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)

    config = StoreConfig.from_env()

    assert config == StoreConfig()
    assert config.cache_size == 1024
    assert not config.async_notifications


@pytest.mark.unit
def test_from_env_reads_variables(monkeypatch):
    """Environment variables configure the store"""
    monkeypatch.setenv("PERSISTED_CACHE_SIZE", "16")
    monkeypatch.setenv("PERSISTED_ASYNC_NOTIFICATIONS", "yes")
    monkeypatch.setenv("PERSISTED_MAX_WORKERS", "2")

    config = StoreConfig.from_env()

    assert config == StoreConfig(cache_size=16, async_notifications=True, max_workers=2)


@pytest.mark.unit
def test_overrides_win_over_environment(monkeypatch):
    """Keyword overrides take precedence"""
    monkeypatch.setenv("PERSISTED_CACHE_SIZE", "16")

    assert StoreConfig.from_env(cache_size=8).cache_size == 8


@pytest.mark.unit
@pytest.mark.edge_case
def test_unrecognised_bool_falls_back(monkeypatch):
    """Unknown flag spellings keep the default"""
    monkeypatch.setenv("PERSISTED_ASYNC_NOTIFICATIONS", "maybe")

    assert StoreConfig.from_env().async_notifications is False


@pytest.mark.unit
@pytest.mark.parametrize("kwargs", [{"cache_size": 0}, {"max_workers": -1}])
def test_rejects_non_positive_sizes(kwargs):
    """Sizes must be positive"""
    with pytest.raises(ValueError):
        StoreConfig(**kwargs)


@pytest.mark.unit
def test_create_store():
    """The config builds a matching reactive store"""
    store = StoreConfig(async_notifications=True).create_store()

    assert isinstance(store, ReactiveKeyValueStore)
    assert store.async_enabled
    store.close()


@pytest.mark.unit
def test_default_store_follows_environment(monkeypatch):
    """The default store is configured from the environment on first use"""
    monkeypatch.setenv("PERSISTED_ASYNC_NOTIFICATIONS", "1")

    assert get_default_store().async_enabled
    assert get_default_store() is get_default_store()
