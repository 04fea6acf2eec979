"""
Shared pytest fixtures and configuration for persisted tests.
"""

import pytest

from persisted import ReactiveKeyValueStore, _reset_default_store


@pytest.fixture(autouse=True)
def reset_default_store():
    """Reset the default store before each test to prevent state leakage."""
    _reset_default_store()
    yield
    _reset_default_store()


@pytest.fixture
def store():
    """Provide a fresh ReactiveKeyValueStore for tests that need it."""
    store = ReactiveKeyValueStore()
    yield store
    store.close()
