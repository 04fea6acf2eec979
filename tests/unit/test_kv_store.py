"""Unit tests for the primitive key-value store."""

from datetime import datetime

import pytest

from persisted import KeyValueStore


@pytest.mark.unit
@pytest.mark.store
def test_basic_get_set_delete():
    """Test basic store operations"""
    store = KeyValueStore()

    store.set("volume", 7)
    assert store.get("volume") == 7
    assert "volume" in store
    assert len(store) == 1

    assert store.delete("volume") is True
    assert store.delete("volume") is False
    assert store.get("volume") is None
    assert store.get("volume", 3) == 3


@pytest.mark.unit
@pytest.mark.store
def test_remove_missing_key_is_noop():
    """remove() tolerates absent keys"""
    store = KeyValueStore()

    store.remove("nothing")

    assert store.size() == 0


@pytest.mark.unit
@pytest.mark.store
def test_item_access():
    """Mapping-style access raises KeyError for missing keys"""
    store = KeyValueStore()
    store["name"] = "ada"

    assert store["name"] == "ada"
    del store["name"]
    with pytest.raises(KeyError):
        store["name"]
    with pytest.raises(KeyError):
        del store["name"]


@pytest.mark.unit
@pytest.mark.store
@pytest.mark.parametrize(
    "value",
    [True, 1, 1.5, "text", b"\x01", datetime(2024, 1, 1), [1, "a"], {"a": [1.0]}],
)
def test_accepts_every_primitive_shape(value):
    """Any storable shape can be written"""
    store = KeyValueStore()

    store.set("key", value)

    assert store.get("key") == value


@pytest.mark.unit
@pytest.mark.store
@pytest.mark.parametrize("value", [None, {1, 2}, (1, 2), {1: "a"}, object()])
def test_rejects_non_primitive_values(value):
    """Values outside the primitive set are refused"""
    store = KeyValueStore()

    with pytest.raises(TypeError):
        store.set("key", value)
    assert not store.has("key")


@pytest.mark.unit
@pytest.mark.store
def test_rejects_non_text_keys():
    """Keys are always str"""
    store = KeyValueStore()

    with pytest.raises(TypeError):
        store.set(1, "value")


@pytest.mark.unit
@pytest.mark.store
@pytest.mark.edge_case
def test_containers_are_copied_in_and_out():
    """Mutating a written or read container does not change the store"""
    store = KeyValueStore()
    written = {"recent": ["a"]}

    store.set("state", written)
    written["recent"].append("b")
    read = store.get("state")
    read["recent"].append("c")

    assert store.get("state") == {"recent": ["a"]}


@pytest.mark.unit
@pytest.mark.store
def test_keys_items_and_clear():
    """Bulk accessors reflect the current contents"""
    store = KeyValueStore()
    store.set("a", 1)
    store.set("b", [2])

    assert sorted(store.keys()) == ["a", "b"]
    assert dict(store.items()) == {"a": 1, "b": [2]}

    store.clear()
    assert store.size() == 0


@pytest.mark.unit
@pytest.mark.store
def test_execute_async_requires_pool():
    """Async execution is only available when enabled"""
    with KeyValueStore() as store:
        with pytest.raises(RuntimeError):
            store.execute_async(lambda: None)

    with KeyValueStore(async_operations=True) as store:
        assert store.async_enabled
        assert store.execute_async(lambda x: x * 2, 21).result() == 42
