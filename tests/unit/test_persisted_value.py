"""Unit tests for reading and writing typed values through a store."""

import logging
from enum import Enum, IntEnum
from typing import List, Optional

import pytest

from persisted import (
    ConfigurationError,
    EnumConvertor,
    PersistedValue,
    ReactiveKeyValueStore,
    StructuredEncodingConvertor,
    get_default_store,
    set_default_store,
)


class Theme(Enum):
    LIGHT = "light"
    DARK = "dark"


class Speed(IntEnum):
    SLOW = 1
    FAST = 2


# ============================================================================
# READ AND WRITE
# ============================================================================


@pytest.mark.unit
@pytest.mark.persisted
def test_missing_key_reads_default(store):
    """An absent key yields the default"""
    volume = PersistedValue.required("volume", 5, store=store)

    assert volume.read() == 5
    assert not volume.exists()


@pytest.mark.unit
@pytest.mark.persisted
def test_write_then_read(store):
    """Written values are stored in primitive form and read back"""
    theme = PersistedValue.required("theme", Theme.LIGHT, store=store)

    theme.write(Theme.DARK)

    assert store.get("theme") == "dark"
    assert theme.read() is Theme.DARK
    assert theme.exists()


@pytest.mark.unit
@pytest.mark.persisted
def test_value_property_reads_and_writes(store):
    """The value property is a shorthand for read and write"""
    speed = PersistedValue.required("speed", Speed.SLOW, store=store)

    speed.value = Speed.FAST

    assert speed.value is Speed.FAST
    assert store.get("speed") == 2


@pytest.mark.unit
@pytest.mark.persisted
def test_reads_see_external_writes(store):
    """Nothing is cached between reads"""
    volume = PersistedValue.required("volume", 5, store=store)

    store.set("volume", 9)

    assert volume.read() == 9


@pytest.mark.unit
@pytest.mark.persisted
def test_remove_restores_default(store):
    """Removing the key brings back the default"""
    volume = PersistedValue.required("volume", 5, store=store)
    volume.write(8)

    volume.remove()

    assert volume.read() == 5
    assert not store.has("volume")


@pytest.mark.unit
@pytest.mark.persisted
def test_optional_none_removes_key(store):
    """Writing None to an optional value deletes the key"""
    token = PersistedValue.optional("token", value_type=str, store=store)
    token.write("abc")

    token.write(None)

    assert not store.has("token")
    assert token.read() is None


@pytest.mark.unit
@pytest.mark.persisted
def test_optional_with_default(store):
    """Optional values may carry a non-empty default"""
    name = PersistedValue.optional("name", value_type=str, default="guest", store=store)

    assert name.read() == "guest"
    name.write(None)
    assert name.read() == "guest"


@pytest.mark.unit
@pytest.mark.persisted
def test_required_none_is_rejected(store):
    """A required value cannot be written as None"""
    volume = PersistedValue.required("volume", 5, store=store)

    with pytest.raises(TypeError):
        volume.write(None)


@pytest.mark.unit
@pytest.mark.persisted
def test_write_of_wrong_type_is_rejected(store):
    """Writing a value the convertor does not accept raises TypeError"""
    theme = PersistedValue.required("theme", Theme.LIGHT, store=store)

    with pytest.raises(TypeError):
        theme.write("dark")
    assert not store.has("theme")


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_default_is_not_shared(store):
    """Mutating a returned default does not alter later reads"""
    tags = PersistedValue.required("tags", [], value_type=List[str], store=store)

    tags.read().append("oops")

    assert tags.read() == []


@pytest.mark.unit
@pytest.mark.persisted
def test_collection_of_enums(store):
    """Collections of enums are stored as lists of raw values"""
    speeds = PersistedValue.required("speeds", [], value_type=list[Speed], store=store)

    speeds.write([Speed.FAST, Speed.SLOW])

    assert store.get("speeds") == [2, 1]
    assert speeds.read() == [Speed.FAST, Speed.SLOW]


# ============================================================================
# CORRUPT AND STALE DATA
# ============================================================================


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_wrong_shape_reads_default_with_warning(store, caplog):
    """Data of the wrong primitive type is ignored and logged"""
    volume = PersistedValue.required("volume", 5, store=store)
    store.set("volume", "loud")

    with caplog.at_level(logging.WARNING, logger="persisted.value"):
        assert volume.read() == 5

    assert "was not of type int" in caplog.text


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_bool_stored_for_int_reads_default(store):
    """A stored flag is not taken for a number"""
    volume = PersistedValue.required("volume", 5, store=store)
    store.set("volume", True)

    assert volume.read() == 5


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_stale_enum_reads_default_with_warning(store, caplog):
    """A raw value for a removed enum case reads as the default"""
    theme = PersistedValue.required("theme", Theme.LIGHT, store=store)
    store.set("theme", "sepia")

    with caplog.at_level(logging.WARNING, logger="persisted.value"):
        assert theme.read() is Theme.LIGHT

    assert "could not be converted" in caplog.text


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_mixed_list_reads_default(store):
    """A list with an element of the wrong type fails the shape check"""
    speeds = PersistedValue.required("speeds", [Speed.SLOW], value_type=list[Speed], store=store)
    store.set("speeds", [1, "fast"])

    assert speeds.read() == [Speed.SLOW]


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_stale_list_elements_are_dropped(store):
    """Elements naming removed enum cases are skipped"""
    speeds = PersistedValue.required("speeds", [], value_type=list[Speed], store=store)
    store.set("speeds", [2, 3, 1])

    assert speeds.read() == [Speed.FAST, Speed.SLOW]


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_optional_corrupt_reads_none(store):
    """Optional values fall back to None on bad data"""
    token = PersistedValue.optional("token", value_type=str, store=store)
    store.set("token", 42)

    assert token.read() is None


# ============================================================================
# DECLARATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.persisted
def test_type_inferred_from_default(store):
    """Scalar and enum defaults determine the convertor"""
    assert PersistedValue.required("a", 0.5, store=store).convertor.persisted_type is float
    assert isinstance(
        PersistedValue.required("b", Theme.DARK, store=store).convertor, EnumConvertor
    )


@pytest.mark.unit
@pytest.mark.persisted
def test_explicit_convertor(store):
    """A convertor passed in is used as-is"""
    convertor = StructuredEncodingConvertor(dict[str, int])
    counts = PersistedValue.required("counts", {}, convertor=convertor, store=store)

    counts.write({"a": 1})

    assert isinstance(store.get("counts"), bytes)
    assert counts.read() == {"a": 1}


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.edge_case
def test_float_containers_read_stored_ints_as_floats(store):
    """Ints inside a stored list or mapping come back as floats"""
    weights = PersistedValue.required("weights", [], value_type=List[float], store=store)
    scale = PersistedValue.required("scale", {}, value_type=dict[str, float], store=store)
    store.set("weights", [1, 2.5])
    store.set("scale", {"x": 2})

    assert weights.read() == [1.0, 2.5]
    assert all(isinstance(w, float) for w in weights.read())
    assert isinstance(scale.read()["x"], float)


@pytest.mark.unit
@pytest.mark.persisted
def test_optional_type_hint_for_optional_value(store):
    """Optional[X] is accepted by the optional builder"""
    token = PersistedValue.optional("token", value_type=Optional[int], store=store)

    token.write(3)

    assert token.read() == 3


@pytest.mark.unit
@pytest.mark.persisted
@pytest.mark.parametrize(
    "build",
    [
        lambda s: PersistedValue.required("", 5, store=s),
        lambda s: PersistedValue.required("k", None, value_type=int, store=s),
        lambda s: PersistedValue.required("k", 5, value_type=Optional[int], store=s),
        lambda s: PersistedValue.required("k", "five", value_type=int, store=s),
        lambda s: PersistedValue.required("k", [], store=s),
        lambda s: PersistedValue.required(
            "k", 5, value_type=int, convertor=EnumConvertor(Speed), store=s
        ),
        lambda s: PersistedValue.optional("k", store=s),
        lambda s: PersistedValue.required(
            "k", "none", convertor=StructuredEncodingConvertor(dict[str, int]), store=s
        ),
    ],
    ids=[
        "empty-key",
        "required-without-default",
        "required-with-optional-type",
        "default-of-wrong-type",
        "uninferable-default",
        "type-and-convertor",
        "optional-without-type",
        "structured-default-of-wrong-type",
    ],
)
def test_invalid_declarations(store, build):
    """Misconfigured declarations fail at construction"""
    with pytest.raises(ConfigurationError):
        build(store)


@pytest.mark.unit
@pytest.mark.persisted
def test_uses_default_store_when_none_given():
    """Values declared without a store share the default store"""
    volume = PersistedValue.required("volume", 5)

    volume.write(6)

    assert get_default_store().get("volume") == 6


@pytest.mark.unit
@pytest.mark.persisted
def test_set_default_store():
    """The default store can be replaced"""
    custom = ReactiveKeyValueStore()
    set_default_store(custom)

    PersistedValue.required("volume", 5).write(6)

    assert custom.get("volume") == 6
