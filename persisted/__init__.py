"""
Persisted - Typed Properties over a Key-Value Settings Store

Declare a typed value once and read and write it through a string-keyed store
of primitives. Convertors map enums, collections and structured types onto
the storable shapes; observed values republish changes made to the store.
"""

from .config import StoreConfig
from .convertors import (
    ComposedConvertor,
    EnumConvertor,
    IdentityConvertor,
    MappingConvertor,
    OpaqueObjectConvertor,
    SequenceConvertor,
    SetConvertor,
    StorageConvertor,
    StructuredEncodingConvertor,
    TextCodableConvertor,
    convertor_for,
    key_convertor_for,
)
from .default_store import _reset_default_store, get_default_store, set_default_store
from .exceptions import ConfigurationError, PersistedError, SubscriptionError
from .observer import ObservedValue, StoreObserver
from .primitives import (
    PRIMITIVE_SCALARS,
    StoredPrimitive,
    conforms_to,
    is_primitive_type,
    is_stored_primitive,
)
from .protocols import SettingsStore
from .settings import PersistedField, Settings, persisted, persisted_optional
from .util import (
    ChangeEvent,
    ChangeType,
    KeyValueStore,
    ReactiveKeyValueStore,
    Subscription,
    create_reactive_store,
)
from .value import PersistedValue

__all__ = [
    # Values
    "PersistedValue",
    "ObservedValue",
    "StoreObserver",
    # Declarative containers
    "Settings",
    "PersistedField",
    "persisted",
    "persisted_optional",
    # Convertors
    "StorageConvertor",
    "IdentityConvertor",
    "EnumConvertor",
    "SequenceConvertor",
    "SetConvertor",
    "MappingConvertor",
    "ComposedConvertor",
    "TextCodableConvertor",
    "StructuredEncodingConvertor",
    "OpaqueObjectConvertor",
    "convertor_for",
    "key_convertor_for",
    # Primitives
    "PRIMITIVE_SCALARS",
    "StoredPrimitive",
    "is_primitive_type",
    "is_stored_primitive",
    "conforms_to",
    # Stores
    "SettingsStore",
    "KeyValueStore",
    "ReactiveKeyValueStore",
    "Subscription",
    "ChangeEvent",
    "ChangeType",
    "StoreConfig",
    "create_reactive_store",
    "get_default_store",
    "set_default_store",
    # Exceptions
    "PersistedError",
    "ConfigurationError",
    "SubscriptionError",
    # Testing utilities (internal use)
    "_reset_default_store",
]
