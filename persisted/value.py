"""
Persisted Value - A Typed Slot in the Settings Store
====================================================

A ``PersistedValue`` binds a key, a default and a convertor to a store. Every
read and write goes straight to the store; nothing is cached here, so a value
changed by someone else is seen on the next read.

Optionality is chosen by the builder used at the declaration site:

```python
volume = PersistedValue.required("volume", 5)
theme = PersistedValue.required("theme", Theme.LIGHT)
tags = PersistedValue.required("tags", [], value_type=list[Tag])
token = PersistedValue.optional("token", value_type=str)

volume.write(7)
token.write(None)      # removes "token" from the store
token.read()           # None
```

Reads never fail because of what is in the store. Missing keys, values of the
wrong shape and values the convertor rejects all produce the default, the
latter two with a logged warning.
"""

import copy
import logging
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from .convertors import StorageConvertor, convertor_for, split_optional
from .default_store import get_default_store
from .exceptions import ConfigurationError
from .primitives import conforms_to, describe
from .protocols import SettingsStore

if TYPE_CHECKING:
    from .observer import ObservedValue

logger = logging.getLogger(__name__)

E = TypeVar("E")

_MISSING = object()


def resolve_convertor(
    value_type: Any,
    convertor: Optional[StorageConvertor],
    default: Any,
    optional: bool,
) -> StorageConvertor:
    """
    Pick the convertor for a declaration.

    An explicit convertor wins. Otherwise the convertor is derived from
    ``value_type``, or from the type of ``default`` when that is a primitive
    scalar or an enum member.

    Raises:
        ConfigurationError: If both or neither sources are usable, or if a
            required value is declared with an optional type.
    """
    if value_type is not None and convertor is not None:
        raise ConfigurationError("pass either value_type or convertor, not both")
    if convertor is not None:
        return convertor

    if value_type is None:
        if default is None:
            raise ConfigurationError(
                "cannot infer the value type without a default; pass value_type or convertor"
            )
        value_type = type(default)

    inner, was_optional = split_optional(value_type)
    if was_optional and not optional:
        raise ConfigurationError(
            f"{describe(value_type)} is optional; use PersistedValue.optional"
        )
    return convertor_for(inner)


class PersistedValue(Generic[E]):
    """
    Typed accessor for one key of a settings store.

    Use the ``required`` and ``optional`` builders rather than the constructor.

    Attributes:
        key: The store key.
        default: Returned whenever the store holds no usable value.
        convertor: Maps between the exposed type and the stored primitive.
        store: The backing store, shared and not owned.
        optional: Whether ``None`` may be written (and removes the key).
    """

    def __init__(
        self,
        key: str,
        default: Optional[E],
        convertor: StorageConvertor,
        store: SettingsStore,
        optional: bool,
    ) -> None:
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"key must be a non-empty str, got {key!r}")
        if not optional and default is None:
            raise ConfigurationError(
                f"required value {key!r} needs a default; use PersistedValue.optional"
            )
        if default is not None:
            try:
                convertor.to_storage(default)
            except TypeError as exc:
                raise ConfigurationError(
                    f"default for {key!r} does not fit {convertor!r}: {exc}"
                ) from exc

        self.key = key
        self.default = default
        self.convertor = convertor
        self.store = store
        self.optional = optional

    @classmethod
    def required(
        cls,
        key: str,
        default: E,
        *,
        value_type: Any = None,
        convertor: Optional[StorageConvertor] = None,
        store: Optional[SettingsStore] = None,
    ) -> "PersistedValue[E]":
        """Declare a value that always reads as an ``E``, falling back to ``default``."""
        return cls(
            key,
            default,
            resolve_convertor(value_type, convertor, default, optional=False),
            store if store is not None else get_default_store(),
            optional=False,
        )

    @classmethod
    def optional(
        cls,
        key: str,
        *,
        value_type: Any = None,
        convertor: Optional[StorageConvertor] = None,
        store: Optional[SettingsStore] = None,
        default: Optional[E] = None,
    ) -> "PersistedValue[Optional[E]]":
        """Declare a value that may be absent. Writing ``None`` removes the key."""
        return cls(
            key,
            default,
            resolve_convertor(value_type, convertor, default, optional=True),
            store if store is not None else get_default_store(),
            optional=True,
        )

    def read(self) -> Optional[E]:
        """Read and convert the stored value, or return the default."""
        stored = self.store.get(self.key, _MISSING)
        if stored is _MISSING:
            return self._default()

        expected = self.convertor.persisted_type
        if not conforms_to(stored, expected):
            logger.warning(
                "Value stored at key %r was not of type %s", self.key, describe(expected)
            )
            return self._default()

        value = self.convertor.from_storage(stored)
        if value is None:
            logger.warning(
                "Value stored at key %r could not be converted to %s",
                self.key,
                describe(self.convertor.exposed_type),
            )
            return self._default()
        return value

    def write(self, value: Optional[E]) -> None:
        """
        Convert and store a value.

        Raises:
            TypeError: If ``value`` is None for a required value, or does not
                match the convertor's exposed type.
        """
        if value is None:
            if not self.optional:
                raise TypeError(f"{self.key!r} is not optional and cannot be set to None")
            self.store.remove(self.key)
            return
        self.store.set(self.key, self.convertor.to_storage(value))

    def remove(self) -> None:
        """Delete the key so that reads return the default again."""
        self.store.remove(self.key)

    reset = remove

    def exists(self) -> bool:
        """Whether the store currently holds anything under the key."""
        return self.store.get(self.key, _MISSING) is not _MISSING

    @property
    def value(self) -> Optional[E]:
        return self.read()

    @value.setter
    def value(self, value: Optional[E]) -> None:
        self.write(value)

    def observe(self) -> "ObservedValue[E]":
        """Create an ObservedValue that tracks this key for changes."""
        from .observer import ObservedValue

        return ObservedValue(self)

    def _default(self) -> Optional[E]:
        # Hand out a copy so callers mutating the result cannot alter the default.
        return copy.deepcopy(self.default)

    def __repr__(self) -> str:
        kind = "optional" if self.optional else "required"
        return f"PersistedValue({self.key!r}, {kind}, {self.convertor!r})"
