"""
Persisted Settings - Declarative Settings Containers
====================================================

Group persisted values as attributes of a class. Reading an attribute reads
the store, assigning writes it, and ``del`` removes the key.

```python
from persisted import Settings, persisted, persisted_optional

class AppSettings(Settings):
    theme: Theme = persisted("app.theme", Theme.LIGHT)
    recent: list[str] = persisted("app.recent", [])
    shortcuts: dict[Action, Key] = persisted("app.shortcuts", {})
    last_user: str | None = persisted_optional("app.last_user")

settings = AppSettings()            # backed by the default store
settings.theme = Theme.DARK
settings.last_user = None           # removes "app.last_user"

with settings.observe("theme") as theme:
    theme.subscribe(apply_theme)
```

The exposed type of each field comes from its annotation unless
``value_type`` or ``convertor`` is passed. It is resolved on first use, so
annotations may refer to names defined later in the module. A required field
annotated ``X | None`` is a configuration error.
"""

import threading
import typing
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from .convertors import StorageConvertor
from .default_store import get_default_store
from .exceptions import ConfigurationError
from .observer import ObservedValue
from .protocols import SettingsStore
from .value import PersistedValue, resolve_convertor

E = TypeVar("E")


class PersistedField(Generic[E]):
    """
    Descriptor binding a class attribute to a store key.

    Instance access goes through a ``PersistedValue`` built for the instance's
    store; class access returns the descriptor itself.
    """

    def __init__(
        self,
        key: str,
        default: Optional[E],
        *,
        optional: bool,
        value_type: Any = None,
        convertor: Optional[StorageConvertor] = None,
        store: Optional[SettingsStore] = None,
    ) -> None:
        self.key = key
        self.default = default
        self.optional = optional
        self.name: Optional[str] = None
        self.owner: Optional[Type] = None
        self._value_type = value_type
        self._convertor = convertor
        self._store = store
        self._resolved: Optional[StorageConvertor] = None
        self._lock = threading.Lock()

    def __set_name__(self, owner: Type, name: str) -> None:
        self.owner = owner
        self.name = name

    @property
    def convertor(self) -> StorageConvertor:
        """The field's convertor, derived from the annotation on first use."""
        with self._lock:
            if self._resolved is None:
                value_type = self._value_type
                if value_type is None and self._convertor is None:
                    value_type = self._annotation()
                self._resolved = resolve_convertor(
                    value_type, self._convertor, self.default, self.optional
                )
            return self._resolved

    def _annotation(self) -> Any:
        if self.owner is None:
            return None
        try:
            hints = typing.get_type_hints(self.owner)
        except NameError as exc:
            raise ConfigurationError(
                f"cannot resolve the annotation of {self.owner.__name__}.{self.name}: {exc}"
            ) from exc
        return hints.get(self.name)

    def bind(self, instance: Any) -> PersistedValue[E]:
        """Build the PersistedValue for one owner instance."""
        store = self._store
        if store is None:
            store = getattr(instance, "store", None)
        if store is None:
            store = get_default_store()
        return PersistedValue(
            self.key, self.default, self.convertor, store, optional=self.optional
        )

    def __get__(self, instance: Any, owner: Type) -> Any:
        if instance is None:
            return self
        return self.bind(instance).read()

    def __set__(self, instance: Any, value: Optional[E]) -> None:
        self.bind(instance).write(value)

    def __delete__(self, instance: Any) -> None:
        self.bind(instance).remove()

    def __repr__(self) -> str:
        kind = "optional" if self.optional else "required"
        return f"PersistedField({self.key!r}, {kind})"


def persisted(
    key: str,
    default: E,
    *,
    value_type: Any = None,
    convertor: Optional[StorageConvertor] = None,
    store: Optional[SettingsStore] = None,
) -> Any:
    """Declare a required persisted attribute with a default."""
    return PersistedField(
        key,
        default,
        optional=False,
        value_type=value_type,
        convertor=convertor,
        store=store,
    )


def persisted_optional(
    key: str,
    *,
    value_type: Any = None,
    convertor: Optional[StorageConvertor] = None,
    store: Optional[SettingsStore] = None,
    default: Optional[E] = None,
) -> Any:
    """Declare an optional persisted attribute. Assigning None removes the key."""
    return PersistedField(
        key,
        default,
        optional=True,
        value_type=value_type,
        convertor=convertor,
        store=store,
    )


class Settings:
    """
    Base class for groups of persisted attributes.

    Each instance reads and writes through ``store`` (the default store if
    none is given), so two instances over different stores are independent.
    """

    def __init__(self, store: Optional[SettingsStore] = None) -> None:
        self.store = store if store is not None else get_default_store()

    @classmethod
    def fields(cls) -> Dict[str, PersistedField]:
        """All persisted attributes, including inherited ones."""
        found: Dict[str, PersistedField] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, PersistedField):
                    found[name] = attr
        return found

    def value_of(self, name: str) -> PersistedValue:
        """The PersistedValue behind attribute ``name``."""
        field = self.fields().get(name)
        if field is None:
            raise AttributeError(f"{type(self).__name__} has no persisted field {name!r}")
        return field.bind(self)

    def observe(self, name: str) -> ObservedValue:
        """A new ObservedValue for attribute ``name``. Close it when done."""
        return self.value_of(name).observe()

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of every persisted attribute's current value."""
        return {name: getattr(self, name) for name in self.fields()}

    def reset(self, *names: str) -> None:
        """Remove the given attributes' keys, or all of them if none are named."""
        for name in names or tuple(self.fields()):
            self.value_of(name).remove()

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={value!r}" for name, value in self.to_dict().items())
        return f"{type(self).__name__}({fields})"
