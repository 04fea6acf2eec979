"""
Persisted Convertors - Mapping Exposed Types onto Storable Primitives
=====================================================================

A convertor is a pair of functions between the type an application works with
(the *exposed* type) and one of the shapes the store can hold (the *persisted*
type, see ``persisted.primitives``):

- ``to_storage(value)`` is total. Encoding a well-typed value cannot fail; a
  ``TypeError`` is raised only when the convertor is handed a value of the
  wrong type, which is a bug at the call site.
- ``from_storage(stored)`` is partial. It returns ``None`` when the stored data
  is malformed, of the wrong shape, or names an enum member that no longer
  exists. It never raises for bad persisted data.

Convertors compose. Collection convertors wrap element convertors and drop the
individual elements that fail to convert rather than discarding the whole
collection; ``ComposedConvertor`` chains two convertors through an
intermediate representation.

Example:
    ```python
    class Theme(Enum):
        LIGHT = "light"
        DARK = "dark"

    convertor = convertor_for(dict[Theme, int])
    convertor.to_storage({Theme.DARK: 3})          # {"dark": 3}
    convertor.from_storage({"dark": 3, "old": 1})  # {Theme.DARK: 3}
    ```
"""

import enum
import io
import logging
import pickle
import types
import typing
from abc import ABC, abstractmethod
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
)

from pydantic import PydanticUserError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .exceptions import ConfigurationError
from .primitives import PRIMITIVE_SCALARS, conforms_to, describe, is_primitive_type

logger = logging.getLogger(__name__)

E = TypeVar("E")
P = TypeVar("P")


class StorageConvertor(ABC, Generic[E, P]):
    """
    Bidirectional mapping between an exposed type ``E`` and a storable ``P``.

    Subclasses set ``exposed_type`` and ``persisted_type`` in their
    constructor; ``persisted_type`` always satisfies ``is_primitive_type``.
    """

    exposed_type: Any
    persisted_type: Any

    @abstractmethod
    def to_storage(self, value: E) -> P:
        """Convert an exposed value into its storable form."""

    @abstractmethod
    def from_storage(self, stored: Any) -> Optional[E]:
        """Convert a stored value back, or return None if it cannot be."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}"
            f"({describe(self.exposed_type)} -> {describe(self.persisted_type)})"
        )


class IdentityConvertor(StorageConvertor[P, P]):
    """Passes natively storable values through unchanged."""

    def __init__(self, tp: Any) -> None:
        if not is_primitive_type(tp):
            raise ConfigurationError(f"{describe(tp)} is not a storable primitive type")
        self.exposed_type = tp
        self.persisted_type = tp

    def to_storage(self, value: P) -> P:
        if not conforms_to(value, self.persisted_type):
            raise TypeError(
                f"expected {describe(self.persisted_type)}, got {type(value).__name__}"
            )
        return value

    def from_storage(self, stored: Any) -> Optional[P]:
        if not conforms_to(stored, self.persisted_type):
            return None
        return _widen(stored, self.persisted_type)


def _widen(stored: Any, tp: Any) -> Any:
    """Turn stored ints into floats wherever ``tp`` declares a float."""
    if tp is float:
        return float(stored)
    origin, args = typing.get_origin(tp), typing.get_args(tp)
    if origin is list:
        return [_widen(item, args[0]) for item in stored]
    if origin is dict:
        return {key: _widen(item, args[1]) for key, item in stored.items()}
    return stored


def _raw_type(value: Any) -> Optional[type]:
    # Exact match so that a bool raw value is not mistaken for an int.
    for scalar in PRIMITIVE_SCALARS:
        if type(value) is scalar:
            return scalar
    return None


class EnumConvertor(StorageConvertor[E, Any]):
    """
    Stores an enum member as its raw ``.value``.

    All members must share one primitive raw type. Reading a raw value with no
    matching member (a case removed since it was written) yields ``None``.
    Lookup goes through the enum's constructor, so an enum that defines
    ``_missing_`` decides for itself how to treat unknown values.
    """

    def __init__(self, enum_cls: Type[enum.Enum]) -> None:
        if not (isinstance(enum_cls, type) and issubclass(enum_cls, enum.Enum)):
            raise ConfigurationError(f"{describe(enum_cls)} is not an Enum")

        raw_types = {_raw_type(member.value) for member in enum_cls}
        if len(raw_types) != 1 or None in raw_types:
            raise ConfigurationError(
                f"{enum_cls.__name__} members must all have raw values of one "
                f"primitive type, found {sorted(map(describe, raw_types))}"
            )

        self.exposed_type = enum_cls
        self.persisted_type = raw_types.pop()

    def to_storage(self, value: E) -> Any:
        if not isinstance(value, self.exposed_type):
            raise TypeError(
                f"expected {self.exposed_type.__name__}, got {type(value).__name__}"
            )
        return value.value

    def from_storage(self, stored: Any) -> Optional[E]:
        if not conforms_to(stored, self.persisted_type):
            return None
        try:
            return self.exposed_type(stored)
        except ValueError:
            return None


def _convert_each(convertor: StorageConvertor, stored: Iterable[Any]) -> List[Any]:
    """Convert elements one by one, dropping those that fail."""
    converted = []
    for item in stored:
        value = convertor.from_storage(item)
        if value is None:
            logger.debug("Dropping element %r that %r could not convert", item, convertor)
            continue
        converted.append(value)
    return converted


class SequenceConvertor(StorageConvertor[List[Any], List[Any]]):
    """Maps a list element-wise through an element convertor."""

    def __init__(self, element: StorageConvertor) -> None:
        self.element = element
        self.exposed_type = List[element.exposed_type]
        self.persisted_type = List[element.persisted_type]

    def to_storage(self, value: List[Any]) -> List[Any]:
        return [self.element.to_storage(item) for item in value]

    def from_storage(self, stored: Any) -> Optional[List[Any]]:
        if not isinstance(stored, list):
            return None
        return _convert_each(self.element, stored)


class SetConvertor(StorageConvertor[Set[Any], List[Any]]):
    """
    Stores a set as a list of converted elements.

    The order of the stored list carries no meaning. Duplicates that arise
    after conversion collapse when the set is rebuilt.
    """

    def __init__(self, element: StorageConvertor, frozen: bool = False) -> None:
        self.element = element
        self.frozen = frozen
        container = FrozenSet if frozen else Set
        self.exposed_type = container[element.exposed_type]
        self.persisted_type = List[element.persisted_type]

    def to_storage(self, value: Set[Any]) -> List[Any]:
        return [self.element.to_storage(item) for item in value]

    def from_storage(self, stored: Any) -> Optional[Set[Any]]:
        if not isinstance(stored, list):
            return None
        items = _convert_each(self.element, stored)
        return frozenset(items) if self.frozen else set(items)


class MappingConvertor(StorageConvertor[Dict[Any, Any], Dict[str, Any]]):
    """
    Maps a dict through independent key and value convertors.

    The store only supports text keys, so the key convertor must persist to
    ``str``. Entries whose key or value fails to convert are dropped.
    """

    def __init__(self, key: StorageConvertor, value: StorageConvertor) -> None:
        if key.persisted_type is not str:
            raise ConfigurationError(
                f"mapping keys must be stored as str, {key!r} stores "
                f"{describe(key.persisted_type)}"
            )
        self.key = key
        self.value = value
        self.exposed_type = Dict[key.exposed_type, value.exposed_type]
        self.persisted_type = Dict[str, value.persisted_type]

    def to_storage(self, value: Dict[Any, Any]) -> Dict[str, Any]:
        return {
            self.key.to_storage(k): self.value.to_storage(v) for k, v in value.items()
        }

    def from_storage(self, stored: Any) -> Optional[Dict[Any, Any]]:
        if not isinstance(stored, dict):
            return None
        result = {}
        for stored_key, stored_value in stored.items():
            key = self.key.from_storage(stored_key)
            if key is None:
                logger.debug("Dropping entry with unconvertible key %r", stored_key)
                continue
            value = self.value.from_storage(stored_value)
            if value is None:
                logger.debug("Dropping entry %r with unconvertible value", stored_key)
                continue
            result[key] = value
        return result


class ComposedConvertor(StorageConvertor[E, P]):
    """
    Chains two convertors through an intermediate representation.

    ``inner`` maps the exposed type to the intermediate type and ``outer`` maps
    the intermediate type to storage. Reading applies ``outer`` then ``inner``
    and stops at the first failure.
    """

    def __init__(self, outer: StorageConvertor, inner: StorageConvertor) -> None:
        if inner.persisted_type != outer.exposed_type:
            raise ConfigurationError(
                f"cannot compose {outer!r} after {inner!r}: "
                f"{describe(inner.persisted_type)} != {describe(outer.exposed_type)}"
            )
        self.outer = outer
        self.inner = inner
        self.exposed_type = inner.exposed_type
        self.persisted_type = outer.persisted_type

    def to_storage(self, value: E) -> P:
        return self.outer.to_storage(self.inner.to_storage(value))

    def from_storage(self, stored: Any) -> Optional[E]:
        intermediate = self.outer.from_storage(stored)
        if intermediate is None:
            return None
        return self.inner.from_storage(intermediate)


def _parse_bool(text: str) -> bool:
    if text == "True":
        return True
    if text == "False":
        return False
    raise ValueError(f"not a bool: {text!r}")


class TextCodableConvertor(StorageConvertor[E, str]):
    """
    Stores a value through a lossless text rendering.

    ``render`` defaults to ``str`` and ``parse`` to the type itself, which is
    right for ``int``, ``float``, ``Decimal``, ``UUID`` and similar types.
    """

    def __init__(
        self,
        tp: Any,
        parse: Optional[Callable[[str], Any]] = None,
        render: Callable[[Any], str] = str,
    ) -> None:
        if parse is None:
            parse = _parse_bool if tp is bool else tp
        self.exposed_type = tp
        self.persisted_type = str
        self._parse = parse
        self._render = render

    def to_storage(self, value: E) -> str:
        return self._render(value)

    def from_storage(self, stored: Any) -> Optional[E]:
        if not isinstance(stored, str):
            return None
        try:
            return self._parse(stored)
        except (ValueError, TypeError, ArithmeticError):
            return None


class StructuredEncodingConvertor(StorageConvertor[E, bytes]):
    """
    Stores any pydantic-serialisable type as JSON bytes.

    Dataclasses, pydantic models, TypedDicts and builtin containers are all
    supported. Undecodable or invalid JSON reads back as ``None``.
    """

    def __init__(self, tp: Any) -> None:
        try:
            self._adapter = TypeAdapter(tp)
        except PydanticUserError as exc:
            raise ConfigurationError(f"{describe(tp)} cannot be JSON encoded: {exc}") from exc
        self.exposed_type = tp
        self.persisted_type = bytes

    def to_storage(self, value: E) -> bytes:
        try:
            return self._adapter.dump_json(value, warnings="error")
        except PydanticSerializationError as exc:
            raise TypeError(
                f"cannot encode {type(value).__name__} as {describe(self.exposed_type)}: {exc}"
            ) from exc

    def from_storage(self, stored: Any) -> Optional[E]:
        if not isinstance(stored, bytes):
            return None
        try:
            return self._adapter.validate_json(stored)
        except ValidationError as exc:
            logger.debug("JSON decode of %s failed: %s", describe(self.exposed_type), exc)
            return None


_SAFE_GLOBALS = frozenset(
    [("builtins", name) for name in (
        "bool", "bytearray", "bytes", "complex", "dict", "float", "frozenset",
        "int", "list", "range", "set", "slice", "str", "tuple",
    )]
    + [("datetime", name) for name in ("date", "datetime", "time", "timedelta", "timezone")]
)


class _RestrictedUnpickler(pickle.Unpickler):
    """Unpickler that only resolves an explicit allow-list of globals."""

    def __init__(self, file: io.BytesIO, allowed: FrozenSet[Tuple[str, str]]) -> None:
        super().__init__(file)
        self._allowed = allowed

    def find_class(self, module: str, name: str) -> Any:
        if (module, name) in _SAFE_GLOBALS or (module, name) in self._allowed:
            return super().find_class(module, name)
        raise pickle.UnpicklingError(f"global '{module}.{name}' is forbidden")


class OpaqueObjectConvertor(StorageConvertor[E, bytes]):
    """
    Archives an arbitrary object to bytes with pickle.

    Unarchiving is restricted: only ``cls``, the extra ``allowed`` classes it
    refers to, and plain builtin containers may be reconstructed. Anything
    else, including data that does not unpickle to an instance of ``cls``,
    reads back as ``None``.
    """

    def __init__(self, cls: type, allowed: Iterable[type] = ()) -> None:
        if not isinstance(cls, type):
            raise ConfigurationError(f"{describe(cls)} is not a class")
        self.exposed_type = cls
        self.persisted_type = bytes
        self._allowed = frozenset(
            (klass.__module__, klass.__qualname__) for klass in (cls, *allowed)
        )

    def to_storage(self, value: E) -> bytes:
        if not isinstance(value, self.exposed_type):
            raise TypeError(
                f"expected {self.exposed_type.__name__}, got {type(value).__name__}"
            )
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def from_storage(self, stored: Any) -> Optional[E]:
        if not isinstance(stored, bytes):
            return None
        try:
            obj = _RestrictedUnpickler(io.BytesIO(stored), self._allowed).load()
        except Exception as exc:
            # Unpickling can fail with almost any exception on corrupt input.
            logger.debug("Unarchiving %s failed: %s", self.exposed_type.__name__, exc)
            return None
        if not isinstance(obj, self.exposed_type):
            return None
        return obj


# ============================================================================
# DERIVATION FROM TYPE HINTS
# ============================================================================


def split_optional(tp: Any) -> Tuple[Any, bool]:
    """
    Strip ``None`` from an ``Optional[X]`` / ``X | None`` hint.

    Returns:
        ``(X, True)`` for optional hints, ``(tp, False)`` otherwise.
    """
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(tp) if arg is not type(None)]
        if len(args) != len(typing.get_args(tp)):
            if len(args) == 1:
                return args[0], True
            return typing.Union[tuple(args)], True
    return tp, False


def _is_enum(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, enum.Enum)


def key_convertor_for(tp: Any) -> StorageConvertor:
    """
    Derive a convertor that stores mapping keys of type ``tp`` as text.

    Supports ``str``, enums (through their raw value) and the numeric and
    boolean scalars.
    """
    if tp is str:
        return IdentityConvertor(str)
    if _is_enum(tp):
        convertor = EnumConvertor(tp)
        if convertor.persisted_type is str:
            return convertor
        return ComposedConvertor(key_convertor_for(convertor.persisted_type), convertor)
    if tp in (int, float, bool):
        return TextCodableConvertor(tp)
    raise ConfigurationError(
        f"cannot store mapping keys of type {describe(tp)}; "
        f"pass an explicit TextCodableConvertor"
    )


def convertor_for(tp: Any) -> StorageConvertor:
    """
    Derive a convertor for a type hint.

    Primitive types use ``IdentityConvertor``, enums ``EnumConvertor``, and
    ``list``, ``set``, ``frozenset`` and ``dict`` hints are built recursively
    from their parameters. Structured types are not derived automatically:
    choose ``StructuredEncodingConvertor`` or ``OpaqueObjectConvertor``
    explicitly.

    Raises:
        ConfigurationError: If no convertor can be derived for ``tp``.
    """
    if is_primitive_type(tp):
        return IdentityConvertor(tp)
    if _is_enum(tp):
        return EnumConvertor(tp)

    origin, args = typing.get_origin(tp), typing.get_args(tp)
    if origin is list and len(args) == 1:
        return SequenceConvertor(convertor_for(args[0]))
    if origin in (set, frozenset) and len(args) == 1:
        return SetConvertor(convertor_for(args[0]), frozen=origin is frozenset)
    if origin is dict and len(args) == 2:
        return MappingConvertor(key_convertor_for(args[0]), convertor_for(args[1]))

    if split_optional(tp)[1]:
        raise ConfigurationError(
            f"{describe(tp)} is optional; declare the value as optional instead"
        )
    raise ConfigurationError(
        f"no storage convertor for {describe(tp)}; use StructuredEncodingConvertor "
        f"or OpaqueObjectConvertor"
    )
