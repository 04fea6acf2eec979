"""
Persisted Primitives - The Natively Storable Types
==================================================

The settings store only ever holds a small, closed set of value shapes:

- scalars: ``bool``, ``int``, ``float``, ``str``, ``datetime`` and ``bytes``
- ``list[X]`` where ``X`` is itself storable
- ``dict[str, X]`` where ``X`` is itself storable

Python's ``int`` is arbitrary precision, so it stands in for every signed and
unsigned integer width; ``float`` covers both single and double precision.

Everything an application wants to persist is mapped onto one of these shapes
by a convertor (see ``persisted.convertors``). This module answers two
questions about that set:

- ``is_primitive_type(tp)``: is a *declared* type one of the storable shapes?
  Asked once, when a property is declared.
- ``conforms_to(value, tp)``: does a value *read back from the store* actually
  have the declared shape? Asked on every read, so that data written by a
  different version of the application is detected instead of trusted.
"""

import typing
from datetime import datetime
from typing import Any, Dict, List, Union

PRIMITIVE_SCALARS = (bool, int, float, str, datetime, bytes)

StoredPrimitive = Union[
    bool,
    int,
    float,
    str,
    datetime,
    bytes,
    List["StoredPrimitive"],
    Dict[str, "StoredPrimitive"],
]


def _split(tp: Any):
    """Return ``(origin, args)`` for a type hint, normalising typing aliases."""
    return typing.get_origin(tp), typing.get_args(tp)


def is_primitive_type(tp: Any) -> bool:
    """
    Decide whether a type hint describes a natively storable shape.

    A sequence is storable iff its element type is; a mapping is storable iff
    its keys are ``str`` and its value type is storable. Bare ``list`` and
    ``dict`` are rejected because their contents are unknown.

    Args:
        tp: A class or parametrised generic such as ``list[int]``.

    Returns:
        True if values of ``tp`` can be written to the store unchanged.
    """
    if tp in PRIMITIVE_SCALARS:
        return True

    origin, args = _split(tp)
    if origin is list and len(args) == 1:
        return is_primitive_type(args[0])
    if origin is dict and len(args) == 2:
        return args[0] is str and is_primitive_type(args[1])
    return False


def conforms_to(value: Any, tp: Any) -> bool:
    """
    Check that a stored value has the shape described by a primitive type.

    ``bool`` is a subclass of ``int`` in Python but the two are kept apart
    here: a flag read back where a number was declared is a shape mismatch.
    An ``int`` is accepted where a ``float`` is declared.

    Args:
        value: The value read from the store.
        tp: A type for which ``is_primitive_type`` holds.

    Returns:
        True if ``value`` can be handed to a convertor expecting ``tp``.
    """
    if tp is bool:
        return isinstance(value, bool)
    if tp is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if tp is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if tp in (str, bytes, datetime):
        return isinstance(value, tp)

    origin, args = _split(tp)
    if origin is list and len(args) == 1:
        return isinstance(value, list) and all(conforms_to(v, args[0]) for v in value)
    if origin is dict and len(args) == 2:
        return isinstance(value, dict) and all(
            isinstance(k, str) and conforms_to(v, args[1]) for k, v in value.items()
        )
    return False


def is_stored_primitive(value: Any) -> bool:
    """Return True if ``value`` is any storable shape at all."""
    if isinstance(value, PRIMITIVE_SCALARS):
        return True
    if isinstance(value, list):
        return all(is_stored_primitive(v) for v in value)
    if isinstance(value, dict):
        return all(
            isinstance(k, str) and is_stored_primitive(v) for k, v in value.items()
        )
    return False


def describe(tp: Any) -> str:
    """Readable name of a type hint for log messages."""
    if typing.get_args(tp):
        return repr(tp)
    return getattr(tp, "__name__", repr(tp))
