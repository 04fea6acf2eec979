"""
Persisted Exceptions
====================

Errors raised by the persisted layer.

Only programmer errors surface as exceptions: a property declared with a
convertor that cannot carry its type, a required value given a ``None``
default, or an observer registered twice. Bad data found in the store is
never raised; it is logged and the declared default is returned instead.
"""


class PersistedError(Exception):
    """Base exception for all persisted errors."""


class ConfigurationError(PersistedError):
    """A persisted property was declared with incompatible settings.

    Raised at construction time, for example when a convertor's persisted
    type is not a storable primitive, when a mapping key cannot be stored as
    text, or when a required value is declared with an optional type.
    """


class SubscriptionError(PersistedError):
    """A change observer was registered more than once."""
