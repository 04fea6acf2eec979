from enum import Enum, IntEnum
from typing import Dict, List, Optional

from persisted import (
    PersistedValue,
    ReactiveKeyValueStore,
    Settings,
    persisted,
    persisted_optional,
)


class Theme(Enum):
    LIGHT = "light"
    DARK = "dark"


class Quality(IntEnum):
    DRAFT = 0
    FINAL = 1


store = ReactiveKeyValueStore()

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Declaring a persisted value")
print("-" * 100)
print()

# A required value always reads as its type, falling back to the default.
theme = PersistedValue.required("theme", Theme.LIGHT, store=store)
print(f"Theme before any write: {theme.read()}")

theme.write(Theme.DARK)
print(f"Theme after writing DARK: {theme.read()}")
print(f"What the store holds: {store.get('theme')!r}")

# An optional value may be absent. Writing None removes the key.
last_user = PersistedValue.optional("last_user", value_type=str, store=store)
last_user.write("ada")
print(f"Last user: {last_user.read()}")
last_user.write(None)
print(f"Last user after clearing: {last_user.read()}, key present: {store.has('last_user')}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Reading data written by another version")
print("-" * 100)
print()

history = PersistedValue.required("history", [], value_type=List[Quality], store=store)

# 2 was a quality level that no longer exists. It is skipped on read.
store.set("history", [0, 2, 1])
print(f"History: {history.read()}")

# A value of the wrong type is ignored and the default is used instead.
store.set("theme", 42)
print(f"Theme after corrupt write: {theme.read()}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Observing a value")
print("-" * 100)
print()

log_theme = lambda value: print(f"Theme changed to: {value}")

with theme.observe() as observed:
    observed.subscribe(log_theme)

    # Each write, from anywhere, reaches the listener once.
    store.set("theme", "dark")
    observed.set(Theme.LIGHT)

    # Rewriting the same value is still reported.
    theme.write(Theme.LIGHT)

# Closed, so this is not reported.
theme.write(Theme.DARK)

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Grouping values in a settings class")
print("-" * 100)
print()


class AppSettings(Settings):
    theme: Theme = persisted("app.theme", Theme.LIGHT)
    quality: Quality = persisted("app.quality", Quality.DRAFT)
    shortcuts: Dict[str, str] = persisted("app.shortcuts", {"copy": "c"})
    workspace: Optional[str] = persisted_optional("app.workspace")


settings = AppSettings(store)
settings.theme = Theme.DARK
settings.workspace = "~/projects"
print(settings)

settings.reset()
print(f"After reset: {settings.to_dict()}")

store.close()
