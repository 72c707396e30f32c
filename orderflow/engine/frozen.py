"""Read-only containers used for everything the flow engine reads or returns.

`freeze()` turns plain submission payloads (dicts, lists, sets) into
`FrozenDict` / tuple / frozenset trees. Every container is rebuilt, so the
frozen tree shares no mutable state with its source. Payloads are JSON-like;
values that cannot be made immutable are rejected with TypeError. `thaw()`
goes the other way and always returns fresh, caller-owned containers.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator
from uuid import UUID

from orderflow.errors import ReadOnlyContextError


class FrozenDict(Mapping):
    """Immutable mapping. Mutating methods exist only to fail loudly."""

    __slots__ = ("_data",)

    def __init__(self, data: Any = None, **kwargs: Any) -> None:
        items: Dict[Any, Any] = {}
        if data is not None:
            source = data.items() if isinstance(data, Mapping) else data
            for key, value in source:
                items[key] = freeze(value)
        for key, value in kwargs.items():
            items[key] = freeze(value)
        object.__setattr__(self, "_data", items)

    def __getitem__(self, key: Any) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrozenDict({self._data!r})"

    def __or__(self, other: Mapping) -> "FrozenDict":
        if not isinstance(other, Mapping):
            return NotImplemented
        merged = dict(self._data)
        merged.update(other)
        return FrozenDict(merged)

    # Immutable, so copies can share the instance.
    def __copy__(self) -> "FrozenDict":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "FrozenDict":
        return self

    def __reduce__(self):
        return (FrozenDict, (dict(self._data),))

    # --- Mutation attempts ---------------------------------------------------

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyContextError(f"set attribute '{name}'", "frozen mapping")

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyContextError(f"delete attribute '{name}'", "frozen mapping")

    def __setitem__(self, key: Any, value: Any) -> None:
        raise ReadOnlyContextError(f"assign key '{key}'", "frozen mapping")

    def __delitem__(self, key: Any) -> None:
        raise ReadOnlyContextError(f"delete key '{key}'", "frozen mapping")

    def __ior__(self, other: Any) -> "FrozenDict":
        raise ReadOnlyContextError("update", "frozen mapping")

    def update(self, *args: Any, **kwargs: Any) -> None:
        raise ReadOnlyContextError("update", "frozen mapping")

    def pop(self, *args: Any) -> Any:
        raise ReadOnlyContextError("pop", "frozen mapping")

    def popitem(self) -> Any:
        raise ReadOnlyContextError("popitem", "frozen mapping")

    def clear(self) -> None:
        raise ReadOnlyContextError("clear", "frozen mapping")

    def setdefault(self, key: Any, default: Any = None) -> Any:
        raise ReadOnlyContextError(f"setdefault key '{key}'", "frozen mapping")


# Scalars that are already immutable and can be shared as they are.
IMMUTABLE_SCALARS = (str, bytes, int, float, bool, type(None), Decimal, date, time, timedelta, UUID, Enum)


def freeze(value: Any) -> Any:
    """Return a deep, immutable copy of `value`.

    Accepts JSON-like data: mappings, lists, tuples, sets and the types in
    `IMMUTABLE_SCALARS`. Anything else raises TypeError.
    """
    if isinstance(value, FrozenDict):
        return value
    if isinstance(value, Mapping):
        return FrozenDict(value)
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(v) for v in value)
    if isinstance(value, IMMUTABLE_SCALARS):
        return value
    raise TypeError(f"Cannot freeze value of type {type(value).__name__}")


def thaw(value: Any) -> Any:
    """Return a deep, mutable copy of a frozen value.

    Tuples come back as lists, which is what JSON payloads use.
    """
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    if isinstance(value, (set, frozenset)):
        # Set members are hashable, so they are already immutable.
        return set(value)
    return value
