"""Value storage keyed weakly by composite key."""

from __future__ import annotations

from typing import Any
import weakref

from composite_weakmap.keys import CompositeKey


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class ValueStore:
    """Values live only as long as their composite key does."""

    def __init__(self) -> None:
        self._values: weakref.WeakKeyDictionary[CompositeKey, Any] = weakref.WeakKeyDictionary()

    def get(self, handle: CompositeKey, default: Any = MISSING) -> Any:
        return self._values.get(handle, default)

    def put(self, handle: CompositeKey, value: Any) -> None:
        self._values[handle] = value

    def contains(self, handle: CompositeKey) -> bool:
        return handle in self._values

    def discard(self, handle: CompositeKey) -> bool:
        return self._values.pop(handle, MISSING) is not MISSING

    def __len__(self) -> int:
        return len(self._values)
