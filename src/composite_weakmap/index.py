"""Per partial key index of candidate composite keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import AbstractSet
import weakref

from composite_weakmap.keys import CompositeKey, KeyPosition


_EMPTY: frozenset[CompositeKey] = frozenset()


@dataclass
class _IndexEntry:
    ref: weakref.ReferenceType
    positions: dict[KeyPosition, set[CompositeKey]] = field(default_factory=dict)


class PartialKeyIndex:
    """Maps each live partial key to its candidate composite keys by position.

    Entries are stored by ``id(key)`` next to a weak reference to the key, so
    the key is compared by identity and never kept alive by the index. When a
    key is collected its entry is dropped by the weak reference callback.
    """

    def __init__(self) -> None:
        self._entries: dict[int, _IndexEntry] = {}

        def remove(key_id: int, ref: weakref.ReferenceType, selfref=weakref.ref(self)) -> None:
            self = selfref()
            if self is None:
                return
            entry = self._entries.get(key_id)
            if entry is not None and entry.ref is ref:
                del self._entries[key_id]

        self._remove = remove

    def _entry(self, key: object) -> _IndexEntry | None:
        entry = self._entries.get(id(key))
        if entry is None or entry.ref() is not key:
            return None
        return entry

    def register(self, key: object, position: KeyPosition, handle: CompositeKey) -> int:
        """Add ``handle`` as a candidate for ``key`` at ``position``; returns the set size."""
        entry = self._entry(key)
        if entry is None:
            entry = _IndexEntry(ref=weakref.ref(key, partial(self._remove, id(key))))
            self._entries[id(key)] = entry
        candidates = entry.positions.setdefault(position, set())
        candidates.add(handle)
        return len(candidates)

    def lookup(self, key: object, position: KeyPosition) -> AbstractSet[CompositeKey]:
        entry = self._entry(key)
        if entry is None:
            return _EMPTY
        return entry.positions.get(position, _EMPTY)

    def remove_candidate(self, key: object, position: KeyPosition, handle: CompositeKey) -> bool:
        entry = self._entry(key)
        if entry is None:
            return False
        candidates = entry.positions.get(position)
        if candidates is None or handle not in candidates:
            return False
        candidates.discard(handle)
        if not candidates:
            del entry.positions[position]
        if not entry.positions:
            del self._entries[id(key)]
        return True

    def candidate_count(self) -> int:
        return sum(
            len(candidates)
            for entry in self._entries.values()
            for candidates in entry.positions.values()
        )

    def __contains__(self, key: object) -> bool:
        return self._entry(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
