"""Cross key cleanup for a single composite key binding.

A binding stays reachable only while every one of its partial keys is. Once
any key is collected the binding can never be looked up again, yet the other
keys still list its handle in their candidate sets. A coordinator watches
every key of the binding with ``weakref.finalize`` and, when the first one
is collected, removes the handle from every surviving key and detaches the
remaining watches.

A fresh coordinator is created for every ``set`` call. Detaching is per
binding, so one binding unwinding never cancels the watches of another
binding that happens to share a partial key.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence
import logging
import weakref

from composite_weakmap.index import PartialKeyIndex
from composite_weakmap.keys import CompositeKey, KeyPosition

if TYPE_CHECKING:
    from composite_weakmap.map import CompositeWeakMap


logger = logging.getLogger(__name__)


class CoordinatorState(Enum):
    ALIVE = "alive"
    UNWINDING = "unwinding"
    CLEANED = "cleaned"
    SUPERSEDED = "superseded"


@dataclass(frozen=True, eq=False)
class WatchPayload:
    """Edge to remove once a watched key is collected."""

    key_ref: weakref.ReferenceType
    position: KeyPosition
    token: object


def _distinct_others(partial_keys: Sequence[object], key: object) -> list[object]:
    seen: set[int] = set()
    others: list[object] = []
    for other in partial_keys:
        if other is key or id(other) in seen:
            continue
        seen.add(id(other))
        others.append(other)
    return others


class CleanupCoordinator:
    """Unwinds the index bookkeeping of one binding when any of its keys dies."""

    def __init__(
        self,
        handle: CompositeKey,
        partial_keys: Sequence[object],
        owner: "CompositeWeakMap",
    ) -> None:
        size = len(partial_keys)
        self.handle = handle
        self.state = CoordinatorState.ALIVE
        self._owner = weakref.ref(owner)
        self._token = object()
        self._payloads = tuple(
            WatchPayload(weakref.ref(key), KeyPosition(position, size), self._token)
            for position, key in enumerate(partial_keys, start=1)
        )
        self._watches: list[weakref.finalize] = []
        for payload, key in zip(self._payloads, partial_keys):
            for other in _distinct_others(partial_keys, key):
                watch = weakref.finalize(other, self._notify, payload)
                watch.atexit = False
                self._watches.append(watch)
        if not self._watches:
            # a single distinct key: watch it so the coordinator is still released
            watch = weakref.finalize(partial_keys[0], self._notify, self._payloads[0])
            watch.atexit = False
            self._watches.append(watch)

    @property
    def pending_watches(self) -> int:
        return sum(1 for watch in self._watches if watch.alive)

    def _notify(self, payload: WatchPayload) -> None:
        owner = self._owner()
        if owner is None:
            self._cancel()
            self.state = CoordinatorState.CLEANED
            return
        owner._schedule_cleanup(self, payload)

    def unwind(self, payload: WatchPayload, index: Optional[PartialKeyIndex]) -> bool:
        """Remove the binding from every surviving key; returns ``False`` if already handled."""
        if self.state is not CoordinatorState.ALIVE or payload.token is not self._token:
            return False
        self.state = CoordinatorState.UNWINDING
        removed = self._remove_edge(index, payload)
        # the binding is dead, so every cancelled watch applies its edge now
        for other in self._payloads:
            if other is not payload:
                removed += self._remove_edge(index, other)
        self._cancel()
        self.state = CoordinatorState.CLEANED
        logger.debug(
            "Unwound composite key %#x: removed %d candidate entries",
            id(self.handle),
            removed,
        )
        return True

    def retire(self) -> None:
        """Detach all watches without touching the index."""
        if self.state is not CoordinatorState.ALIVE:
            return
        self._cancel()
        self.state = CoordinatorState.SUPERSEDED

    def _remove_edge(self, index: Optional[PartialKeyIndex], payload: WatchPayload) -> int:
        key = payload.key_ref()
        if key is None or index is None:
            return 0
        return int(index.remove_candidate(key, payload.position, self.handle))

    def _cancel(self) -> None:
        for watch in self._watches:
            watch.detach()
        self._watches.clear()
