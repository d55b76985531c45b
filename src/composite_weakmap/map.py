"""Weak map keyed by ordered sequences of partial keys.

``CompositeWeakMap`` combines several partial key objects into a single
composite key and maps that key to a value. Every partial key is referenced
weakly: once any of them is collected the value can no longer be looked up
and becomes collectable too.

Layout::

    index   = {partial key -> {KeyPosition -> {CompositeKey, ...}}}
    values  = WeakKeyDictionary {CompositeKey -> value}

    m.set([first, second, third], 1)
    m.set([second, third], 2)

    first  -> {1/3: {K1}}
    second -> {2/3: {K1}, 1/2: {K2}}
    third  -> {3/3: {K1}, 2/2: {K2}}

A lookup fetches the candidate set of each partial key for its position and
returns the single handle shared by all of them (see ``resolver``). Handles
are kept alive only by the index, so once every candidate entry of a handle
is gone its value is released with it (see ``coordinator``).

The sequence itself is irrelevant to the lookup: ``m.get([a, b])`` and
``m.get((a, b))`` address the same binding. This is the opposite of a
single key weak map, where the identity of the key object matters, so the
class deliberately does not implement the ``Mapping`` protocol.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional
import logging
import weakref

from composite_weakmap.config import MapConfig
from composite_weakmap.coordinator import CleanupCoordinator, CoordinatorState, WatchPayload
from composite_weakmap.errors import InvalidArgumentError, InvalidPartialKeyError
from composite_weakmap.index import PartialKeyIndex
from composite_weakmap.keys import CompositeKey, KeyPosition
from composite_weakmap.resolver import EMPTY_KEYS_MESSAGE, resolve
from composite_weakmap.store import MISSING, ValueStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapStats:
    indexed_keys: int
    candidate_entries: int
    stored_values: int
    pending_coordinators: int


def _retire_all(coordinators: dict[CompositeKey, CleanupCoordinator]) -> None:
    for coordinator in list(coordinators.values()):
        coordinator.retire()
    coordinators.clear()


class CompositeWeakMap:
    """A weak map from ordered partial key sequences to values."""

    # not iterable, not a Mapping
    __iter__ = None

    def __init__(self, config: Optional[MapConfig] = None) -> None:
        self.config = config or MapConfig()
        self._index = PartialKeyIndex()
        self._values = ValueStore()
        self._coordinators: dict[CompositeKey, CleanupCoordinator] = {}
        self._pending: deque[tuple[CleanupCoordinator, WatchPayload]] = deque()
        self._busy = 0
        finalizer = weakref.finalize(self, _retire_all, self._coordinators)
        finalizer.atexit = False

    def get(self, partial_keys: Sequence[object], default: Any = None) -> Any:
        """Return the value bound to ``partial_keys``, or ``default``."""
        keys = self._validate(partial_keys)
        with self._operation():
            handle = resolve(keys, self._index)
            if handle is None:
                return default
            return self._values.get(handle, default)

    def set(self, partial_keys: Sequence[object], value: Any) -> "CompositeWeakMap":
        """Bind ``value`` to ``partial_keys``. Returns the map."""
        keys = self._validate(partial_keys)
        with self._operation():
            handle = resolve(keys, self._index)
            if handle is None:
                handle = CompositeKey()
                logger.debug("Minted composite key %#x for %d partial keys", id(handle), len(keys))
            self._bind(keys, handle)
            self._values.put(handle, value)
        return self

    def has(self, partial_keys: Sequence[object]) -> bool:
        keys = self._validate(partial_keys)
        with self._operation():
            handle = resolve(keys, self._index)
            return handle is not None and self._values.contains(handle)

    def delete(self, partial_keys: Sequence[object]) -> bool:
        """Remove the value bound to ``partial_keys``; returns whether one existed.

        Index bookkeeping is left in place and lapses when a partial key is
        collected.
        """
        keys = self._validate(partial_keys)
        with self._operation():
            handle = resolve(keys, self._index)
            if handle is None:
                return False
            return self._values.discard(handle)

    def stats(self) -> MapStats:
        return MapStats(
            indexed_keys=len(self._index),
            candidate_entries=self._index.candidate_count(),
            stored_values=len(self._values),
            pending_coordinators=len(self._coordinators),
        )

    def __getitem__(self, partial_keys: Sequence[object]) -> Any:
        """``m[a, b]`` looks up ``(a, b)``. A single key needs a trailing comma.

        ``m[a]`` passes the bare key rather than a sequence and raises
        ``InvalidArgumentError``; write ``m[a,]`` instead.
        """
        value = self.get(partial_keys, MISSING)
        if value is MISSING:
            raise KeyError(partial_keys)
        return value

    def __setitem__(self, partial_keys: Sequence[object], value: Any) -> None:
        self.set(partial_keys, value)

    def __delitem__(self, partial_keys: Sequence[object]) -> None:
        if not self.delete(partial_keys):
            raise KeyError(partial_keys)

    def __contains__(self, partial_keys: Sequence[object]) -> bool:
        return self.has(partial_keys)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} values={len(self._values)} "
            f"indexed_keys={len(self._index)}>"
        )

    def _validate(self, partial_keys: Sequence[object]) -> tuple[object, ...]:
        if isinstance(partial_keys, (str, bytes)) or not isinstance(partial_keys, Sequence):
            raise InvalidArgumentError(
                f"Partial keys must be a sequence, got {type(partial_keys).__name__}."
            )
        keys = tuple(partial_keys)
        if not keys:
            raise InvalidArgumentError(EMPTY_KEYS_MESSAGE)
        limit = self.config.max_key_length
        if limit is not None and len(keys) > limit:
            raise InvalidArgumentError(
                f"At most {limit} partial keys are allowed, got {len(keys)}."
            )
        for position, key in enumerate(keys, start=1):
            try:
                weakref.ref(key)
            except TypeError as exc:
                raise InvalidPartialKeyError(
                    f"Partial key {position}/{len(keys)} cannot be weakly referenced: "
                    f"{type(key).__name__}."
                ) from exc
        return keys

    def _bind(self, keys: tuple[object, ...], handle: CompositeKey) -> None:
        size = len(keys)
        threshold = self.config.candidate_warning_threshold
        for index, key in enumerate(keys, start=1):
            position = KeyPosition(index, size)
            count = self._index.register(key, position, handle)
            if threshold is not None and count == threshold:
                logger.warning(
                    "Partial key at position %s is shared by %d composite keys; "
                    "lookups through it degrade towards linear time",
                    position,
                    count,
                )
        previous = self._coordinators.get(handle)
        if previous is not None:
            previous.retire()
        self._coordinators[handle] = CleanupCoordinator(handle, keys, self)

    @contextmanager
    def _operation(self) -> Iterator[None]:
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1
            self._drain()

    def _schedule_cleanup(self, coordinator: CleanupCoordinator, payload: WatchPayload) -> None:
        # weakref callbacks may run inside an operation; defer until it returns
        self._pending.append((coordinator, payload))
        self._drain()

    def _drain(self) -> None:
        if self._busy:
            return
        self._busy += 1
        try:
            while self._pending:
                coordinator, payload = self._pending.popleft()
                coordinator.unwind(payload, self._index)
                if coordinator.state is not CoordinatorState.ALIVE:
                    self._release(coordinator)
        finally:
            self._busy -= 1

    def _release(self, coordinator: CleanupCoordinator) -> None:
        if self._coordinators.get(coordinator.handle) is coordinator:
            del self._coordinators[coordinator.handle]
