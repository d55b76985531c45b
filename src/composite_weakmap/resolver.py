"""Resolve a partial key sequence to its shared composite key.

Every partial key contributes the candidate set registered for its exact
position and the sequence length. A binding adds its handle to the candidate
set of every position at once, so the handle that answers a lookup is the one
present in all fetched sets. The smallest set is used as the pivot to keep
the intersection cheap; the cost degrades towards O(n * m) only when one key
is reused at the same position and length across many bindings.
"""

from __future__ import annotations

from typing import AbstractSet, Optional, Sequence

from composite_weakmap.errors import InvalidArgumentError
from composite_weakmap.index import PartialKeyIndex
from composite_weakmap.keys import CompositeKey, positions


EMPTY_KEYS_MESSAGE = "At least one key is required."


def candidate_sets(
    partial_keys: Sequence[object], index: PartialKeyIndex
) -> list[AbstractSet[CompositeKey]]:
    return [
        index.lookup(key, position)
        for position, key in zip(positions(len(partial_keys)), partial_keys)
    ]


def pick_pivot(sets: Sequence[AbstractSet[CompositeKey]]) -> int:
    """Return the index of the smallest set, preferring the first on ties."""
    if not sets:
        raise ValueError("Cannot pick a pivot from no candidate sets.")
    pivot = 0
    for position in range(1, len(sets)):
        if len(sets[position]) < len(sets[pivot]):
            pivot = position
    return pivot


def resolve(partial_keys: Sequence[object], index: PartialKeyIndex) -> Optional[CompositeKey]:
    """Find the composite key bound to ``partial_keys``, or ``None``."""
    if len(partial_keys) == 0:
        raise InvalidArgumentError(EMPTY_KEYS_MESSAGE)

    sets = candidate_sets(partial_keys, index)
    pivot = pick_pivot(sets)
    pivot_set = sets[pivot]
    if not pivot_set:
        return None
    others = sets[:pivot] + sets[pivot + 1 :]
    for candidate in pivot_set:
        if all(candidate in other for other in others):
            return candidate
    return None
