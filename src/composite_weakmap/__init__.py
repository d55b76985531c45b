"""Weak maps keyed by ordered sequences of objects."""

import logging

from composite_weakmap.config import MapConfig
from composite_weakmap.coordinator import CleanupCoordinator, CoordinatorState
from composite_weakmap.errors import (
    CompositeMapError,
    InvalidArgumentError,
    InvalidPartialKeyError,
)
from composite_weakmap.index import PartialKeyIndex
from composite_weakmap.keys import CompositeKey, KeyPosition
from composite_weakmap.map import CompositeWeakMap, MapStats
from composite_weakmap.resolver import resolve
from composite_weakmap.store import MISSING, ValueStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CleanupCoordinator",
    "CompositeKey",
    "CompositeMapError",
    "CompositeWeakMap",
    "CoordinatorState",
    "InvalidArgumentError",
    "InvalidPartialKeyError",
    "KeyPosition",
    "MISSING",
    "MapConfig",
    "MapStats",
    "PartialKeyIndex",
    "ValueStore",
    "resolve",
]
