"""Composite key handles and partial key positions."""

from __future__ import annotations

from dataclasses import dataclass


class CompositeKey:
    """Opaque identity shared by every partial key of one binding."""

    __slots__ = ("__weakref__",)

    def __repr__(self) -> str:
        return f"<CompositeKey at {id(self):#x}>"


@dataclass(frozen=True)
class KeyPosition:
    """1-based index of a partial key together with the key sequence length."""

    index: int
    size: int

    def __post_init__(self) -> None:
        if self.size < 1 or not (1 <= self.index <= self.size):
            raise ValueError(f"Invalid key position: {self.index}/{self.size}")

    def __str__(self) -> str:
        return f"{self.index}/{self.size}"


def positions(size: int) -> list[KeyPosition]:
    return [KeyPosition(index, size) for index in range(1, size + 1)]
