"""Generational arena: a slot store addressed by versioned indices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from scenegraph.errors import DisjointAccessError

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True, order=True)
class Index:
    """Slot position paired with the generation it was issued for."""

    slot: int
    generation: int

    def __repr__(self) -> str:
        return f"Index({self.slot}v{self.generation})"


@dataclass
class _Entry[T]:
    generation: int
    value: T | None = None
    occupied: bool = False
    next_free: int | None = None


class Arena[T]:
    """Flat store of values keyed by :class:`Index`.

    Removing a value bumps the generation of its slot, so every index handed
    out for the old value stops resolving even after the slot is reused.
    """

    def __init__(self) -> None:
        self._entries: list[_Entry[T]] = []
        self._free_head: int | None = None
        self._len = 0

    def insert(self, value: T) -> Index:
        """Store a value and return the index that addresses it."""
        if self._free_head is not None:
            slot = self._free_head
            entry = self._entries[slot]
            self._free_head = entry.next_free
            entry.value = value
            entry.occupied = True
            entry.next_free = None
        else:
            slot = len(self._entries)
            entry = _Entry(generation=0, value=value, occupied=True)
            self._entries.append(entry)
        self._len += 1
        return Index(slot, entry.generation)

    def remove(self, index: Index) -> T | None:
        """Remove and return the value at index, or None if it is stale."""
        entry = self._lookup(index)
        if entry is None:
            return None
        value = entry.value
        entry.value = None
        entry.occupied = False
        entry.generation += 1
        entry.next_free = self._free_head
        self._free_head = index.slot
        self._len -= 1
        return value

    def get(self, index: Index) -> T | None:
        """Return the value at index, or None if the index is stale."""
        entry = self._lookup(index)
        return None if entry is None else entry.value

    def get_disjoint(self, a: Index, b: Index) -> tuple[T | None, T | None]:
        """Return the values at two different slots.

        Raises:
            DisjointAccessError: If both indices name the same slot

        """
        if a.slot == b.slot:
            raise DisjointAccessError(a)
        return self.get(a), self.get(b)

    def clear(self) -> None:
        """Remove every value, invalidating all outstanding indices."""
        for index, _ in list(self):
            self.remove(index)

    def _lookup(self, index: Index) -> _Entry[T] | None:
        if not 0 <= index.slot < len(self._entries):
            return None
        entry = self._entries[index.slot]
        if not entry.occupied or entry.generation != index.generation:
            return None
        return entry

    def __getitem__(self, index: Index) -> T:
        entry = self._lookup(index)
        if entry is None:
            msg = f"{index!r} is not a live arena index"
            raise KeyError(msg)
        return entry.value  # type: ignore[return-value]

    def __contains__(self, index: object) -> bool:
        return isinstance(index, Index) and self._lookup(index) is not None

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[tuple[Index, T]]:
        for slot, entry in enumerate(self._entries):
            if entry.occupied:
                yield Index(slot, entry.generation), entry.value  # type: ignore[misc]
