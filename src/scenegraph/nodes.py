"""Node identifiers and the arena-resident node record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scenegraph.arena import Index


@dataclass(frozen=True)
class Root:
    """Identifier of the graph's root value, stored inline in the graph."""

    def __repr__(self) -> str:
        return "Root"


@dataclass(frozen=True)
class Branch:
    """Identifier of any non-root node, addressed by its arena index."""

    index: Index

    def __repr__(self) -> str:
        return f"Branch({self.index!r})"


type NodeIndex = Root | Branch

ROOT = Root()


@dataclass
class Children:
    """Head and tail of a sibling chain, so appends don't walk the chain."""

    first: Index
    last: Index


@dataclass
class Node[T]:
    """A non-root tree member plus its place in the parent's sibling chain."""

    value: T
    parent: NodeIndex
    children: Children | None = None
    next_sibling: Index | None = None
