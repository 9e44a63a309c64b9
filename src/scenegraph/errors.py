"""Exception hierarchy for scene graph operations.

Lookups that fail because a caller handed in a stale index are recoverable
and derive from ``KeyError``. Broken structural invariants derive from
``AssertionError``: they point at a bug in the graph itself, not at bad input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scenegraph.arena import Index
    from scenegraph.nodes import NodeIndex


class SceneGraphError(Exception):
    """Base class for all scene graph errors."""


class NodeNotFound(SceneGraphError, KeyError):
    """A branch index no longer resolves in the arena."""

    def __init__(self, index: NodeIndex) -> None:
        self.index = index
        super().__init__(f"Node {index!r} not found in scene graph")

    def __str__(self) -> str:
        return str(self.args[0])


class ParentNodeNotFound(NodeNotFound):
    """The parent given to an attach or move operation is stale."""

    def __init__(self, index: NodeIndex) -> None:
        super().__init__(index)
        self.args = (f"Parent node {index!r} not found in scene graph",)


class RootNodeError(SceneGraphError, ValueError):
    """The operation is not defined for the root node."""


class InvalidMoveError(SceneGraphError, ValueError):
    """Reparenting would make a node its own ancestor."""


class BorrowError(SceneGraphError, RuntimeError):
    """The graph (or a yielded pair) is not accessible right now.

    Raised while a mutable traversal holds the graph exclusively, and when a
    pair from an earlier traversal step is touched after being released.
    """


class GraphModifiedError(SceneGraphError, RuntimeError):
    """The graph structure changed while a read traversal was in progress."""


class InvariantViolation(SceneGraphError, AssertionError):
    """A structural invariant of the tree does not hold."""


class DisjointAccessError(InvariantViolation):
    """Two simultaneous accesses were requested for the same slot."""

    def __init__(self, index: Index) -> None:
        self.index = index
        msg = f"Disjoint access requested twice for the same slot {index!r}"
        super().__init__(msg)
