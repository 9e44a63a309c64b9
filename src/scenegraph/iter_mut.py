"""Mutable, predicate-gated depth-first traversal of a scene graph.

Each step hands out a :class:`NodePair`: a view onto a node and its parent
through which either value can be read or replaced. The same node shows up
as the parent of several consecutive pairs before it shows up as a child in
its own right, so the pairs must never be live at the same time:

- advancing the iterator releases the previous pair, and any access through
  a released pair raises :class:`BorrowError`;
- the graph is exclusively borrowed by the iterator until it is exhausted,
  closed, or garbage collected, so nothing else can observe the values
  mid-update.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scenegraph.errors import BorrowError, InvariantViolation
from scenegraph.nodes import Branch, NodeIndex, Root

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from scenegraph.arena import Index
    from scenegraph.graph import SceneGraph
    from scenegraph.nodes import Node

logger = logging.getLogger(__name__)


class NodePair[T]:
    """A (parent, child) view handed out by one traversal step."""

    __slots__ = ("_graph", "_index", "_node", "_parent_index", "_parent_node", "_released")

    def __init__(
        self,
        graph: SceneGraph[T],
        parent_index: NodeIndex,
        parent_node: Node[T] | None,
        index: Branch,
        node: Node[T],
    ) -> None:
        self._graph = graph
        self._parent_index = parent_index
        self._parent_node = parent_node  # None when the parent is the root
        self._index = index
        self._node = node
        self._released = False

    @property
    def parent_index(self) -> NodeIndex:
        """Index of the parent node."""
        return self._parent_index

    @property
    def index(self) -> Branch:
        """Index of the child node."""
        return self._index

    @property
    def released(self) -> bool:
        """Whether the traversal has moved past this pair."""
        return self._released

    @property
    def parent(self) -> T:
        """Value of the parent node."""
        self._ensure_live()
        if self._parent_node is None:
            return self._graph._root
        return self._parent_node.value

    @parent.setter
    def parent(self, value: T) -> None:
        self._ensure_live()
        if self._parent_node is None:
            self._graph._root = value
        else:
            self._parent_node.value = value

    @property
    def child(self) -> T:
        """Value of the child node."""
        self._ensure_live()
        return self._node.value

    @child.setter
    def child(self, value: T) -> None:
        self._ensure_live()
        self._node.value = value

    def _ensure_live(self) -> None:
        if self._released:
            msg = f"Pair for {self._index!r} was released when the traversal advanced"
            raise BorrowError(msg)

    def _release(self) -> None:
        self._released = True
        self._parent_node = None
        self._node = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"NodePair({self._parent_index!r} -> {self._index!r}, {state})"


@dataclass
class _StackFrame:
    parent: NodeIndex
    child: Index


@dataclass
class _StackFrame:
    parent: NodeIndex
    child: Index


def _release_pairs(issued: list[NodePair]) -> None:
    while issued:
        issued.pop()._release()


class SceneGraphIterMutPredicate[T]:
    """Preorder iterator of (parent, child) pairs that prunes rejected subtrees.

    A node is yielded only if ``predicate(value)`` holds for it; a rejected
    node's descendants are skipped but its siblings are still considered.
    When traversal starts at the root, the root is tested once, the first
    time one of its children comes up, and rejecting it empties the whole
    traversal. A branch start is never tested itself.

    Use as a context manager, or exhaust it, to release the graph promptly.
    Dropping the iterator also releases the last pair it handed out.
    """

    def __init__(
        self, graph: SceneGraph[T], start: NodeIndex, predicate: Callable[[T], bool]
    ) -> None:
        children = graph._children_of(start)  # raises NodeNotFound
        self._graph = graph
        self._predicate = predicate
        self._root_admitted: bool | None = None
        # Holds at most the one live pair; shared with the finalizer.
        self._issued: list[NodePair[T]] = []
        self._stack: list[_StackFrame] = []
        if children is not None:
            self._stack.append(_StackFrame(start, children.first))
        weakref.finalize(self, _release_pairs, self._issued)
        graph._borrow_exclusive(self)
        logger.debug("Mutable traversal started at %r", start)

    def __iter__(self) -> SceneGraphIterMutPredicate[T]:
        return self

    def __next__(self) -> NodePair[T]:
        _release_pairs(self._issued)
        try:
            pair = self._step()
        except BaseException:
            self.close()
            raise
        if pair is None:
            self.close()
            raise StopIteration
        self._issued.append(pair)
        return pair

    def close(self) -> None:
        """Stop the traversal and give the graph back."""
        _release_pairs(self._issued)
        self._stack.clear()
        self._graph._release_exclusive(self)

    def __enter__(self) -> SceneGraphIterMutPredicate[T]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _step(self) -> NodePair[T] | None:
        while self._stack:
            frame = self._stack.pop()
            if isinstance(frame.parent, Root) and not self._admit_root():
                logger.debug("Root rejected by predicate")
                return None

            parent_node, node = self._resolve(frame)
            if node.next_sibling is not None:
                self._stack.append(_StackFrame(frame.parent, node.next_sibling))
            if not self._predicate(node.value):
                continue
            if node.children is not None:
                self._stack.append(_StackFrame(Branch(frame.child), node.children.first))

            return NodePair(self._graph, frame.parent, parent_node, Branch(frame.child), node)
        return None

    def _admit_root(self) -> bool:
        if self._root_admitted is None:
            self._root_admitted = bool(self._predicate(self._graph._root))
        return self._root_admitted

    def _resolve(self, frame: _StackFrame) -> tuple[Node[T] | None, Node[T]]:
        arena = self._graph._arena
        match frame.parent:
            case Root():
                parent_node, node = None, arena.get(frame.child)
            case Branch(index=slot):
                # A node is never its own parent, so the two slots differ.
                parent_node, node = arena.get_disjoint(slot, frame.child)
                if parent_node is None:
                    msg = f"Parent {frame.parent!r} vanished during traversal"
                    raise InvariantViolation(msg)
        if node is None:
            msg = f"Child {frame.child!r} vanished during traversal"
            raise InvariantViolation(msg)
        return parent_node, node
