"""Read-only depth-first traversal of a scene graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scenegraph.errors import GraphModifiedError
from scenegraph.nodes import Branch, Node, NodeIndex

if TYPE_CHECKING:
    from scenegraph.arena import Index
    from scenegraph.graph import SceneGraph

logger = logging.getLogger(__name__)


@dataclass
class _StackFrame[T]:
    index: Branch
    node: Node[T]


class SceneGraphIter[T]:
    """Preorder iterator over the descendants of one node.

    Yields ``(index, value)`` for every proper descendant of the start node.
    A node's whole subtree is yielded before its next sibling: the sibling
    frame is pushed before the child frame, so the child pops first.

    The iterator is single pass. It raises :class:`GraphModifiedError` if
    the graph's structure changes between steps; replacing values is fine.
    """

    def __init__(self, graph: SceneGraph[T], start: NodeIndex) -> None:
        children = graph._children_of(start)  # raises NodeNotFound
        self._graph = graph
        self._version = graph._version
        self._stack: list[_StackFrame[T]] = []
        if children is not None:
            self._push(children.first)
        logger.debug("Read traversal started at %r", start)

    def __iter__(self) -> SceneGraphIter[T]:
        return self

    def __next__(self) -> tuple[NodeIndex, T]:
        if not self._stack:
            raise StopIteration
        self._graph._check_access()
        if self._graph._version != self._version:
            self._stack.clear()
            msg = "Scene graph structure changed during iteration"
            raise GraphModifiedError(msg)

        frame = self._stack.pop()
        node = frame.node
        if node.next_sibling is not None:
            self._push(node.next_sibling)
        if node.children is not None:
            self._push(node.children.first)
        return frame.index, node.value

    def _push(self, slot: Index) -> None:
        self._stack.append(_StackFrame(Branch(slot), self._graph._arena[slot]))
