"""The scene graph container and its structural mutation API."""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any

from scenegraph.arena import Arena, Index
from scenegraph.config import SceneGraphSettings, get_settings
from scenegraph.errors import (
    BorrowError,
    InvalidMoveError,
    InvariantViolation,
    NodeNotFound,
    ParentNodeNotFound,
    RootNodeError,
)
from scenegraph.iter import SceneGraphIter
from scenegraph.iter_mut import SceneGraphIterMutPredicate
from scenegraph.nodes import ROOT, Branch, Children, Node, NodeIndex, Root

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


class SceneGraph[T]:
    """A tree of values with a distinguished root.

    The root value lives inline; every other node lives in an arena and is
    addressed by a :class:`Branch` index. Children of a node form a singly
    linked sibling chain in attachment order.

    Example:
        sg = SceneGraph("root")
        arm = sg.attach_at_root("arm")
        hand = sg.attach(arm, "hand")
        [value for _, value in sg]  # ["arm", "hand"]

    """

    def __init__(self, root: T, *, settings: SceneGraphSettings | None = None) -> None:
        self._root = root
        self._root_children: Children | None = None
        self._arena: Arena[Node[T]] = Arena()
        self.settings = settings if settings is not None else get_settings()
        # Bumped on every structural change so read traversals can notice.
        self._version = 0
        self._exclusive: weakref.ref[Any] | None = None

    # ------------------------------------------------------------------ #
    # Values
    # ------------------------------------------------------------------ #
    @property
    def root(self) -> T:
        """The root value."""
        self._check_access()
        return self._root

    @root.setter
    def root(self, value: T) -> None:
        self._check_access()
        self._root = value

    def get(self, index: NodeIndex) -> T:
        """Return the value stored at index.

        Raises:
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        match index:
            case Root():
                return self._root
            case Branch():
                return self._node(index).value

    def set(self, index: NodeIndex, value: T) -> None:
        """Replace the value stored at index.

        Raises:
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        match index:
            case Root():
                self._root = value
            case Branch():
                self._node(index).value = value

    def parent(self, index: NodeIndex) -> NodeIndex | None:
        """Return the parent of index, or None for the root."""
        self._check_access()
        match index:
            case Root():
                return None
            case Branch():
                return self._node(index).parent

    # ------------------------------------------------------------------ #
    # Structure
    # ------------------------------------------------------------------ #
    def attach_at_root(self, value: T) -> NodeIndex:
        """Append value as the last child of the root."""
        return self.attach(ROOT, value)

    def attach(self, parent: NodeIndex, value: T) -> NodeIndex:
        """Append value as the last child of parent.

        Returns:
            The index of the new node

        Raises:
            ParentNodeNotFound: If parent is a stale branch

        """
        self._check_access()
        self._require_parent(parent)
        index = self._arena.insert(Node(value, parent=parent))
        self._link(parent, index)
        logger.debug("Attached %r under %r", index, parent)
        self._structure_changed()
        return Branch(index)

    def attach_graph(
        self, parent: NodeIndex, other: SceneGraph[T]
    ) -> tuple[NodeIndex, dict[NodeIndex, NodeIndex]]:
        """Graft a copy of another graph under parent.

        The other graph's root becomes the new last child of parent and its
        descendants follow in the same order. The other graph is left as is.

        Returns:
            The index of the grafted root, and a mapping from every index of
            the other graph to its new index in this graph

        Raises:
            ParentNodeNotFound: If parent is a stale branch

        """
        self._check_access()
        self._require_parent(parent)
        # Snapshot first so grafting a graph into itself is well defined.
        entries = [
            (index, other.parent(index), value) for index, value in other.iterate_from(ROOT)
        ]
        new_root = self.attach(parent, other.root)
        mapping: dict[NodeIndex, NodeIndex] = {ROOT: new_root}
        for index, old_parent, value in entries:
            mapping[index] = self.attach(mapping[old_parent], value)  # type: ignore[index]
        return new_root, mapping

    def detach(self, index: NodeIndex) -> SceneGraph[T]:
        """Cut the subtree at index out of this graph.

        Returns:
            A new graph whose root is the detached value and whose branches
            are the detached node's descendants, in the same order

        Raises:
            RootNodeError: If index is the root
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        top = self._require_branch(index, "detach")
        self._unlink(top)
        subtree = self._subtree(top)

        detached = SceneGraph(self._arena[top].value, settings=self.settings)
        mapping: dict[Index, NodeIndex] = {}
        for slot in subtree:
            node = self._arena[slot]
            self._arena.remove(slot)
            if slot == top:
                mapping[slot] = ROOT
                continue
            parent_slot = node.parent.index  # type: ignore[union-attr]
            mapping[slot] = detached.attach(mapping[parent_slot], node.value)

        logger.debug("Detached %r with %d descendant(s)", index, len(subtree) - 1)
        self._structure_changed()
        return detached

    def remove(self, index: NodeIndex) -> T:
        """Drop the subtree at index and return the value stored at index.

        Raises:
            RootNodeError: If index is the root
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        top = self._require_branch(index, "remove")
        self._unlink(top)
        value = self._arena[top].value
        subtree = self._subtree(top)
        for slot in subtree:
            self._arena.remove(slot)
        logger.debug("Removed %r with %d descendant(s)", index, len(subtree) - 1)
        self._structure_changed()
        return value

    def move_node(self, moving: NodeIndex, new_parent: NodeIndex) -> None:
        """Reparent moving (with its subtree) as the last child of new_parent.

        Raises:
            RootNodeError: If moving is the root
            NodeNotFound: If moving is a stale branch
            ParentNodeNotFound: If new_parent is a stale branch
            InvalidMoveError: If new_parent is moving itself or a descendant

        """
        self._check_access()
        slot = self._require_branch(moving, "move")
        self._require_parent(new_parent)

        ancestor: NodeIndex = new_parent
        while isinstance(ancestor, Branch):
            if ancestor.index == slot:
                msg = f"Cannot move {moving!r} under {new_parent!r}: it would become its own ancestor"
                raise InvalidMoveError(msg)
            ancestor = self._arena[ancestor.index].parent

        self._unlink(slot)
        self._arena[slot].parent = new_parent
        self._link(new_parent, slot)
        logger.debug("Moved %r under %r", moving, new_parent)
        self._structure_changed()

    def clear(self) -> None:
        """Remove every branch, keeping only the root."""
        self._check_access()
        self._arena.clear()
        self._root_children = None
        logger.debug("Cleared scene graph")
        self._structure_changed()

    # ------------------------------------------------------------------ #
    # Traversal
    # ------------------------------------------------------------------ #
    def iterate_from(self, index: NodeIndex) -> SceneGraphIter[T]:
        """Iterate the descendants of index in depth-first preorder.

        Yields ``(index, value)`` pairs. The node at index itself is not
        yielded.

        Raises:
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        return SceneGraphIter(self, index)

    def iter(self) -> SceneGraphIter[T]:
        """Iterate every branch in depth-first preorder."""
        return self.iterate_from(ROOT)

    def iterate_mutable_pruned(
        self, predicate: Callable[[T], bool], start: NodeIndex = ROOT
    ) -> SceneGraphIterMutPredicate[T]:
        """Iterate (parent, child) pairs in preorder, skipping rejected subtrees.

        The graph is exclusively borrowed until the iterator is exhausted,
        closed or garbage collected. See :class:`SceneGraphIterMutPredicate`.

        Raises:
            NodeNotFound: If start is a stale branch

        """
        self._check_access()
        return SceneGraphIterMutPredicate(self, start, predicate)

    def iter_mut(self) -> SceneGraphIterMutPredicate[T]:
        """Iterate (parent, child) pairs for every branch in preorder."""
        return self.iterate_mutable_pruned(lambda _: True)

    def iter_direct_children(self, index: NodeIndex) -> Iterator[tuple[NodeIndex, T]]:
        """Iterate the immediate children of index in attachment order.

        Raises:
            NodeNotFound: If index is a stale branch

        """
        self._check_access()
        children = self._children_of(index)
        return self._walk_siblings(children.first if children else None)

    def __iter__(self) -> Iterator[tuple[NodeIndex, T]]:
        return self.iter()

    def __contains__(self, index: object) -> bool:
        self._check_access()
        if isinstance(index, Root):
            return True
        return isinstance(index, Branch) and index.index in self._arena

    def __len__(self) -> int:
        """Number of branch nodes (the root is not counted)."""
        self._check_access()
        return len(self._arena)

    def is_empty(self) -> bool:
        """Whether the root has no descendants."""
        return len(self) == 0

    def __repr__(self) -> str:
        return f"SceneGraph(root={self._root!r}, branches={len(self._arena)})"

    # ------------------------------------------------------------------ #
    # Internals shared with the iterators
    # ------------------------------------------------------------------ #
    def _check_access(self) -> None:
        if self._exclusive is not None and self._exclusive() is not None:
            msg = "Scene graph is exclusively borrowed by a mutable traversal"
            raise BorrowError(msg)

    def _borrow_exclusive(self, owner: object) -> None:
        self._check_access()
        self._exclusive = weakref.ref(owner)

    def _release_exclusive(self, owner: object) -> None:
        if self._exclusive is not None and self._exclusive() is owner:
            self._exclusive = None

    def _node(self, index: Branch) -> Node[T]:
        node = self._arena.get(index.index)
        if node is None:
            raise NodeNotFound(index)
        return node

    def _children_of(self, index: NodeIndex) -> Children | None:
        match index:
            case Root():
                return self._root_children
            case Branch():
                return self._node(index).children
        msg = f"Expected a node index, got {type(index).__name__}"
        raise TypeError(msg)

    def _set_children(self, index: NodeIndex, children: Children | None) -> None:
        match index:
            case Root():
                self._root_children = children
            case Branch(index=slot):
                self._arena[slot].children = children

    def _require_parent(self, parent: NodeIndex) -> None:
        if isinstance(parent, Branch) and parent.index not in self._arena:
            raise ParentNodeNotFound(parent)

    def _require_branch(self, index: NodeIndex, action: str) -> Index:
        if isinstance(index, Root):
            msg = f"Cannot {action} the root node"
            raise RootNodeError(msg)
        self._node(index)
        return index.index

    def _link(self, parent: NodeIndex, slot: Index) -> None:
        children = self._children_of(parent)
        if children is None:
            self._set_children(parent, Children(first=slot, last=slot))
            return
        self._arena[children.last].next_sibling = slot
        children.last = slot

    def _unlink(self, slot: Index) -> None:
        node = self._arena[slot]
        children = self._children_of(node.parent)
        if children is None:
            msg = f"{slot!r} is missing from its parent's children"
            raise InvariantViolation(msg)

        if children.first == slot:
            if node.next_sibling is None:
                self._set_children(node.parent, None)
            else:
                children.first = node.next_sibling
        else:
            previous = children.first
            while self._arena[previous].next_sibling != slot:
                following = self._arena[previous].next_sibling
                if following is None:
                    msg = f"{slot!r} is missing from its parent's sibling chain"
                    raise InvariantViolation(msg)
                previous = following
            self._arena[previous].next_sibling = node.next_sibling
            if children.last == slot:
                children.last = previous
        node.next_sibling = None

    def _subtree(self, top: Index) -> list[Index]:
        """Return top and all its descendants in preorder."""
        result = [top]
        stack: list[Index] = []
        children = self._arena[top].children
        if children is not None:
            stack.append(children.first)
        while stack:
            slot = stack.pop()
            node = self._arena[slot]
            result.append(slot)
            if node.next_sibling is not None:
                stack.append(node.next_sibling)
            if node.children is not None:
                stack.append(node.children.first)
        return result

    def _walk_siblings(self, first: Index | None) -> Iterator[tuple[NodeIndex, T]]:
        slot = first
        while slot is not None:
            self._check_access()
            node = self._arena[slot]
            yield Branch(slot), node.value
            slot = node.next_sibling

    def _structure_changed(self) -> None:
        self._version += 1
        if self.settings.debug_checks:
            self._validate()

    def _validate(self) -> None:
        """Check that every arena node is reachable exactly once from the root."""
        seen: set[Index] = set()
        stack: list[tuple[NodeIndex, Children | None]] = [(ROOT, self._root_children)]
        while stack:
            parent, children = stack.pop()
            if children is None:
                continue
            slot: Index | None = children.first
            tail: Index | None = None
            while slot is not None:
                if slot in seen:
                    msg = f"{slot!r} is reachable more than once"
                    raise InvariantViolation(msg)
                seen.add(slot)
                node = self._arena.get(slot)
                if node is None:
                    msg = f"Stale {slot!r} linked under {parent!r}"
                    raise InvariantViolation(msg)
                if node.parent != parent:
                    msg = f"{slot!r} records parent {node.parent!r}, linked under {parent!r}"
                    raise InvariantViolation(msg)
                stack.append((Branch(slot), node.children))
                tail, slot = slot, node.next_sibling
            if tail != children.last:
                msg = f"Children of {parent!r} end at {tail!r}, recorded {children.last!r}"
                raise InvariantViolation(msg)
        if len(seen) != len(self._arena):
            msg = f"{len(self._arena) - len(seen)} node(s) unreachable from the root"
            raise InvariantViolation(msg)
