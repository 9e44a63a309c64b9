"""Tests for scenegraph.iter_mut module."""

import gc
from dataclasses import dataclass

import pytest

from scenegraph import (
    ROOT,
    BorrowError,
    NodeNotFound,
    SceneGraph,
    SceneGraphSettings,
)


@dataclass
class ConditionalNode:
    name: str
    condition: bool


def _always(_: object) -> bool:
    return True


class TestMutablePredicateIteration:
    """Test which nodes the pruned traversal visits."""

    def test_empty_graph_yields_nothing(self, settings: SceneGraphSettings) -> None:
        """Test that a graph with only a root yields nothing."""
        sg = SceneGraph("Root", settings=settings)

        assert next(sg.iterate_mutable_pruned(_always), None) is None

    def test_normal_iteration(self, settings: SceneGraphSettings) -> None:
        """Test preorder with siblings in attachment order."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach(ROOT, "First Child")
        second_child = sg.attach(ROOT, "Second Child")
        sg.attach(second_child, "First Grandchild")

        assert [pair.child for pair in sg.iterate_mutable_pruned(_always)] == [
            "First Child",
            "Second Child",
            "First Grandchild",
        ]

    def test_stagger_iteration(self, settings: SceneGraphSettings) -> None:
        """Test a chain of single children."""
        sg = SceneGraph("Root", settings=settings)
        child = sg.attach(ROOT, "First Child")
        sg.attach(child, "Second Child")

        assert [pair.child for pair in sg.iterate_mutable_pruned(_always)] == [
            "First Child",
            "Second Child",
        ]

    def test_single_iteration(self, settings: SceneGraphSettings) -> None:
        """Test a root with one child."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach(ROOT, "First Child")

        assert [pair.child for pair in sg.iterate_mutable_pruned(_always)] == ["First Child"]

    def test_pairs_carry_parent_values(self, settings: SceneGraphSettings) -> None:
        """Test that each pair exposes the child's actual parent."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        sg.attach(a, "a1")
        sg.attach(a, "a2")
        sg.attach_at_root("b")

        assert [(pair.parent, pair.child) for pair in sg.iter_mut()] == [
            ("Root", "a"),
            ("a", "a1"),
            ("a", "a2"),
            ("Root", "b"),
        ]

    def test_visits_none_when_root_does_not_match(self, settings: SceneGraphSettings) -> None:
        """Test that rejecting the root empties the traversal."""
        sg = SceneGraph(ConditionalNode("Root", False), settings=settings)
        c1 = sg.attach(ROOT, ConditionalNode("Child 1", True))
        sg.attach(c1, ConditionalNode("Child of child 1", True))
        sg.attach(ROOT, ConditionalNode("Child 2", True))

        assert sum(1 for _ in sg.iterate_mutable_pruned(lambda node: node.condition)) == 0

    def test_visits_only_matching_nodes(self, settings: SceneGraphSettings) -> None:
        """Test that a rejected node's subtree is pruned but its siblings are not."""
        sg = SceneGraph(ConditionalNode("Root", True), settings=settings)
        c1 = sg.attach(ROOT, ConditionalNode("Child 1", True))
        c2 = sg.attach(ROOT, ConditionalNode("Child 2", False))
        sg.attach(ROOT, ConditionalNode("Child 3", True))
        sg.attach(c1, ConditionalNode("Child of child 1", True))
        # Skipped because its parent is rejected
        sg.attach(c2, ConditionalNode("Child of child 2", True))

        names = [pair.child.name for pair in sg.iterate_mutable_pruned(lambda node: node.condition)]
        assert names == ["Child 1", "Child of child 1", "Child 3"]

    def test_rejected_last_child_keeps_earlier_siblings(
        self, settings: SceneGraphSettings
    ) -> None:
        """Test pruning of a trailing sibling."""
        sg = SceneGraph(ConditionalNode("Root", True), settings=settings)
        sg.attach_at_root(ConditionalNode("kept", True))
        dropped = sg.attach_at_root(ConditionalNode("dropped", False))
        sg.attach(dropped, ConditionalNode("hidden", True))

        names = [pair.child.name for pair in sg.iterate_mutable_pruned(lambda node: node.condition)]
        assert names == ["kept"]

    def test_root_predicate_not_called_without_children(
        self, settings: SceneGraphSettings
    ) -> None:
        """Test that the root is only tested once a child comes up."""
        calls: list[str] = []

        def predicate(value: str) -> bool:
            calls.append(value)
            return True

        sg = SceneGraph("Root", settings=settings)
        assert list(sg.iterate_mutable_pruned(predicate)) == []
        assert calls == []

    def test_root_predicate_evaluated_once(self, settings: SceneGraphSettings) -> None:
        """Test that the root is tested once however many children it has."""
        calls: list[str] = []

        def predicate(value: str) -> bool:
            calls.append(value)
            return True

        sg = SceneGraph("Root", settings=settings)
        for name in ("a", "b", "c"):
            sg.attach_at_root(name)
        for _ in sg.iterate_mutable_pruned(predicate):
            pass

        assert calls == ["Root", "a", "b", "c"]

    def test_matches_read_order_with_true_predicate(self, settings: SceneGraphSettings) -> None:
        """Test that an always-true predicate visits what the read iterator visits."""
        sg = SceneGraph("r", settings=settings)
        a = sg.attach_at_root("a")
        a1 = sg.attach(a, "a1")
        sg.attach(a1, "a11")
        sg.attach(a, "a2")
        b = sg.attach_at_root("b")
        sg.attach(b, "b1")

        read = [value for _, value in sg.iter()]
        mutable = [pair.child for pair in sg.iter_mut()]
        assert mutable == read

    def test_start_at_branch(self, settings: SceneGraphSettings) -> None:
        """Test traversing only the descendants of a branch."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        sg.attach(a, "a1")
        sg.attach(a, "a2")
        sg.attach_at_root("b")

        pairs = [(p.parent, p.child) for p in sg.iterate_mutable_pruned(_always, start=a)]
        assert pairs == [("a", "a1"), ("a", "a2")]

    def test_branch_start_is_not_tested(self, settings: SceneGraphSettings) -> None:
        """Test that a branch start yields its admitted descendants without being tested."""
        calls: list[str] = []

        def predicate(value: str) -> bool:
            calls.append(value)
            return value != "a"

        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        sg.attach(a, "a1")
        sg.attach(a, "a2")

        pairs = [(p.parent, p.child) for p in sg.iterate_mutable_pruned(predicate, start=a)]

        assert pairs == [("a", "a1"), ("a", "a2")]
        assert calls == ["a1", "a2"]

    def test_stale_start_raises(self, settings: SceneGraphSettings) -> None:
        """Test that a removed start node is rejected up front."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        sg.remove(a)

        with pytest.raises(NodeNotFound):
            sg.iterate_mutable_pruned(_always, start=a)
        # A failed start does not leave the graph borrowed.
        assert len(sg) == 0


class TestMutation:
    """Test writing through yielded pairs."""

    def test_replace_child_values(self, settings: SceneGraphSettings) -> None:
        """Test that assigning to pair.child updates the graph."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        b = sg.attach(a, "b")

        for pair in sg.iter_mut():
            pair.child = pair.child.upper()

        assert sg.get(a) == "A"
        assert sg.get(b) == "B"

    def test_replace_parent_and_child_together(self, settings: SceneGraphSettings) -> None:
        """Test mutating a node and its parent in the same step."""
        sg = SceneGraph(0, settings=settings)
        a = sg.attach_at_root(1)
        b = sg.attach(a, 10)

        for pair in sg.iter_mut():
            pair.parent += 1
            pair.child += pair.parent

        # Root: 0 -> 1; a: 1 + 1 = 2 then 2 -> 3 as parent of b; b: 10 + 3
        assert sg.root == 1
        assert sg.get(a) == 3
        assert sg.get(b) == 13

    def test_propagates_down_the_tree(self, settings: SceneGraphSettings) -> None:
        """Test accumulating parent values into children in preorder."""
        sg = SceneGraph(1, settings=settings)
        a = sg.attach_at_root(2)
        a1 = sg.attach(a, 3)
        b = sg.attach_at_root(4)

        for pair in sg.iter_mut():
            pair.child = pair.parent * pair.child

        assert [sg.get(i) for i in (a, a1, b)] == [2, 6, 4]

    def test_in_place_mutation_of_values(self, settings: SceneGraphSettings) -> None:
        """Test mutating mutable values without reassigning them."""
        sg = SceneGraph(ConditionalNode("Root", True), settings=settings)
        c1 = sg.attach_at_root(ConditionalNode("c1", True))
        c2 = sg.attach_at_root(ConditionalNode("c2", False))

        for pair in sg.iterate_mutable_pruned(lambda node: node.condition):
            pair.child.name += "!"

        assert sg.get(c1).name == "c1!"
        assert sg.get(c2).name == "c2"

    def test_pair_indices(self, settings: SceneGraphSettings) -> None:
        """Test that pairs report where they point."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        a1 = sg.attach(a, "a1")

        seen = [(pair.parent_index, pair.index) for pair in sg.iter_mut()]
        assert seen == [(ROOT, a), (a, a1)]


class TestExclusiveAccess:
    """Test that pairs and the graph are never shared across steps."""

    def test_previous_pair_released_on_advance(self, settings: SceneGraphSettings) -> None:
        """Test that advancing invalidates the previous pair."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        sg.attach_at_root("b")
        it = sg.iter_mut()

        first = next(it)
        assert first.child == "a"
        second = next(it)

        assert first.released
        assert not second.released
        with pytest.raises(BorrowError):
            _ = first.child
        with pytest.raises(BorrowError):
            first.parent = "x"
        assert second.child == "b"

    def test_last_pair_released_on_exhaustion(self, settings: SceneGraphSettings) -> None:
        """Test that collected pairs are all dead once the traversal ends."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")

        pairs = list(sg.iter_mut())

        assert len(pairs) == 1
        assert pairs[0].released
        with pytest.raises(BorrowError):
            _ = pairs[0].child

    def test_graph_locked_while_traversing(self, settings: SceneGraphSettings) -> None:
        """Test that the graph cannot be read or changed mid-traversal."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        it = sg.iter_mut()
        next(it)

        with pytest.raises(BorrowError):
            sg.get(a)
        with pytest.raises(BorrowError):
            sg.attach_at_root("b")
        with pytest.raises(BorrowError):
            sg.iterate_from(ROOT)
        with pytest.raises(BorrowError):
            sg.iter_mut()
        with pytest.raises(BorrowError):
            _ = sg.root

        it.close()
        assert sg.get(a) == "a"

    def test_read_iterator_blocked_while_traversing(self, settings: SceneGraphSettings) -> None:
        """Test that an existing read iterator cannot advance mid-traversal."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        reader = sg.iterate_from(ROOT)
        writer = sg.iter_mut()

        with pytest.raises(BorrowError):
            next(reader)

        writer.close()
        assert [value for _, value in reader] == ["a"]

    def test_released_after_exhaustion(self, settings: SceneGraphSettings) -> None:
        """Test that running out of pairs gives the graph back."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")

        for _ in sg.iter_mut():
            pass

        assert sg.attach_at_root("b") in sg

    def test_context_manager_releases_early(self, settings: SceneGraphSettings) -> None:
        """Test that leaving a with block gives the graph back."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        sg.attach_at_root("b")

        with sg.iter_mut() as it:
            pair = next(it)
            pair.child = "A"

        assert pair.released
        assert [value for _, value in sg] == ["A", "b"]

    def test_released_when_iterator_is_dropped(self, settings: SceneGraphSettings) -> None:
        """Test that an abandoned iterator does not keep the graph locked."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        sg.attach_at_root("b")

        it = sg.iter_mut()
        next(it)
        del it
        gc.collect()

        assert len(sg) == 2

    def test_pair_released_when_loop_breaks(self, settings: SceneGraphSettings) -> None:
        """Test that breaking out of a traversal kills the last pair it handed out."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")
        sg.attach_at_root("b")

        for pair in sg.iter_mut():
            first = pair
            break
        gc.collect()

        assert first.released
        it = sg.iter_mut()
        second = next(it)
        assert second.index == first.index == a
        second.child = "A"
        with pytest.raises(BorrowError):
            first.child = "x"
        with pytest.raises(BorrowError):
            _ = first.parent
        it.close()
        assert sg.get(a) == "A"

    def test_pair_released_when_iterator_is_dropped(self, settings: SceneGraphSettings) -> None:
        """Test that a dropped iterator's pair cannot write into a removed node."""
        sg = SceneGraph("Root", settings=settings)
        a = sg.attach_at_root("a")

        it = sg.iter_mut()
        pair = next(it)
        del it
        gc.collect()
        sg.remove(a)

        assert pair.released
        with pytest.raises(BorrowError):
            pair.child = "x"

    def test_failing_predicate_releases_graph(self, settings: SceneGraphSettings) -> None:
        """Test that an exception from the predicate gives the graph back."""

        def predicate(value: str) -> bool:
            if value == "b":
                msg = "bad value"
                raise ValueError(msg)
            return True

        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        sg.attach_at_root("b")
        it = sg.iterate_mutable_pruned(predicate)
        first = next(it)

        with pytest.raises(ValueError, match="bad value"):
            next(it)

        assert first.released
        assert len(sg) == 2
        assert list(it) == []

    def test_closed_iterator_is_exhausted(self, settings: SceneGraphSettings) -> None:
        """Test that a closed traversal yields nothing more."""
        sg = SceneGraph("Root", settings=settings)
        sg.attach_at_root("a")
        sg.attach_at_root("b")
        it = sg.iter_mut()
        next(it)
        it.close()

        assert list(it) == []
