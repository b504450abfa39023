"""Unit tests for level assignment."""

import random

from planscope.core.levels import assign_levels, level_index
from planscope.core.types import Edge


def edges(*pairs):
    return [Edge(source=s, target=t) for s, t in pairs]


class TestAssignLevels:
    def test_fan_in(self):
        """Two roots feeding one dependent form two levels."""
        levels, has_cycle = assign_levels(["C", "B", "A"], edges(("A", "C"), ("B", "C")))
        assert levels == [["A", "B"], ["C"]]
        assert has_cycle is False

    def test_two_node_cycle(self):
        """A cycle is flagged and its nodes form one trailing, sorted level."""
        levels, has_cycle = assign_levels(["B", "A"], edges(("A", "B"), ("B", "A")))
        assert has_cycle is True
        assert levels == [["A", "B"]]

    def test_cycle_after_acyclic_prefix(self):
        levels, has_cycle = assign_levels(
            ["root", "x", "y", "z"],
            edges(("root", "x"), ("x", "y"), ("y", "x"), ("y", "z")),
        )
        assert has_cycle is True
        assert levels[0] == ["root"]
        assert levels[-1] == ["x", "y", "z"]

    def test_every_node_appears_once(self):
        nodes = [f"n{i}" for i in range(12)]
        pairs = [("n0", "n3"), ("n1", "n3"), ("n3", "n7"), ("n7", "n3"), ("n2", "n11")]
        levels, _ = assign_levels(nodes, edges(*pairs))
        flat = [n for level in levels for n in level]
        assert sorted(flat) == sorted(nodes)
        assert len(flat) == len(set(flat))

    def test_edges_point_forward_when_acyclic(self):
        pairs = [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"), ("d", "e"), ("a", "e")]
        levels, has_cycle = assign_levels("abcde", edges(*pairs))
        index = level_index(levels)
        assert has_cycle is False
        for source, target in pairs:
            assert index[source] < index[target]

    def test_isolated_nodes_land_in_first_level(self):
        levels, _ = assign_levels(["solo", "b", "a"], edges(("a", "b")))
        assert levels[0] == ["a", "solo"]

    def test_unknown_endpoints_ignored(self):
        levels, has_cycle = assign_levels(["a"], edges(("ghost", "a")))
        assert levels == [["a"]]
        assert has_cycle is False

    def test_deterministic_under_input_order(self):
        nodes = ["a", "b", "c", "d", "e", "f"]
        pairs = [("a", "d"), ("b", "d"), ("c", "e"), ("d", "f"), ("e", "f")]
        expected = assign_levels(nodes, edges(*pairs))
        rng = random.Random(7)
        for _ in range(10):
            shuffled_nodes = nodes[:]
            shuffled_pairs = pairs[:]
            rng.shuffle(shuffled_nodes)
            rng.shuffle(shuffled_pairs)
            assert assign_levels(shuffled_nodes, edges(*shuffled_pairs)) == expected

    def test_empty(self):
        assert assign_levels([], []) == ([], False)
