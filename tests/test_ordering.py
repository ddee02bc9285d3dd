"""Tests for the ordering engine (engine/ordering.py)."""

from __future__ import annotations

from collections import defaultdict

import pytest

from gantt_tree.engine.ordering import OrderingEngine
from gantt_tree.errors import InvalidInputError
from gantt_tree.storage.collection import Collection


def _order(tasks: Collection, parent) -> list[str]:
    return [t["_id"] for t in tasks.find({"parent": parent}, sort=[("position", 1)])]


def _assert_contiguous(tasks: Collection) -> None:
    groups: dict = defaultdict(list)
    for t in tasks.find():
        groups[t["parent"]].append(t["position"])
    for parent, positions in groups.items():
        assert sorted(positions) == list(range(len(positions))), parent


@pytest.fixture
def tasks() -> Collection:
    c = Collection("tasks")
    c.insert({"_id": "P", "parent": 0, "position": 0})
    c.insert({"_id": "Q", "parent": 0, "position": 1})
    for pos, tid in enumerate(["A", "B", "C"]):
        c.insert({"_id": tid, "parent": "P", "position": pos})
    for pos, tid in enumerate(["X", "Y"]):
        c.insert({"_id": tid, "parent": "Q", "position": pos})
    return c


@pytest.fixture
def engine(tasks: Collection) -> OrderingEngine:
    return OrderingEngine(tasks)


class TestNextPosition:
    def test_after_last_child(self, engine: OrderingEngine) -> None:
        assert engine.next_position("P") == 3

    def test_empty_group_starts_at_zero(self, engine: OrderingEngine) -> None:
        assert engine.next_position("A") == 0

    def test_exclude(self, engine: OrderingEngine) -> None:
        assert engine.next_position("P", exclude="C") == 2


class TestInitialPosition:
    def test_last(self, tasks: Collection, engine: OrderingEngine) -> None:
        tasks.insert({"_id": "D", "parent": "P"})
        assert engine.set_initial_position("D", "last", "P") == 3
        assert _order(tasks, "P") == ["A", "B", "C", "D"]
        _assert_contiguous(tasks)

    @pytest.mark.parametrize("mode", ["first", "", None])
    def test_first_shifts_others(self, tasks: Collection, engine: OrderingEngine, mode) -> None:
        tasks.insert({"_id": "D", "parent": "P"})
        assert engine.set_initial_position("D", mode, "P") == 0
        assert _order(tasks, "P") == ["D", "A", "B", "C"]
        _assert_contiguous(tasks)

    def test_first_child_of_leaf(self, tasks: Collection, engine: OrderingEngine) -> None:
        tasks.insert({"_id": "D", "parent": "A"})
        engine.set_initial_position("D", "last", "A")
        assert tasks.find_one({"_id": "D"})["position"] == 0

    def test_unsupported_mode(self, tasks: Collection, engine: OrderingEngine) -> None:
        tasks.insert({"_id": "D", "parent": "P"})
        with pytest.raises(InvalidInputError, match="Unsupported position mode"):
            engine.set_initial_position("D", "middle", "P")
        assert [tasks.find_one({"_id": t})["position"] for t in "ABC"] == [0, 1, 2]
        assert "position" not in tasks.find_one({"_id": "D"})


class TestMove:
    def test_before_first_sibling(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("C", "before", target="A")
        assert _order(tasks, "P") == ["C", "A", "B"]
        _assert_contiguous(tasks)

    def test_last_same_parent(self, tasks: Collection, engine: OrderingEngine) -> None:
        assert engine.move("A", "last", parent="P") == 2
        assert _order(tasks, "P") == ["B", "C", "A"]
        _assert_contiguous(tasks)

    def test_last_with_same_parent_sentinel(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("A", "last")
        assert _order(tasks, "P") == ["B", "C", "A"]

    def test_after_next_sibling(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("A", "after", target="B")
        assert _order(tasks, "P") == ["B", "A", "C"]
        _assert_contiguous(tasks)

    def test_before_later_sibling(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("A", "before", target="C")
        assert _order(tasks, "P") == ["B", "A", "C"]
        _assert_contiguous(tasks)

    def test_first(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("B", "first")
        assert _order(tasks, "P") == ["B", "A", "C"]
        _assert_contiguous(tasks)

    def test_into_other_parent_before(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("B", "before", target="Y")
        assert _order(tasks, "P") == ["A", "C"]
        assert _order(tasks, "Q") == ["X", "B", "Y"]
        assert tasks.find_one({"_id": "B"})["parent"] == "Q"
        _assert_contiguous(tasks)

    def test_into_other_parent_last(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("A", "last", parent="Q")
        assert _order(tasks, "P") == ["B", "C"]
        assert _order(tasks, "Q") == ["X", "Y", "A"]
        _assert_contiguous(tasks)

    def test_into_empty_parent(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("C", "first", parent="X")
        assert _order(tasks, "X") == ["C"]
        assert tasks.find_one({"_id": "C"})["position"] == 0
        _assert_contiguous(tasks)

    def test_to_root(self, tasks: Collection, engine: OrderingEngine) -> None:
        engine.move("B", "last", parent="0")
        assert _order(tasks, 0) == ["P", "Q", "B"]
        _assert_contiguous(tasks)

    def test_noop_writes_nothing(self, tasks: Collection, engine: OrderingEngine) -> None:
        before = tasks.find()
        assert engine.move("A", "first") == 0
        assert engine.move("B", "after", target="A") == 1
        assert engine.move("C", "before", target="C") == 2
        assert tasks.find() == before

    def test_missing_task_is_noop(self, tasks: Collection, engine: OrderingEngine) -> None:
        before = tasks.find()
        assert engine.move("nope", "first") is None
        assert tasks.find() == before

    def test_unsupported_mode(self, engine: OrderingEngine) -> None:
        with pytest.raises(InvalidInputError, match="Unsupported position mode"):
            engine.move("A", "sideways")

    def test_unknown_target(self, tasks: Collection, engine: OrderingEngine) -> None:
        before = tasks.find()
        with pytest.raises(InvalidInputError, match="Unknown move target"):
            engine.move("A", "before", target="ghost")
        assert tasks.find() == before

    def test_missing_target(self, engine: OrderingEngine) -> None:
        with pytest.raises(InvalidInputError, match="needs a target"):
            engine.move("A", "after")

    def test_cannot_move_under_own_subtree(self, tasks: Collection, engine: OrderingEngine) -> None:
        before = tasks.find()
        with pytest.raises(InvalidInputError, match="own subtree"):
            engine.move("P", "last", parent="A")
        with pytest.raises(InvalidInputError, match="own subtree"):
            engine.move("P", "first", parent="P")
        assert tasks.find() == before

    def test_unknown_parent_is_rejected(self, tasks: Collection, engine: OrderingEngine) -> None:
        before = tasks.find()
        with pytest.raises(InvalidInputError, match="Unknown parent"):
            engine.move("C", "last", parent="nope")
        with pytest.raises(InvalidInputError, match="Unknown parent"):
            engine.move("C", "first", parent="nope")
        assert tasks.find() == before

    def test_every_permutation_keeps_groups_contiguous(self, tasks: Collection, engine: OrderingEngine) -> None:
        ids = ["A", "B", "C", "X", "Y"]
        for moved in ids:
            for target in ids:
                for mode in ("before", "after"):
                    engine.move(moved, mode, target=target)
                    _assert_contiguous(tasks)
            engine.move(moved, "first", parent="Q")
            _assert_contiguous(tasks)
            engine.move(moved, "last", parent="P")
            _assert_contiguous(tasks)


class TestReleaseSlot:
    def test_closes_gap(self, tasks: Collection, engine: OrderingEngine) -> None:
        tasks.remove({"_id": "A"})
        assert engine.release_slot("P", 0) == 2
        assert _order(tasks, "P") == ["B", "C"]
        _assert_contiguous(tasks)
