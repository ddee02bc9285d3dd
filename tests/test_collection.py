"""Tests for the document collection (storage/collection.py)."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from gantt_tree.errors import StoreError
from gantt_tree.storage.collection import Collection, matches, sort_docs


@pytest.fixture
def coll() -> Collection:
    c = Collection("tasks")
    c.insert({"_id": "a", "parent": 0, "position": 0, "text": "A"})
    c.insert({"_id": "b", "parent": 0, "position": 1, "text": "B"})
    c.insert({"_id": "c", "parent": "a", "position": 0, "text": "C"})
    return c


@pytest.fixture
def file_coll(tmp_path: Path) -> Collection:
    return Collection("tasks", tmp_path / "tasks.yaml", tmp_path / "tasks.lock")


# ---------------------------------------------------------------------------
# Query language
# ---------------------------------------------------------------------------

class TestMatches:
    def test_equality_is_type_strict(self) -> None:
        assert matches({"parent": 0}, {"parent": 0})
        assert not matches({"parent": "0"}, {"parent": 0})

    def test_comparisons(self) -> None:
        doc = {"position": 3}
        assert matches(doc, {"position": {"$gt": 2}})
        assert matches(doc, {"position": {"$gte": 3}})
        assert not matches(doc, {"position": {"$lt": 3}})
        assert matches(doc, {"position": {"$lte": 3, "$gt": 0}})
        assert not matches({}, {"position": {"$gt": -1}})
        assert not matches({"position": "x"}, {"position": {"$gt": 1}})

    def test_ne_in_nin(self) -> None:
        assert matches({"_id": "a"}, {"_id": {"$ne": "b"}})
        assert matches({}, {"_id": {"$ne": "b"}})
        assert matches({"t": 1}, {"t": {"$in": [1, 2]}})
        assert matches({"t": 3}, {"t": {"$nin": [1, 2]}})

    def test_or_and(self) -> None:
        doc = {"source": "x", "target": "y"}
        assert matches(doc, {"$or": [{"source": "z"}, {"target": "y"}]})
        assert not matches(doc, {"$and": [{"source": "x"}, {"target": "z"}]})

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValueError, match="Unknown query operator"):
            matches({"a": 1}, {"a": {"$regex": "x"}})


class TestSort:
    def test_multi_key_and_mixed_types(self) -> None:
        docs = [
            {"_id": "1", "position": 1, "parent": "p"},
            {"_id": "2", "position": 0, "parent": "p"},
            {"_id": "3", "position": 0, "parent": 0},
            {"_id": "4", "position": 1, "parent": 0},
        ]
        out = sort_docs(docs, [("position", 1), ("parent", 1)])
        assert [d["_id"] for d in out] == ["3", "2", "4", "1"]

    def test_descending(self) -> None:
        docs = [{"position": 0}, {"position": 2}, {"position": 1}]
        assert [d["position"] for d in sort_docs(docs, [("position", -1)])] == [2, 1, 0]


# ---------------------------------------------------------------------------
# Collection operations
# ---------------------------------------------------------------------------

class TestCollection:
    def test_insert_assigns_id(self) -> None:
        c = Collection("links")
        doc = c.insert({"source": "a"})
        assert isinstance(doc["_id"], str) and len(doc["_id"]) == 16
        assert c.count() == 1

    def test_duplicate_id_raises(self, coll: Collection) -> None:
        with pytest.raises(StoreError, match="duplicate"):
            coll.insert({"_id": "a"})

    def test_find_returns_copies(self, coll: Collection) -> None:
        found = coll.find_one({"_id": "a"})
        assert found is not None
        found["text"] = "changed"
        assert coll.find_one({"_id": "a"})["text"] == "A"

    def test_find_sort_limit(self, coll: Collection) -> None:
        out = coll.find({"parent": 0}, sort=[("position", -1)], limit=1)
        assert [d["_id"] for d in out] == ["b"]

    def test_update_single_vs_multi(self, coll: Collection) -> None:
        assert coll.update({"parent": 0}, {"$inc": {"position": 10}}) == 1
        assert coll.update({"parent": 0}, {"$inc": {"position": 10}}, multi=True) == 2
        positions = sorted(d["position"] for d in coll.find({"parent": 0}))
        assert positions == [11, 20]

    def test_update_missing_is_noop(self, coll: Collection) -> None:
        assert coll.update({"_id": "nope"}, {"$set": {"text": "x"}}) == 0

    def test_set_never_changes_id(self, coll: Collection) -> None:
        coll.update({"_id": "a"}, {"$set": {"_id": "z", "text": "AA"}})
        assert coll.find_one({"_id": "a"})["text"] == "AA"
        assert coll.find_one({"_id": "z"}) is None

    def test_max_only_raises(self) -> None:
        c = Collection("tasks")
        c.insert({"_id": "t", "duration": 5, "progress": 0.3})
        c.insert({"_id": "u", "duration": "7"})
        c.insert({"_id": "v"})
        c.update({}, {"$max": {"duration": 1, "progress": 0}}, multi=True)
        assert c.find_one({"_id": "t"}) == {"_id": "t", "duration": 5, "progress": 0.3}
        assert c.find_one({"_id": "u"})["duration"] == "7"
        assert c.find_one({"_id": "v"}) == {"_id": "v", "duration": 1, "progress": 0}

    def test_bad_patch_leaves_records_untouched(self, coll: Collection) -> None:
        with pytest.raises(ValueError):
            coll.update({"_id": "a"}, {"$set": {"text": "x"}, "$inc": {"text": 1}})
        assert coll.find_one({"_id": "a"})["text"] == "A"

    def test_remove_single_vs_multi(self, coll: Collection) -> None:
        assert coll.remove({"parent": 0}) == 1
        assert coll.count() == 2
        assert coll.remove({}, multi=True) == 2
        assert coll.count() == 0
        assert coll.remove({"_id": "a"}) == 0

    def test_transaction_rolls_back(self, coll: Collection) -> None:
        with pytest.raises(RuntimeError):
            with coll.transaction():
                coll.update({"parent": 0}, {"$inc": {"position": 1}}, multi=True)
                coll.remove({"_id": "c"})
                raise RuntimeError("boom")
        assert coll.count() == 3
        assert sorted(d["position"] for d in coll.find({"parent": 0})) == [0, 1]

    def test_nested_transaction_rollback_keeps_outer_changes(self, coll: Collection) -> None:
        with coll.transaction():
            coll.update({"_id": "a"}, {"$set": {"text": "outer"}})
            with pytest.raises(RuntimeError):
                with coll.transaction():
                    coll.update({"_id": "b"}, {"$set": {"text": "inner"}})
                    raise RuntimeError("boom")
        assert coll.find_one({"_id": "a"})["text"] == "outer"
        assert coll.find_one({"_id": "b"})["text"] == "B"


class TestFileBackedCollection:
    def test_persists_between_instances(self, file_coll: Collection, tmp_path: Path) -> None:
        file_coll.insert({"_id": "t1", "text": "Saved"})
        other = Collection("tasks", tmp_path / "tasks.yaml", tmp_path / "tasks.lock")
        assert other.find_one({"_id": "t1"})["text"] == "Saved"

        raw = yaml.safe_load((tmp_path / "tasks.yaml").read_text(encoding="utf-8"))
        assert raw["version"] == 1
        assert raw["tasks"] == [{"_id": "t1", "text": "Saved"}]

    def test_transaction_saves_once_on_success(self, file_coll: Collection, tmp_path: Path) -> None:
        with file_coll.transaction():
            file_coll.insert({"_id": "t1"})
            file_coll.insert({"_id": "t2"})
            assert not (tmp_path / "tasks.yaml").exists()
        assert file_coll.count() == 2

    def test_failed_transaction_writes_nothing(self, file_coll: Collection) -> None:
        file_coll.insert({"_id": "t1", "position": 0})
        with pytest.raises(RuntimeError):
            with file_coll.transaction():
                file_coll.update({"_id": "t1"}, {"$set": {"position": 5}})
                raise RuntimeError("boom")
        assert file_coll.find_one({"_id": "t1"})["position"] == 0

    def test_corrupt_file_raises_store_error(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.yaml"
        path.write_text("tasks: [unclosed\n", encoding="utf-8")
        c = Collection("tasks", path)
        with pytest.raises(StoreError):
            c.find()

    def test_wrong_shape_raises_store_error(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.yaml"
        path.write_text("tasks: 3\n", encoding="utf-8")
        with pytest.raises(StoreError, match="must be a list"):
            Collection("tasks", path).count()
