"""Tests for the optimistic DocumentStore."""

import json

import pytest

from ordercore.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    StoreUnavailableError,
)
from ordercore.infrastructure.persistence.document_store import (
    DocumentExistsError,
    DocumentStore,
)


def _store_with(collection: str = "items", doc_id: str = "a", data: dict | None = None) -> DocumentStore:
    store = DocumentStore()
    tx = store.transaction()
    tx.set(collection, doc_id, data or {"count": 1})
    tx.commit()
    return store


def _read(store: DocumentStore, collection: str, doc_id: str) -> dict | None:
    tx = store.transaction()
    try:
        return tx.get(collection, doc_id)
    finally:
        tx.rollback()


class TestReadsAndWrites:

    def test_committed_write_is_visible(self):
        store = _store_with(data={"count": 3})
        assert _read(store, "items", "a") == {"count": 3}

    def test_missing_document_reads_as_none(self):
        assert _read(DocumentStore(), "items", "nope") is None

    def test_writes_invisible_until_commit(self):
        store = _store_with()
        tx = store.transaction()
        tx.update("items", "a", {"count": 99})
        assert _read(store, "items", "a") == {"count": 1}
        tx.commit()
        assert _read(store, "items", "a") == {"count": 99}

    def test_transaction_reads_its_own_writes(self):
        store = _store_with()
        tx = store.transaction()
        tx.increment("items", "a", ("count",), 4)
        assert tx.get("items", "a") == {"count": 5}
        tx.rollback()

    def test_rollback_discards_writes(self):
        store = _store_with()
        tx = store.transaction()
        tx.update("items", "a", {"count": 50})
        tx.rollback()
        assert _read(store, "items", "a") == {"count": 1}

    def test_nested_increment(self):
        store = _store_with(data={"variants": {"v1": {"stock": 5}}})
        tx = store.transaction()
        tx.increment("items", "a", ("variants", "v1", "stock"), -2)
        tx.commit()
        assert _read(store, "items", "a")["variants"]["v1"]["stock"] == 3

    def test_update_of_missing_document_fails(self):
        tx = DocumentStore().transaction()
        with pytest.raises(EntityNotFoundError):
            tx.update("items", "ghost", {"x": 1})
            tx.commit()

    def test_closed_transaction_rejects_use(self):
        tx = DocumentStore().transaction()
        tx.commit()
        with pytest.raises(RuntimeError, match="closed"):
            tx.get("items", "a")

    def test_returned_documents_are_copies(self):
        store = _store_with(data={"tags": ["x"]})
        doc = _read(store, "items", "a")
        doc["tags"].append("mutated")
        assert _read(store, "items", "a") == {"tags": ["x"]}


class TestQueries:

    def test_equality_filter(self):
        store = DocumentStore()
        tx = store.transaction()
        tx.set("users", "1", {"role": "admin"})
        tx.set("users", "2", {"role": "customer"})
        tx.commit()

        tx = store.transaction()
        assert [doc_id for doc_id, _ in tx.query("users", role="admin")] == ["1"]

    def test_query_sees_pending_writes(self):
        store = DocumentStore()
        tx = store.transaction()
        tx.create("users", "1", {"role": "admin"})
        assert [doc_id for doc_id, _ in tx.query("users", role="admin")] == ["1"]


class TestConflicts:

    def test_stale_read_conflicts(self):
        store = _store_with()
        first = store.transaction()
        second = store.transaction()
        first.get("items", "a")
        second.get("items", "a")

        first.increment("items", "a", ("count",), 1)
        first.commit()
        second.increment("items", "a", ("count",), 1)
        with pytest.raises(ConcurrencyConflictError):
            second.commit()
        assert _read(store, "items", "a") == {"count": 2}

    def test_conflicting_commit_applies_nothing(self):
        store = _store_with()
        stale = store.transaction()
        stale.get("items", "a")

        writer = store.transaction()
        writer.update("items", "a", {"count": 10})
        writer.commit()

        stale.set("items", "b", {"count": 7})
        stale.update("items", "a", {"count": 0})
        with pytest.raises(ConcurrencyConflictError):
            stale.commit()
        assert _read(store, "items", "b") is None
        assert _read(store, "items", "a") == {"count": 10}

    def test_phantom_in_query_result_conflicts(self):
        store = DocumentStore()
        reader = store.transaction()
        assert reader.query("usage", userId="u1") == []

        writer = store.transaction()
        writer.create("usage", "x", {"userId": "u1"})
        writer.commit()

        reader.set("counters", "c", {"n": 1})
        with pytest.raises(ConcurrencyConflictError, match="Query"):
            reader.commit()

    def test_blind_writes_do_not_conflict(self):
        store = _store_with()
        first = store.transaction()
        second = store.transaction()
        first.increment("items", "a", ("count",), 1)
        second.increment("items", "a", ("count",), 1)
        first.commit()
        second.commit()
        assert _read(store, "items", "a") == {"count": 3}

    def test_create_of_existing_document_fails(self):
        store = _store_with()
        tx = store.transaction()
        tx.create("items", "a", {"count": 0})
        with pytest.raises(DocumentExistsError) as exc_info:
            tx.commit()
        assert exc_info.value.collection == "items"
        assert _read(store, "items", "a") == {"count": 1}


class TestPersistence:

    def test_state_survives_reload(self, tmp_path):
        path = tmp_path / "store.json"
        store = DocumentStore(path)
        tx = store.transaction()
        tx.set("items", "a", {"count": 2})
        tx.commit()

        reloaded = DocumentStore(path)
        assert _read(reloaded, "items", "a") == {"count": 2}

    def test_versions_survive_reload(self, tmp_path):
        path = tmp_path / "store.json"
        store = DocumentStore(path)
        for value in (1, 2):
            tx = store.transaction()
            tx.set("items", "a", {"count": value})
            tx.commit()
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["collections"]["items"]["a"]["version"] == 2

    def test_missing_file_starts_empty(self, tmp_path):
        store = DocumentStore(tmp_path / "nothing-here.json")
        assert _read(store, "items", "a") is None

    def test_corrupt_file_is_unavailable(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreUnavailableError):
            DocumentStore(path)

    def test_write_failure_is_unavailable_and_nothing_applies(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = DocumentStore(blocker / "store.json")

        tx = store.transaction()
        tx.set("items", "a", {"count": 1})
        with pytest.raises(StoreUnavailableError):
            tx.commit()
        assert _read(store, "items", "a") is None


class TestSharedFile:

    def test_stale_instance_conflicts_instead_of_overwriting(self, tmp_path):
        path = tmp_path / "store.json"
        first = DocumentStore(path)
        second = DocumentStore(path)
        initial = first.transaction()
        initial.set("items", "a", {"count": 1})
        initial.commit()

        stale = second.transaction()
        assert stale.get("items", "a") == {"count": 1}

        writer = first.transaction()
        writer.get("items", "a")
        writer.increment("items", "a", ("count",), -1)
        writer.commit()

        stale.increment("items", "a", ("count",), -1)
        with pytest.raises(ConcurrencyConflictError):
            stale.commit()
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["collections"]["items"]["a"]["data"] == {"count": 0}

    def test_new_transaction_sees_other_instance_commits(self, tmp_path):
        path = tmp_path / "store.json"
        first = DocumentStore(path)
        second = DocumentStore(path)

        tx = first.transaction()
        tx.set("items", "a", {"count": 5})
        tx.commit()

        assert _read(second, "items", "a") == {"count": 5}

    def test_commits_from_both_instances_are_kept(self, tmp_path):
        path = tmp_path / "store.json"
        first = DocumentStore(path)
        second = DocumentStore(path)
        for store, doc_id in ((first, "a"), (second, "b"), (first, "c")):
            tx = store.transaction()
            tx.create("orders", doc_id, {"n": doc_id})
            tx.commit()

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert sorted(raw["collections"]["orders"]) == ["a", "b", "c"]
