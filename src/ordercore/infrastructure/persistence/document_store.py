"""Document store with optimistic, serializable transactions.

Collections of JSON-compatible documents keyed by ID.  Every document
carries a version that increases on each committed write.  A transaction
records the version of every document it reads (and the result set of
every query it runs); at commit it re-validates them under a short
store-wide lock and either applies all of its writes or none.

Committed state is optionally snapshotted to a JSON file so the data
survives restarts.  Several processes may share one file: commits take an
exclusive lock on a sidecar file and re-read the snapshot before
validating, so a transaction that read data another process has since
changed fails with a conflict instead of overwriting it.
"""

from __future__ import annotations

import copy
import fcntl
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from ordercore.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

FieldPath = tuple[str, ...]


class DocumentExistsError(Exception):
    """``create`` targeted a document that already exists."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document {collection}/{doc_id} already exists")
        self.collection = collection
        self.doc_id = doc_id


@dataclass
class _Record:
    version: int
    data: dict


@dataclass(frozen=True)
class _Write:
    kind: str  # "set" | "create" | "update" | "increment"
    collection: str
    doc_id: str
    data: dict | None = None
    path: FieldPath = ()
    delta: int = 0


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def _apply_write(current: dict | None, write: _Write) -> dict:
    """Return the document that results from applying *write* to *current*."""
    if write.kind in ("set", "create"):
        return copy.deepcopy(write.data)
    if current is None:
        raise EntityNotFoundError(
            f"Document {write.collection}/{write.doc_id} does not exist"
        )
    result = copy.deepcopy(current)
    if write.kind == "update":
        result.update(copy.deepcopy(write.data))
        return result
    # increment: walk to the parent of the leaf, creating nothing
    target = result
    for key in write.path[:-1]:
        target = target[key]
    leaf = write.path[-1]
    target[leaf] = target.get(leaf, 0) + write.delta
    return result


def _matches(data: dict, filters: dict[str, Any]) -> bool:
    return all(data.get(key) == value for key, value in filters.items())


class DocumentStore:

    def __init__(self, file_path: Path | None = None) -> None:
        self._file_path = file_path
        self._collections: dict[str, dict[str, _Record]] = {}
        self._lock = threading.Lock()
        if file_path is not None:
            self._load()

    def transaction(self) -> Transaction:
        if self._file_path is not None:
            # pick up commits made by other processes
            with self._lock:
                self._load()
        return Transaction(self)

    # --- Reads (used by transactions) -----------------------------------------

    def _read(self, collection: str, doc_id: str) -> tuple[int, dict | None]:
        with self._lock:
            record = self._collections.get(collection, {}).get(doc_id)
            if record is None:
                return 0, None
            return record.version, copy.deepcopy(record.data)

    def _query(
        self, collection: str, filters: dict[str, Any]
    ) -> list[tuple[str, int, dict]]:
        with self._lock:
            return self._query_locked(collection, filters)

    def _query_locked(
        self, collection: str, filters: dict[str, Any]
    ) -> list[tuple[str, int, dict]]:
        return [
            (doc_id, record.version, copy.deepcopy(record.data))
            for doc_id, record in self._collections.get(collection, {}).items()
            if _matches(record.data, filters)
        ]

    # --- Commit ---------------------------------------------------------------

    def _commit(self, tx: Transaction) -> None:
        with self._lock:
            if self._file_path is None:
                self._commit_locked(tx)
                return
            with self._file_lock():
                self._load()
                self._commit_locked(tx)

    def _commit_locked(self, tx: Transaction) -> None:
        self._validate_locked(tx)
        if not tx._writes:
            return

        staged: dict[tuple[str, str], dict] = {}
        for write in tx._writes:
            key = (write.collection, write.doc_id)
            if key in staged:
                current = staged[key]
            else:
                record = self._collections.get(write.collection, {}).get(write.doc_id)
                current = record.data if record else None
            if write.kind == "create" and current is not None:
                raise DocumentExistsError(write.collection, write.doc_id)
            staged[key] = _apply_write(current, write)

        updated = {name: dict(docs) for name, docs in self._collections.items()}
        for (collection, doc_id), data in staged.items():
            original = self._collections.get(collection, {}).get(doc_id)
            base_version = original.version if original else 0
            updated.setdefault(collection, {})[doc_id] = _Record(
                version=base_version + 1, data=data
            )

        if self._file_path is not None:
            self._persist(updated)
        self._collections = updated

    def _validate_locked(self, tx: Transaction) -> None:
        for (collection, doc_id), version in tx._read_versions.items():
            record = self._collections.get(collection, {}).get(doc_id)
            current = record.version if record else 0
            if current != version:
                logger.debug("Conflict on %s/%s (read v%s, now v%s)",
                             collection, doc_id, version, current)
                raise ConcurrencyConflictError(
                    f"Document {collection}/{doc_id} was modified concurrently"
                )
        for collection, filters, seen in tx._query_results:
            now = frozenset(
                (doc_id, version)
                for doc_id, version, _ in self._query_locked(collection, filters)
            )
            if now != seen:
                raise ConcurrencyConflictError(
                    f"Query on {collection} changed concurrently"
                )

    # --- File helpers ---------------------------------------------------------

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Exclusive lock on a sidecar file, held for a whole commit."""
        lock_path = self._file_path.with_name(self._file_path.name + ".lock")
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = open(lock_path, "w")
        except OSError as exc:
            raise StoreUnavailableError(
                f"Cannot lock store file {self._file_path}: {exc}"
            ) from exc
        with lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load(self) -> None:
        if not self._file_path.exists():
            return
        try:
            raw = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreUnavailableError(
                f"Cannot read store file {self._file_path}: {exc}"
            ) from exc
        self._collections = {
            name: {
                doc_id: _Record(version=entry["version"], data=entry["data"])
                for doc_id, entry in docs.items()
            }
            for name, docs in raw.get("collections", {}).items()
        }

    def _persist(self, collections: dict[str, dict[str, _Record]]) -> None:
        raw = {
            "collections": {
                name: {
                    doc_id: {"version": record.version, "data": record.data}
                    for doc_id, record in docs.items()
                }
                for name, docs in collections.items()
            }
        }
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._file_path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
            tmp_path.replace(self._file_path)
        except OSError as exc:
            raise StoreUnavailableError(
                f"Cannot write store file {self._file_path}: {exc}"
            ) from exc


class Transaction:
    """A single optimistic transaction against a DocumentStore.

    Reads are repeatable (the first read of a document is cached) and
    see this transaction's own pending writes.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._read_versions: dict[tuple[str, str], int] = {}
        self._snapshots: dict[tuple[str, str], dict | None] = {}
        self._query_results: list[tuple[str, dict[str, Any], frozenset]] = []
        self._writes: list[_Write] = []
        self._closed = False

    # --- Reads ----------------------------------------------------------------

    def get(self, collection: str, doc_id: str) -> dict | None:
        self._ensure_open()
        key = (collection, doc_id)
        if key not in self._snapshots:
            version, data = self._store._read(collection, doc_id)
            self._read_versions[key] = version
            self._snapshots[key] = data
        return self._overlay(collection, doc_id, self._snapshots[key])

    def query(self, collection: str, **filters: Any) -> list[tuple[str, dict]]:
        """Equality query on top-level fields."""
        self._ensure_open()
        rows = self._store._query(collection, filters)
        self._query_results.append(
            (collection, dict(filters), frozenset((doc_id, v) for doc_id, v, _ in rows))
        )
        results: dict[str, dict] = {}
        for doc_id, version, data in rows:
            key = (collection, doc_id)
            if key not in self._snapshots:
                self._read_versions[key] = version
                self._snapshots[key] = data
            merged = self._overlay(collection, doc_id, self._snapshots[key])
            if merged is not None and _matches(merged, filters):
                results[doc_id] = merged
        # documents written by this transaction that now match
        for write in list(self._writes):
            if write.collection != collection or write.doc_id in results:
                continue
            merged = self.get(collection, write.doc_id)
            if merged is not None and _matches(merged, filters):
                results[write.doc_id] = merged
        return list(results.items())

    # --- Writes (buffered until commit) ---------------------------------------

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._buffer(_Write("set", collection, doc_id, data=copy.deepcopy(data)))

    def create(self, collection: str, doc_id: str, data: dict) -> None:
        """Insert a document; commit fails if the ID is already taken."""
        self._buffer(_Write("create", collection, doc_id, data=copy.deepcopy(data)))

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        self._buffer(_Write("update", collection, doc_id, data=copy.deepcopy(fields)))

    def increment(self, collection: str, doc_id: str, path: FieldPath, delta: int) -> None:
        """Relative change applied to the committed value at commit time."""
        self._buffer(_Write("increment", collection, doc_id, path=tuple(path), delta=delta))

    # --- Lifecycle ------------------------------------------------------------

    def commit(self) -> None:
        self._ensure_open()
        try:
            self._store._commit(self)
        finally:
            self._closed = True

    def rollback(self) -> None:
        self._writes.clear()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Internal helpers -----------------------------------------------------

    def _buffer(self, write: _Write) -> None:
        self._ensure_open()
        self._writes.append(write)

    def _overlay(self, collection: str, doc_id: str, base: dict | None) -> dict | None:
        result = copy.deepcopy(base)
        for write in self._writes:
            if write.collection == collection and write.doc_id == doc_id:
                result = _apply_write(result, write)
        return result

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction is already closed")
