"""
In-memory Firestore for local development and tests.

Implements the slice of the firebase_admin Firestore client that Civic Hub
uses: collections, document references, snapshots, where/order_by/limit
queries, write batches, and the SERVER_TIMESTAMP / ArrayUnion / ArrayRemove
/ Increment / DELETE_FIELD transforms.

Batches are all-or-nothing: every operation is applied to a scratch copy
and only swapped in when the whole batch succeeded. An update on a missing
document raises google.api_core NotFound, like the real client.

Every committed write stamps the document with a strictly increasing
update_time. write_option(last_update_time=...) turns an update into a
compare-and-swap that raises FailedPrecondition when the document moved on.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition, NotFound

logger = logging.getLogger(__name__)

_Documents = Dict[str, Dict[str, Any]]
_Operation = Tuple[str, "MockDocumentReference", Optional[Dict[str, Any]], bool, Optional["MockWriteOption"]]

_MISSING = object()


def _get_path(data: Dict[str, Any], field_path: str) -> Any:
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _resolve(current: Any, value: Any, now: datetime) -> Any:
    """Apply a Firestore transform (or plain value) on top of the stored value."""
    if value is firestore.SERVER_TIMESTAMP:
        return now
    if isinstance(value, firestore.ArrayUnion):
        merged = list(current) if isinstance(current, list) else []
        for item in value.values:
            if item not in merged:
                merged.append(copy.deepcopy(item))
        return merged
    if isinstance(value, firestore.ArrayRemove):
        existing = list(current) if isinstance(current, list) else []
        return [item for item in existing if item not in value.values]
    if isinstance(value, firestore.Increment):
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + value.value
    if isinstance(value, dict):
        return {key: _resolve(_MISSING, nested, now) for key, nested in value.items()}
    if isinstance(value, list):
        return [_resolve(_MISSING, item, now) for item in value]
    return copy.deepcopy(value)


def _set_path(data: Dict[str, Any], field_path: str, value: Any, now: datetime) -> None:
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    leaf = parts[-1]
    if value is firestore.DELETE_FIELD:
        target.pop(leaf, None)
        return
    target[leaf] = _resolve(target.get(leaf, _MISSING), value, now)


def _merge(target: Dict[str, Any], data: Dict[str, Any], now: datetime) -> None:
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value, now)
        elif value is firestore.DELETE_FIELD:
            target.pop(key, None)
        else:
            target[key] = _resolve(target.get(key, _MISSING), value, now)


def _matches(value: Any, op_string: str, expected: Any) -> bool:
    if value is _MISSING:
        return False
    try:
        if op_string == "==":
            return value == expected
        if op_string == "!=":
            return value != expected
        if op_string == "<":
            return value < expected
        if op_string == "<=":
            return value <= expected
        if op_string == ">":
            return value > expected
        if op_string == ">=":
            return value >= expected
        if op_string == "in":
            return value in expected
        if op_string == "not-in":
            return value not in expected
        if op_string == "array_contains":
            return isinstance(value, list) and expected in value
        if op_string == "array_contains_any":
            return isinstance(value, list) and any(item in value for item in expected)
    except TypeError:
        # Firestore never matches across value types
        return False
    raise ValueError(f"Unsupported operator: {op_string}")


class MockWriteOption:
    """Precondition for an update: the document's update_time must still match."""

    def __init__(self, last_update_time: Optional[datetime]):
        self.last_update_time = last_update_time


class MockDocumentSnapshot:
    def __init__(
        self,
        reference: "MockDocumentReference",
        data: Optional[Dict[str, Any]],
        update_time: Optional[datetime] = None
    ):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        if self._data is None:
            return None
        value = _get_path(self._data, field_path)
        if value is _MISSING:
            raise KeyError(field_path)
        return copy.deepcopy(value)


class MockDocumentReference:
    def __init__(self, store: "MockFirestore", collection_name: str, document_id: str):
        self._store = store
        self._collection = collection_name
        self.id = document_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        data, update_time = self._store._read(self._collection, self.id)
        return MockDocumentSnapshot(self, data, update_time)

    def set(self, document_data: Dict[str, Any], merge: bool = False) -> None:
        self._store._commit([("set", self, document_data, merge, None)])

    def update(self, field_updates: Dict[str, Any], option: Optional[MockWriteOption] = None) -> None:
        self._store._commit([("update", self, field_updates, False, option)])

    def delete(self) -> None:
        self._store._commit([("delete", self, None, False, None)])


class MockQuery:
    def __init__(
        self,
        store: "MockFirestore",
        collection_name: str,
        filters: Tuple[Tuple[str, str, Any], ...] = (),
        orders: Tuple[Tuple[str, str], ...] = (),
        limit_count: Optional[int] = None,
    ):
        self._store = store
        self._collection = collection_name
        self._filters = filters
        self._orders = orders
        self._limit = limit_count

    def _copy(self, **overrides) -> "MockQuery":
        params = {
            "filters": self._filters,
            "orders": self._orders,
            "limit_count": self._limit,
        }
        params.update(overrides)
        return MockQuery(self._store, self._collection, **params)

    def where(self, field_path=None, op_string=None, value=None, *, filter=None) -> "MockQuery":
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = firestore.Query.ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + ((field_path, direction),))

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        documents = self._store._snapshot(self._collection)
        rows = []
        for doc_id, data in documents.items():
            if all(_matches(_get_path(data, f), op, v) for f, op, v in self._filters):
                rows.append((doc_id, data))

        # Firestore drops documents missing an order_by field
        for field_path, _ in self._orders:
            rows = [row for row in rows if _get_path(row[1], field_path) is not _MISSING]
        for field_path, direction in reversed(self._orders):
            rows.sort(
                key=lambda row: _get_path(row[1], field_path),
                reverse=direction == firestore.Query.DESCENDING,
            )

        if self._limit is not None:
            rows = rows[: self._limit]

        for doc_id, data in rows:
            ref = MockDocumentReference(self._store, self._collection, doc_id)
            yield MockDocumentSnapshot(ref, copy.deepcopy(data), self._store._update_time(self._collection, doc_id))

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, store: "MockFirestore", collection_name: str):
        super().__init__(store, collection_name)
        self.id = collection_name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._store, self._collection, document_id or uuid.uuid4().hex[:20])

    def add(self, document_data: Dict[str, Any]) -> Tuple[datetime, MockDocumentReference]:
        ref = self.document()
        ref.set(document_data)
        return datetime.now(timezone.utc), ref


class MockWriteBatch:
    def __init__(self, store: "MockFirestore"):
        self._store = store
        self._operations: List[_Operation] = []

    def set(self, reference: MockDocumentReference, document_data: Dict[str, Any], merge: bool = False) -> None:
        self._operations.append(("set", reference, document_data, merge, None))

    def update(
        self,
        reference: MockDocumentReference,
        field_updates: Dict[str, Any],
        option: Optional[MockWriteOption] = None
    ) -> None:
        self._operations.append(("update", reference, field_updates, False, option))

    def delete(self, reference: MockDocumentReference) -> None:
        self._operations.append(("delete", reference, None, False, None))

    def commit(self) -> List[datetime]:
        self._store._commit(self._operations)
        committed_at = datetime.now(timezone.utc)
        return [committed_at for _ in self._operations]


class MockFirestore:
    """Thread-safe in-memory document store with optional JSON mirroring."""

    def __init__(self, path: Optional[str] = None):
        self._lock = threading.RLock()
        self._path = path
        self._collections: Dict[str, _Documents] = {}
        self._update_times: Dict[Tuple[str, str], datetime] = {}
        self._last_commit: Optional[datetime] = None
        if path and os.path.exists(path):
            self._load(path)

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in self._collections]

    def batch(self) -> MockWriteBatch:
        return MockWriteBatch(self)

    def write_option(self, last_update_time: Optional[datetime] = None) -> MockWriteOption:
        return MockWriteOption(last_update_time)

    def _read(self, collection_name: str, document_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[datetime]]:
        with self._lock:
            data = self._collections.get(collection_name, {}).get(document_id)
            if data is None:
                return None, None
            return copy.deepcopy(data), self._update_times.get((collection_name, document_id))

    def _update_time(self, collection_name: str, document_id: str) -> Optional[datetime]:
        with self._lock:
            return self._update_times.get((collection_name, document_id))

    def _snapshot(self, collection_name: str) -> _Documents:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection_name, {}))

    def _commit(self, operations: List[_Operation]) -> None:
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_commit is not None and now <= self._last_commit:
                now = self._last_commit + timedelta(microseconds=1)

            scratch = copy.deepcopy(self._collections)
            update_times = dict(self._update_times)
            for kind, ref, data, merge, option in operations:
                documents = scratch.setdefault(ref._collection, {})
                key = (ref._collection, ref.id)
                if kind == "delete":
                    documents.pop(ref.id, None)
                    update_times.pop(key, None)
                    continue
                if kind == "set":
                    target = documents.get(ref.id, {}) if merge else {}
                    _merge(target, data, now)
                    documents[ref.id] = target
                elif kind == "update":
                    if ref.id not in documents:
                        raise NotFound(f"No document to update: {ref.path}")
                    if option is not None and option.last_update_time != self._update_times.get(key):
                        raise FailedPrecondition(f"Document changed since it was read: {ref.path}")
                    for field_path, value in data.items():
                        _set_path(documents[ref.id], field_path, value, now)
                update_times[key] = now

            self._collections = scratch
            self._update_times = update_times
            self._last_commit = now
            if self._path:
                self._save(self._path)

    def _save(self, path: str) -> None:
        def encode(value):
            if isinstance(value, datetime):
                return {"__datetime__": value.isoformat()}
            raise TypeError(f"Cannot serialize {type(value).__name__}")

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._collections, f, default=encode, indent=2)

    def _load(self, path: str) -> None:
        def decode(obj):
            if set(obj) == {"__datetime__"}:
                return datetime.fromisoformat(obj["__datetime__"])
            return obj

        with open(path, "r", encoding="utf-8") as f:
            self._collections = json.load(f, object_hook=decode)
        logger.info(f"Loaded mock database from {path}")


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    return MockFirestore(path)
