"""
Mock Firestore for local development and tests.

Implements the subset of the Firestore client API that the services use:
``collection().document().set/create/update/get/delete`` and
``where/order_by/limit/stream`` queries. Data lives in memory and, when a
path is given, is mirrored to a JSON file so it survives restarts.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists, NotFound

logger = logging.getLogger(__name__)

_DATETIME_TAG = "__datetime__"
_MISSING = object()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    resolved = {}
    for key, value in data.items():
        if value is firestore.SERVER_TIMESTAMP:
            value = _now()
        elif isinstance(value, dict):
            value = _resolve_sentinels(value)
        resolved[key] = value
    return resolved


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    if isinstance(value, date):
        return value.isoformat()
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {_DATETIME_TAG}:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Firestore orders values by type first; None sorts before everything else
    if value is None or value is _MISSING:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    if isinstance(value, str):
        return (4, value)
    return (5, str(value))


def _matches(field_value: Any, op: str, value: Any) -> bool:
    if op == "==":
        return field_value is not _MISSING and field_value == value
    if op == "!=":
        return field_value is not _MISSING and field_value != value
    if op == "in":
        return field_value is not _MISSING and field_value in value
    if op == "not-in":
        return field_value is not _MISSING and field_value not in value
    if op == "array_contains":
        return isinstance(field_value, list) and value in field_value
    if op == "array_contains_any":
        return isinstance(field_value, list) and any(v in field_value for v in value)
    if field_value is _MISSING or field_value is None:
        return False
    try:
        if op == "<":
            return field_value < value
        if op == "<=":
            return field_value <= value
        if op == ">":
            return field_value > value
        if op == ">=":
            return field_value >= value
    except TypeError:
        return False
    raise ValueError(f"Unsupported operator: {op}")


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        return (self._data or {}).get(field_path)


class MockDocumentReference:
    def __init__(self, store: "MockFirestore", collection: str, doc_id: str):
        self._store = store
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        with self._store.lock:
            data = self._store.collection_data(self._collection).get(self.id)
            return MockDocumentSnapshot(self, copy.deepcopy(data))

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        with self._store.lock:
            docs = self._store.collection_data(self._collection)
            resolved = copy.deepcopy(_resolve_sentinels(data))
            if merge and self.id in docs:
                docs[self.id].update(resolved)
            else:
                docs[self.id] = resolved
            self._store.persist()

    def create(self, data: Dict[str, Any]) -> None:
        with self._store.lock:
            docs = self._store.collection_data(self._collection)
            if self.id in docs:
                raise AlreadyExists(f"Document already exists: {self.path}")
            docs[self.id] = copy.deepcopy(_resolve_sentinels(data))
            self._store.persist()

    def update(self, data: Dict[str, Any]) -> None:
        with self._store.lock:
            docs = self._store.collection_data(self._collection)
            if self.id not in docs:
                raise NotFound(f"No document to update: {self.path}")
            for key, value in _resolve_sentinels(data).items():
                if value is firestore.DELETE_FIELD:
                    docs[self.id].pop(key, None)
                else:
                    docs[self.id][key] = copy.deepcopy(value)
            self._store.persist()

    def delete(self) -> None:
        with self._store.lock:
            self._store.collection_data(self._collection).pop(self.id, None)
            self._store.persist()


class MockQuery:
    def __init__(self, store: "MockFirestore", collection: str,
                 filters: Optional[List[Tuple[str, str, Any]]] = None,
                 orders: Optional[List[Tuple[str, str]]] = None,
                 limit_count: Optional[int] = None):
        self._store = store
        self._collection = collection
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit_count

    def _copy(self, **changes) -> "MockQuery":
        params = {
            "filters": list(self._filters),
            "orders": list(self._orders),
            "limit_count": self._limit,
        }
        params.update(changes)
        return MockQuery(self._store, self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> "MockQuery":
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        with self._store.lock:
            items = list(self._store.collection_data(self._collection).items())

        results = []
        for doc_id, data in items:
            if all(_matches(data.get(field, _MISSING), op, value) for field, op, value in self._filters):
                results.append((doc_id, data))

        for field, direction in reversed(self._orders):
            results.sort(
                key=lambda item: _sort_key(item[1].get(field, _MISSING)),
                reverse=str(direction).upper() == "DESCENDING",
            )

        if self._limit is not None:
            results = results[: self._limit]

        for doc_id, data in results:
            ref = MockDocumentReference(self._store, self._collection, doc_id)
            yield MockDocumentSnapshot(ref, copy.deepcopy(data))

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollectionReference(MockQuery):
    def __init__(self, store: "MockFirestore", name: str):
        super().__init__(store, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._store, self._collection, document_id or uuid.uuid4().hex[:20])


class MockFirestore:
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = _decode(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load mock DB from %s: %s", self.path, e)
            self._data = {}

    def persist(self) -> None:
        if not self.path:
            return
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(_encode(self._data), f, indent=2)

    def collection_data(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(name, {})

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self.lock:
            return [MockCollectionReference(self, name) for name in self._data]

    def clear(self) -> None:
        with self.lock:
            self._data = {}
            self.persist()


_mock_db: Optional[MockFirestore] = None


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    global _mock_db
    if _mock_db is None or _mock_db.path != path:
        _mock_db = MockFirestore(path)
    return _mock_db
