import threading
from typing import Any, Dict, List, Optional, Tuple

import pytest

from database import PRODUCTS, SUPPLIERS, ORDERS, DocumentStore, ErrorKind, StoreError
from sync import AppState, SyncAdapter


class FakeStore(DocumentStore):
    """In-memory document store. `fail(op, kind)` makes an operation raise."""

    def __init__(self, online: bool = True):
        super().__init__(None)
        self._online = online
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {PRODUCTS: {}, SUPPLIERS: {}, ORDERS: {}}
        self.failures: Dict[str, ErrorKind] = {}
        self.calls: List[Tuple[str, str]] = []
        self._next_id = 0
        self.changes: Dict[str, List[Dict[str, Any]]] = {c: [] for c in self.collections}
        self.drained = {c: threading.Event() for c in self.collections}

    @property
    def online(self) -> bool:
        return self._online

    def fail(self, op: str, kind: ErrorKind) -> None:
        self.failures[op] = kind

    def heal(self) -> None:
        self.failures.clear()

    def _check(self, op: str, collection: str = "") -> None:
        self.calls.append((op, collection))
        kind = self.failures.get(op) or self.failures.get("*")
        if kind is not None:
            raise StoreError(kind, f"{op} refused")

    def ping(self) -> None:
        self._check("ping")

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        self._check("add", collection)
        self._next_id += 1
        doc_id = f"doc{self._next_id}"
        self.collections[collection][doc_id] = dict(data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._check("set", collection)
        self.collections[collection][doc_id] = dict(data)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._check("update", collection)
        if doc_id not in self.collections[collection]:
            raise StoreError(ErrorKind.OTHER, f"{collection}/{doc_id} not found")
        self.collections[collection][doc_id].update(fields)

    def delete(self, collection: str, doc_id: str) -> None:
        self._check("delete", collection)
        self.collections[collection].pop(doc_id, None)

    def find(self, collection: str, sort: Optional[Tuple[str, int]] = None) -> List[Dict[str, Any]]:
        self._check("find", collection)
        docs = [{"id": k, **v} for k, v in list(self.collections[collection].items())]
        if sort:
            key, direction = sort
            docs.sort(key=lambda d: d.get(key, 0), reverse=direction < 0)
        return docs

    def watch(self, collection: str):
        self._check("watch", collection)
        for change in self.changes[collection]:
            yield change
        self.drained[collection].set()


def product_doc(**overrides) -> Dict[str, Any]:
    doc = {
        "name": "Sac de riz 25kg",
        "description": "Riz parfumé importé",
        "price": 18000,
        "category": "Alimentation",
        "supplierId": "s2",
        "supplierName": "BioFerme Direct",
        "imageUrl": "",
        "tags": ["riz"],
        "createdAt": 1000,
        "isPromoted": False,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def state():
    return AppState()


@pytest.fixture
def adapter(store, state):
    return SyncAdapter(store, state, watch=False)


@pytest.fixture
def local_adapter(store, state):
    """Adapter whose store refuses everything, loaded with the seed datasets."""
    store.fail("*", ErrorKind.PERMISSION_DENIED)
    adapter = SyncAdapter(store, state, watch=False)
    adapter.open_subscriptions()
    return adapter
