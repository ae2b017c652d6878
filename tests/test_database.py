from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from database import (
    PRODUCTS,
    DocumentStore,
    ErrorKind,
    StoreError,
    classify_error,
    id_filter,
    serialize_doc,
)


@pytest.mark.parametrize(
    "exc,kind",
    [
        (OperationFailure("not authorized", code=13), ErrorKind.PERMISSION_DENIED),
        (OperationFailure("user is not allowed", code=8000), ErrorKind.PERMISSION_DENIED),
        (OperationFailure("bad query", code=2), ErrorKind.OTHER),
        (ServerSelectionTimeoutError("no servers"), ErrorKind.OFFLINE),
        (ValueError("boom"), ErrorKind.OTHER),
    ],
)
def test_classify_error(exc, kind):
    assert classify_error(exc) == kind


def test_offline_store_raises_offline():
    store = DocumentStore(None)
    assert store.online is False
    with pytest.raises(StoreError) as info:
        store.add(PRODUCTS, {"name": "x"})
    assert info.value.kind == ErrorKind.OFFLINE
    assert info.value.allows_local_fallback


def test_pymongo_errors_become_store_errors():
    db = MagicMock()
    db.__getitem__.return_value.insert_one.side_effect = OperationFailure("not authorized", code=13)
    store = DocumentStore(db)

    with pytest.raises(StoreError) as info:
        store.add(PRODUCTS, {"name": "x"})

    assert info.value.kind == ErrorKind.PERMISSION_DENIED


def test_update_of_missing_document_is_other_error():
    db = MagicMock()
    db.__getitem__.return_value.update_one.return_value.matched_count = 0
    store = DocumentStore(db)

    with pytest.raises(StoreError) as info:
        store.update(PRODUCTS, "p1", {"isPromoted": True})

    assert info.value.kind == ErrorKind.OTHER
    assert not info.value.allows_local_fallback


def test_find_serializes_ids_and_sorts():
    oid = ObjectId()
    db = MagicMock()
    cursor = db.__getitem__.return_value.find.return_value
    cursor.sort.return_value = [{"_id": oid, "name": "a"}]
    store = DocumentStore(db)

    docs = store.find(PRODUCTS, sort=("createdAt", -1))

    cursor.sort.assert_called_once_with("createdAt", -1)
    assert docs == [{"id": str(oid), "name": "a"}]


def test_id_filter_matches_generated_and_plain_ids():
    oid = ObjectId()
    assert id_filter(str(oid)) == {"_id": {"$in": [oid, str(oid)]}}
    assert id_filter("s1") == {"_id": "s1"}


def test_serialize_doc_keeps_empty():
    assert serialize_doc({}) == {}
