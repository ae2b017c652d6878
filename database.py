"""
Document store access for the MongoDB database configured through
DATABASE_URL / DATABASE_NAME.

Every pymongo failure leaves this module as a StoreError whose `kind` says
whether the caller may fall back to local state.
"""
import os
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from bson import ObjectId
from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
)

logger = logging.getLogger(__name__)

PRODUCTS = "products"
SUPPLIERS = "Fournisseurs"
ORDERS = "Commandes"

# Unauthorized, AuthenticationFailed, Atlas "user is not allowed"
PERMISSION_DENIED_CODES = {13, 18, 8000}


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    OFFLINE = "offline"
    OTHER = "other"


class StoreError(Exception):
    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def allows_local_fallback(self) -> bool:
        return self.kind in (ErrorKind.PERMISSION_DENIED, ErrorKind.OFFLINE)


def classify_error(exc: Exception) -> ErrorKind:
    if isinstance(exc, OperationFailure):
        if exc.code in PERMISSION_DENIED_CODES:
            return ErrorKind.PERMISSION_DENIED
        return ErrorKind.OTHER
    if isinstance(exc, (ConnectionFailure, ConfigurationError)):
        return ErrorKind.OFFLINE
    return ErrorKind.OTHER


@contextmanager
def translate_errors(action: str):
    try:
        yield
    except PyMongoError as e:
        kind = classify_error(e)
        raise StoreError(kind, f"{action}: {e}") from e
    except BSONError as e:
        raise StoreError(ErrorKind.OTHER, f"{action}: {e}") from e


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = doc.copy()
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def id_filter(doc_id: str) -> Dict[str, Any]:
    # Generated ids are ObjectIds, seeded and local ids are plain strings
    if ObjectId.is_valid(doc_id):
        return {"_id": {"$in": [ObjectId(doc_id), doc_id]}}
    return {"_id": doc_id}


class DocumentStore:
    """Thin CRUD layer over a pymongo database.

    A store built without a database is offline: every call raises
    StoreError(OFFLINE).
    """

    def __init__(self, database=None):
        self.db = database

    @property
    def online(self) -> bool:
        return self.db is not None

    def _collection(self, name: str):
        if self.db is None:
            raise StoreError(ErrorKind.OFFLINE, "Database not configured")
        return self.db[name]

    def ping(self) -> None:
        if self.db is None:
            raise StoreError(ErrorKind.OFFLINE, "Database not configured")
        with translate_errors("ping"):
            self.db.command("ping")

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        coll = self._collection(collection)
        with translate_errors(f"insert into {collection}"):
            result = coll.insert_one(dict(data))
        return str(result.inserted_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        coll = self._collection(collection)
        with translate_errors(f"set {collection}/{doc_id}"):
            coll.replace_one({"_id": doc_id}, dict(data), upsert=True)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        coll = self._collection(collection)
        with translate_errors(f"update {collection}/{doc_id}"):
            res = coll.update_one(id_filter(doc_id), {"$set": fields})
        if res.matched_count == 0:
            raise StoreError(ErrorKind.OTHER, f"{collection}/{doc_id} not found")

    def delete(self, collection: str, doc_id: str) -> None:
        coll = self._collection(collection)
        with translate_errors(f"delete {collection}/{doc_id}"):
            coll.delete_one(id_filter(doc_id))

    def find(self, collection: str, sort: Optional[Tuple[str, int]] = None) -> List[Dict[str, Any]]:
        coll = self._collection(collection)
        with translate_errors(f"query {collection}"):
            cursor = coll.find({})
            if sort:
                cursor = cursor.sort(*sort)
            return [serialize_doc(d) for d in cursor]

    def watch(self, collection: str) -> Iterator[Dict[str, Any]]:
        """Change events for a collection. Errors surface while iterating."""
        coll = self._collection(collection)
        with translate_errors(f"watch {collection}"):
            with coll.watch() as stream:
                for change in stream:
                    yield change


def connect() -> DocumentStore:
    url = os.getenv("DATABASE_URL")
    name = os.getenv("DATABASE_NAME")
    if not url or not name:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running in local mode")
        return DocumentStore(None)
    try:
        client = MongoClient(url, serverSelectionTimeoutMS=int(os.getenv("DATABASE_TIMEOUT_MS", "5000")))
    except PyMongoError as e:
        logger.warning("Could not create database client (%s), running in local mode", e)
        return DocumentStore(None)
    return DocumentStore(client[name])
