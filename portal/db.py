"""
Database abstraction for MongoDB and an in-memory test implementation.

One handle is created per process and shared by every router. The handle
exposes its readiness through ``state`` and hands out collections.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from enum import IntEnum
from typing import Any, Dict, Optional, Protocol

from bson import ObjectId
from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from portal.config import Settings

logger = logging.getLogger(__name__)

SortSpec = list[tuple[str, int]]


class ConnectionState(IntEnum):
    """Readiness of the database handle, using the driver's numeric codes."""

    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class Collection(Protocol):
    """Operations the routers need from a document collection."""

    async def find(
        self,
        filter: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: int = 0,
    ) -> list[dict]:
        ...

    async def find_one(self, filter: dict) -> Optional[dict]:
        ...

    async def get(self, document_id: str) -> Optional[dict]:
        ...

    async def insert_one(self, document: dict) -> dict:
        ...

    async def update_one(self, document_id: str, changes: dict) -> Optional[dict]:
        ...

    async def delete_one(self, document_id: str) -> bool:
        ...


class Database(Protocol):
    """Interface of the shared connection handle."""

    state: ConnectionState

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    def collection(self, name: str) -> Collection:
        ...


def _to_document(raw: dict) -> dict:
    document = dict(raw)
    object_id = document.pop("_id", None)
    if object_id is not None:
        document["id"] = str(object_id)
    return document


def _object_id(document_id: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(document_id):
        return None
    return ObjectId(document_id)


class MongoCollection:
    """Collection backed by a pymongo async collection."""

    def __init__(self, collection):
        self._collection = collection

    async def find(
        self,
        filter: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: int = 0,
    ) -> list[dict]:
        cursor = self._collection.find(filter or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [_to_document(doc) async for doc in cursor]

    async def find_one(self, filter: dict) -> Optional[dict]:
        doc = await self._collection.find_one(filter)
        return _to_document(doc) if doc else None

    async def get(self, document_id: str) -> Optional[dict]:
        object_id = _object_id(document_id)
        if object_id is None:
            return None
        return await self.find_one({"_id": object_id})

    async def insert_one(self, document: dict) -> dict:
        doc = dict(document)
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _to_document(doc)

    async def update_one(self, document_id: str, changes: dict) -> Optional[dict]:
        object_id = _object_id(document_id)
        if object_id is None:
            return None
        doc = await self._collection.find_one_and_update(
            {"_id": object_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return _to_document(doc) if doc else None

    async def delete_one(self, document_id: str) -> bool:
        object_id = _object_id(document_id)
        if object_id is None:
            return False
        result = await self._collection.delete_one({"_id": object_id})
        return result.deleted_count == 1


class MongoDatabase:
    """
    Shared MongoDB handle.

    ``connect`` may be called any number of times, concurrently or not: the
    first call starts the attempt and every other call waits on that same
    attempt. A failed attempt is logged and leaves the handle disconnected;
    it is not retried.
    """

    def __init__(
        self,
        uri: Optional[str],
        db_name: str = "school_portal",
        timeout_ms: int = 5000,
    ):
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self.state = ConnectionState.DISCONNECTED
        self._client: Optional[AsyncMongoClient] = None
        self._db = None
        self._pending: Optional[asyncio.Future] = None

    async def connect(self) -> None:
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._establish())
        await asyncio.shield(self._pending)

    async def _establish(self) -> None:
        if not self.uri:
            logger.warning("MONGODB_URI is not set; running without a database")
            return

        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to MongoDB...")
        client: Optional[AsyncMongoClient] = None
        try:
            client = AsyncMongoClient(
                self.uri, serverSelectionTimeoutMS=self.timeout_ms, tz_aware=True
            )
            await client.admin.command("ping")
            db = client.get_default_database(default=self.db_name)
        except PyMongoError as exc:
            logger.error("MongoDB connection failed: %s", exc)
            self.state = ConnectionState.DISCONNECTED
            if client is not None:
                await client.close()
            return

        self._client = client
        self._db = db
        self.state = ConnectionState.CONNECTED
        logger.info("MongoDB connected: %s", self._db.name)

    async def close(self) -> None:
        if self._client is None:
            return
        self.state = ConnectionState.DISCONNECTING
        await self._client.close()
        self._client = None
        self._db = None
        self.state = ConnectionState.DISCONNECTED

    def collection(self, name: str) -> MongoCollection:
        if self._db is None:
            raise RuntimeError("Database is not connected. Call connect() first.")
        return MongoCollection(self._db[name])


def _sort_key(field: str):
    def key(doc: dict) -> tuple[bool, Any]:
        value = doc.get(field)
        return (value is None, value)

    return key


class InMemoryCollection:
    """Simple in-memory collection for development and tests."""

    def __init__(self):
        self.documents: Dict[str, dict] = {}

    @staticmethod
    def _matches(doc: dict, filter: Optional[dict]) -> bool:
        return all(doc.get(field) == value for field, value in (filter or {}).items())

    async def find(
        self,
        filter: Optional[dict] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: int = 0,
    ) -> list[dict]:
        docs = [
            copy.deepcopy(doc)
            for doc in self.documents.values()
            if self._matches(doc, filter)
        ]
        for field, direction in reversed(sort or []):
            docs.sort(key=_sort_key(field), reverse=direction < 0)
        if limit:
            docs = docs[:limit]
        return docs

    async def find_one(self, filter: dict) -> Optional[dict]:
        for doc in self.documents.values():
            if self._matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def get(self, document_id: str) -> Optional[dict]:
        doc = self.documents.get(document_id)
        return copy.deepcopy(doc) if doc else None

    async def insert_one(self, document: dict) -> dict:
        doc = copy.deepcopy(document)
        doc["id"] = uuid.uuid4().hex
        self.documents[doc["id"]] = doc
        return copy.deepcopy(doc)

    async def update_one(self, document_id: str, changes: dict) -> Optional[dict]:
        doc = self.documents.get(document_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(changes))
        return copy.deepcopy(doc)

    async def delete_one(self, document_id: str) -> bool:
        return self.documents.pop(document_id, None) is not None


class InMemoryDatabase:
    """In-memory stand-in for the MongoDB handle."""

    def __init__(
        self,
        state: ConnectionState = ConnectionState.DISCONNECTED,
        reachable: bool = True,
    ):
        self.state = state
        self.reachable = reachable
        self.connect_calls = 0
        self.collections: Dict[str, InMemoryCollection] = {}

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.state is ConnectionState.CONNECTED:
            return
        if not self.reachable:
            logger.error("MongoDB connection failed: in-memory database unreachable")
            self.state = ConnectionState.DISCONNECTED
            return
        self.state = ConnectionState.CONNECTED

    async def close(self) -> None:
        self.state = ConnectionState.DISCONNECTED

    def collection(self, name: str) -> InMemoryCollection:
        if name not in self.collections:
            self.collections[name] = InMemoryCollection()
        return self.collections[name]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


def create_database(settings: Settings) -> Database:
    """Build the process-wide database handle from settings."""
    if settings.use_in_memory_backends:
        return InMemoryDatabase()
    return MongoDatabase(
        settings.mongodb_uri,
        db_name=settings.mongodb_db_name,
        timeout_ms=settings.mongodb_timeout_ms,
    )
