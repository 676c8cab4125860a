import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from pymongo.errors import InvalidName, ServerSelectionTimeoutError

from portal.db import (
    ConnectionState,
    InMemoryCollection,
    InMemoryDatabase,
    MongoCollection,
    MongoDatabase,
    create_database,
)
from portal.tests.support import make_settings


def _fake_client():
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.close = AsyncMock()
    database = MagicMock()
    database.name = "school_portal"
    client.get_default_database.return_value = database
    return client


class ConnectionStateTests(unittest.TestCase):
    def test_codes_and_labels(self):
        self.assertEqual(int(ConnectionState.DISCONNECTED), 0)
        self.assertEqual(int(ConnectionState.CONNECTED), 1)
        self.assertEqual(int(ConnectionState.CONNECTING), 2)
        self.assertEqual(ConnectionState.CONNECTING.label, "connecting")


class MongoDatabaseTests(unittest.IsolatedAsyncioTestCase):
    async def test_without_uri_stays_disconnected(self):
        database = MongoDatabase(None)
        with self.assertLogs("portal.db", level="WARNING"):
            await database.connect()
        self.assertIs(database.state, ConnectionState.DISCONNECTED)
        with self.assertRaises(RuntimeError):
            database.collection("news")

    @patch("portal.db.AsyncMongoClient")
    async def test_concurrent_connects_share_one_attempt(self, mock_client_cls):
        mock_client_cls.return_value = _fake_client()
        database = MongoDatabase("mongodb://db.example.test/portal")

        await asyncio.gather(database.connect(), database.connect(), database.connect())
        await database.connect()

        mock_client_cls.assert_called_once()
        self.assertIs(database.state, ConnectionState.CONNECTED)
        self.assertIsInstance(database.collection("news"), MongoCollection)

    @patch("portal.db.AsyncMongoClient")
    async def test_reports_connecting_while_pending(self, mock_client_cls):
        client = _fake_client()
        released = asyncio.Event()

        async def slow_ping(*args, **kwargs):
            await released.wait()
            return {"ok": 1}

        client.admin.command = AsyncMock(side_effect=slow_ping)
        mock_client_cls.return_value = client
        database = MongoDatabase("mongodb://db.example.test/portal")

        attempt = asyncio.create_task(database.connect())
        for _ in range(3):
            await asyncio.sleep(0)
        self.assertIs(database.state, ConnectionState.CONNECTING)

        released.set()
        await attempt
        self.assertIs(database.state, ConnectionState.CONNECTED)

    @patch("portal.db.AsyncMongoClient")
    async def test_failed_connect_is_logged_not_raised(self, mock_client_cls):
        client = _fake_client()
        client.admin.command = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no servers available")
        )
        mock_client_cls.return_value = client
        database = MongoDatabase("mongodb://db.example.test/portal")

        with self.assertLogs("portal.db", level="ERROR") as logs:
            await database.connect()
        self.assertIn("MongoDB connection failed", logs.output[0])
        self.assertIs(database.state, ConnectionState.DISCONNECTED)
        client.close.assert_awaited_once()

        # No retry.
        await database.connect()
        mock_client_cls.assert_called_once()

    @patch("portal.db.AsyncMongoClient")
    async def test_bad_database_name_is_a_failed_connect(self, mock_client_cls):
        client = _fake_client()
        client.get_default_database.side_effect = InvalidName(
            "database names cannot contain the character ' '"
        )
        mock_client_cls.return_value = client
        database = MongoDatabase("mongodb://db.example.test", db_name="school portal")

        with self.assertLogs("portal.db", level="ERROR"):
            await database.connect()
        self.assertIs(database.state, ConnectionState.DISCONNECTED)
        client.close.assert_awaited_once()

        await database.connect()
        self.assertIs(database.state, ConnectionState.DISCONNECTED)
        with self.assertRaises(RuntimeError):
            database.collection("news")

    @patch("portal.db.AsyncMongoClient")
    async def test_close(self, mock_client_cls):
        client = _fake_client()
        mock_client_cls.return_value = client
        database = MongoDatabase("mongodb://db.example.test/portal")
        await database.connect()

        await database.close()
        client.close.assert_awaited_once()
        self.assertIs(database.state, ConnectionState.DISCONNECTED)


class MongoCollectionTests(unittest.IsolatedAsyncioTestCase):
    async def test_invalid_ids_never_reach_the_driver(self):
        raw = MagicMock()
        collection = MongoCollection(raw)
        self.assertIsNone(await collection.get("not-an-object-id"))
        self.assertIsNone(await collection.update_one("nope", {"title": "x"}))
        self.assertFalse(await collection.delete_one("nope"))
        raw.find_one.assert_not_called()

    async def test_insert_exposes_string_id(self):
        raw = MagicMock()
        raw.insert_one = AsyncMock(
            return_value=MagicMock(inserted_id="65f000000000000000000001")
        )
        collection = MongoCollection(raw)
        document = await collection.insert_one({"title": "Sports day"})
        self.assertEqual(document, {"title": "Sports day", "id": "65f000000000000000000001"})


class InMemoryCollectionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.collection = InMemoryCollection()
        for rank, category in ((2, "a"), (1, "b"), (3, "a")):
            await self.collection.insert_one({"rank": rank, "category": category})

    async def test_find_filters_sorts_and_limits(self):
        docs = await self.collection.find({"category": "a"}, sort=[("rank", -1)])
        self.assertEqual([doc["rank"] for doc in docs], [3, 2])

        docs = await self.collection.find(sort=[("rank", 1)], limit=2)
        self.assertEqual([doc["rank"] for doc in docs], [1, 2])

    async def test_update_and_delete(self):
        doc = await self.collection.find_one({"rank": 1})
        updated = await self.collection.update_one(doc["id"], {"rank": 10})
        self.assertEqual(updated["rank"], 10)
        self.assertEqual((await self.collection.get(doc["id"]))["rank"], 10)

        self.assertTrue(await self.collection.delete_one(doc["id"]))
        self.assertFalse(await self.collection.delete_one(doc["id"]))
        self.assertIsNone(await self.collection.update_one(doc["id"], {"rank": 1}))

    async def test_returns_copies(self):
        doc = await self.collection.find_one({"rank": 2})
        doc["rank"] = 99
        self.assertEqual((await self.collection.get(doc["id"]))["rank"], 2)


class InMemoryDatabaseTests(unittest.IsolatedAsyncioTestCase):
    async def test_unreachable_database_stays_disconnected(self):
        database = InMemoryDatabase(reachable=False)
        await database.connect()
        self.assertIs(database.state, ConnectionState.DISCONNECTED)

    async def test_connect_is_idempotent(self):
        database = InMemoryDatabase()
        await database.connect()
        await database.connect()
        self.assertIs(database.state, ConnectionState.CONNECTED)
        self.assertIs(database.collection("news"), database.collection("news"))


class CreateDatabaseTests(unittest.TestCase):
    def test_in_memory_toggle(self):
        database = create_database(make_settings(use_in_memory_backends=True))
        self.assertIsInstance(database, InMemoryDatabase)

    def test_mongo_by_default(self):
        database = create_database(
            make_settings(mongodb_uri="mongodb://db.example.test", mongodb_db_name="x")
        )
        self.assertIsInstance(database, MongoDatabase)
        self.assertEqual(database.uri, "mongodb://db.example.test")
        self.assertEqual(database.db_name, "x")
        self.assertIs(database.state, ConnectionState.DISCONNECTED)


if __name__ == "__main__":
    unittest.main()
