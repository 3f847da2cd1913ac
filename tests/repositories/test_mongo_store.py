"""
MongoDB Context Store Tests
Verifies the queries MongoContextStore issues, against a mocked Motor collection.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, OperationFailure

from src.errors import StoreError
from src.models.context import ConversationContext
from src.repositories.mongo_store import COLLECTION_NAME, MongoContextStore


pytestmark = pytest.mark.asyncio


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, upserted_id=None))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.create_index = AsyncMock()
    return collection


@pytest.fixture
def database(collection):
    database = MagicMock()
    database.__getitem__.return_value = collection
    database.command = AsyncMock(return_value={"ok": 1.0})
    return database


@pytest.fixture
def mongo_store(database):
    return MongoContextStore(database)


class TestMongoContextStore:
    """Test suite for MongoContextStore."""

    async def test_uses_contexts_collection(self, mongo_store, database):
        database.__getitem__.assert_called_with(COLLECTION_NAME)

    async def test_connect_creates_indexes(self, mongo_store, collection):
        await mongo_store.connect()

        names = [call.kwargs["name"] for call in collection.create_index.call_args_list]
        assert names == ["idx_session_id_unique", "idx_stage_updated"]
        assert collection.create_index.call_args_list[0].kwargs["unique"] is True

    async def test_get_converts_document(self, mongo_store, collection):
        collection.find_one.return_value = {
            "_id": "65a1b2c3d4e5f6a7b8c9d0e1",
            "session_id": "s-1",
            "email": "jane@acme.io",
            "legacy_field": "ignored",
        }

        context = await mongo_store.get("s-1")

        collection.find_one.assert_awaited_once_with({"session_id": "s-1"})
        assert isinstance(context, ConversationContext)
        assert context.id == "65a1b2c3d4e5f6a7b8c9d0e1"
        assert context.email == "jane@acme.io"

    async def test_get_missing(self, mongo_store):
        assert await mongo_store.get("unknown") is None

    async def test_store_upserts_with_set_on_insert(self, mongo_store, collection):
        await mongo_store.store("s-1", {"email": "jane@acme.io"})

        query, update = collection.update_one.call_args.args
        assert query == {"session_id": "s-1"}
        assert update["$set"]["email"] == "jane@acme.io"
        assert "updated_at" in update["$set"]
        assert update["$setOnInsert"]["session_id"] == "s-1"
        assert "email" not in update["$setOnInsert"]
        assert collection.update_one.call_args.kwargs["upsert"] is True

    async def test_store_retries_after_duplicate_key(self, mongo_store, collection):
        collection.update_one.side_effect = [DuplicateKeyError("dup"), MagicMock(matched_count=1)]

        await mongo_store.store("s-1", {"email": "jane@acme.io"})

        retry_update = collection.update_one.call_args_list[1].args[1]
        assert set(retry_update) == {"$set"}

    async def test_update_only_sets_patch_fields(self, mongo_store, collection):
        """A partial update never touches research fields"""
        await mongo_store.update("s-1", {"email": "new@x.com"})

        update = collection.update_one.call_args.args[1]
        assert set(update) == {"$set"}
        assert set(update["$set"]) == {"email", "updated_at"}
        assert "upsert" not in collection.update_one.call_args.kwargs

    async def test_ensure_reports_insert(self, mongo_store, collection):
        collection.update_one.return_value = MagicMock(upserted_id="new-id")
        assert await mongo_store.ensure("s-1", {"email": "jane@acme.io"}) is True

        update = collection.update_one.call_args.args[1]
        assert set(update) == {"$setOnInsert"}
        assert update["$setOnInsert"]["email"] == "jane@acme.io"

    async def test_ensure_existing(self, mongo_store, collection):
        collection.update_one.return_value = MagicMock(upserted_id=None)
        assert await mongo_store.ensure("s-1", {}) is False

    async def test_ensure_duplicate_key(self, mongo_store, collection):
        collection.update_one.side_effect = DuplicateKeyError("dup")
        assert await mongo_store.ensure("s-1", {}) is False

    async def test_driver_errors_become_store_errors(self, mongo_store, collection):
        collection.find_one.side_effect = OperationFailure("boom")
        collection.update_one.side_effect = OperationFailure("boom")

        with pytest.raises(StoreError) as exc_info:
            await mongo_store.get("s-1")
        assert exc_info.value.operation == "get"

        with pytest.raises(StoreError) as exc_info:
            await mongo_store.update("s-1", {"name": "Jane"})
        assert exc_info.value.operation == "update"

    async def test_delete(self, mongo_store, collection):
        assert await mongo_store.delete("s-1") is True
        collection.delete_one.return_value = MagicMock(deleted_count=0)
        assert await mongo_store.delete("s-1") is False

    async def test_ping(self, mongo_store, database):
        assert await mongo_store.ping() is True
        database.command.side_effect = OperationFailure("down")
        assert await mongo_store.ping() is False
