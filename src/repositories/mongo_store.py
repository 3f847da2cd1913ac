"""
MongoDB Context Store
Motor-backed persistence for ConversationContext.
"""
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.errors import StoreError
from src.models.base import utc_now
from src.models.context import ConversationContext
from src.repositories.context_store import ContextPatch, ContextStore, normalize_patch
from src.utils.observability import logger

COLLECTION_NAME = "conversation_contexts"


def _insert_defaults(session_id: str, exclude: ContextPatch) -> Dict[str, Any]:
    """Fresh-record fields for $setOnInsert, minus anything the $set half writes."""
    fresh = ConversationContext(session_id=session_id).model_dump(exclude={"id", "updated_at"})
    return {key: value for key, value in fresh.items() if key not in exclude}


class MongoContextStore(ContextStore):
    """
    One document per session in `conversation_contexts`, unique on session_id.

    Partial writes use $set so fields absent from a patch are never touched;
    record creation uses $setOnInsert upserts so concurrent creators converge.
    """

    def __init__(self, database: AsyncIOMotorDatabase, collection_name: str = COLLECTION_NAME):
        self.database = database
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.collection_name = collection_name

    async def connect(self) -> None:
        await self.collection.create_index("session_id", unique=True, name="idx_session_id_unique")
        await self.collection.create_index(
            [("stage", 1), ("updated_at", -1)],
            name="idx_stage_updated"
        )
        logger.info(f"Indexes ready on {self.collection_name}")

    async def ping(self) -> bool:
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def get(self, session_id: str) -> Optional[ConversationContext]:
        try:
            doc = await self.collection.find_one({"session_id": session_id})
        except PyMongoError as e:
            raise StoreError("get", session_id, e) from e

        if doc is None:
            return None
        return self._to_model(doc)

    async def store(self, session_id: str, partial: ContextPatch) -> None:
        patch = normalize_patch(partial)
        now = utc_now()
        update = {
            "$set": {**patch, "updated_at": now},
            "$setOnInsert": _insert_defaults(session_id, patch),
        }
        try:
            try:
                await self.collection.update_one({"session_id": session_id}, update, upsert=True)
            except DuplicateKeyError:
                # Lost the insert race; the record exists now, so merge into it
                await self.collection.update_one(
                    {"session_id": session_id},
                    {"$set": update["$set"]},
                )
        except PyMongoError as e:
            raise StoreError("store", session_id, e) from e

        logger.debug(f"Stored context fields {sorted(patch)} for session {session_id}")

    async def update(self, session_id: str, patch: ContextPatch) -> None:
        normalized = normalize_patch(patch)
        try:
            result = await self.collection.update_one(
                {"session_id": session_id},
                {"$set": {**normalized, "updated_at": utc_now()}},
            )
        except PyMongoError as e:
            raise StoreError("update", session_id, e) from e

        if result.matched_count == 0:
            logger.debug(f"Update skipped, no context for session {session_id}")

    async def ensure(self, session_id: str, defaults: ContextPatch) -> bool:
        patch = normalize_patch(defaults)
        fields = {**_insert_defaults(session_id, {}), **patch, "updated_at": utc_now()}
        try:
            result = await self.collection.update_one(
                {"session_id": session_id},
                {"$setOnInsert": fields},
                upsert=True,
            )
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise StoreError("ensure", session_id, e) from e

        return result.upserted_id is not None

    async def delete(self, session_id: str) -> bool:
        try:
            result = await self.collection.delete_one({"session_id": session_id})
        except PyMongoError as e:
            raise StoreError("delete", session_id, e) from e
        return result.deleted_count > 0

    def _to_model(self, doc: Dict[str, Any]) -> ConversationContext:
        """
        Convert a MongoDB document to a ConversationContext.
        ObjectIds become strings and unknown keys are dropped.
        """
        if "_id" in doc:
            doc["_id"] = str(doc["_id"])

        model_fields = ConversationContext.model_fields.keys()
        cleaned_doc = {
            k: v for k, v in doc.items()
            if k in model_fields or k == "_id"
        }
        return ConversationContext.model_validate(cleaned_doc)
