from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from flownote.models.message import MessageDocument
from flownote.schemas.chat import Message
from flownote.utils.dates import utcnow
from flownote.utils.documents import decode_document, decode_many


COLLECTION = "messages"


def _unread_filter(conversation_id: str, viewer_id: str) -> Dict[str, Any]:
    return {"conversation_id": conversation_id, "read_by": {"$nin": [viewer_id]}}


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[COLLECTION]

    async def insert(self, doc: MessageDocument) -> Message:
        await self.collection.insert_one(doc)
        return decode_document(Message, COLLECTION, doc)

    async def list_for_conversation(self, conversation_id: str) -> List[Message]:
        # created_at is the stored send time; _id breaks ties
        cursor = self.collection.find({"conversation_id": conversation_id}).sort(
            [("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        docs = await cursor.to_list(length=None)
        return decode_many(Message, COLLECTION, docs)

    async def count_unread(self, conversation_id: str, viewer_id: str) -> int:
        return await self.collection.count_documents(_unread_filter(conversation_id, viewer_id))

    async def count_unread_by_conversation(self, conversation_ids: List[str], viewer_id: str) -> Dict[str, int]:
        if not conversation_ids:
            return {}
        pipeline = [
            {"$match": {"conversation_id": {"$in": conversation_ids}, "read_by": {"$nin": [viewer_id]}}},
            {"$group": {"_id": "$conversation_id", "count": {"$sum": 1}}},
        ]
        counts = {cid: 0 for cid in conversation_ids}
        async for row in self.collection.aggregate(pipeline):
            counts[row["_id"]] = row["count"]
        return counts

    async def mark_read(self, conversation_id: str, viewer_id: str) -> int:
        result = await self.collection.update_many(
            _unread_filter(conversation_id, viewer_id),
            {"$addToSet": {"read_by": viewer_id}, "$set": {"is_read": True, "updated_at": utcnow()}},
        )
        return result.modified_count or 0
