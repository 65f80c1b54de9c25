from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from flownote.models.conversation import LastMessageDocument
from flownote.schemas.chat import Conversation
from flownote.utils.dates import utcnow
from flownote.utils.documents import decode_document, decode_many


COLLECTION = "conversations"


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[COLLECTION]

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        doc = await self.collection.find_one({"_id": conversation_id})
        return decode_document(Conversation, COLLECTION, doc)

    async def create_if_absent(self, conversation_id: str, participants: List[str]) -> bool:
        """Upsert keyed on the derived id. Returns True only for the call that created it."""
        now = utcnow()
        try:
            result = await self.collection.update_one(
                {"_id": conversation_id},
                {
                    "$setOnInsert": {
                        "participants": sorted(participants),
                        "last_message": None,
                        "last_message_at": now,
                        "created_at": now,
                        "updated_at": now,
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # a concurrent first contact won the insert; same id, same document
            return False
        return result.upserted_id is not None

    async def update_last_message(self, conversation_id: str, last_message: LastMessageDocument, at: datetime) -> None:
        await self.collection.update_one(
            {"_id": conversation_id},
            {"$set": {"last_message": last_message, "last_message_at": at, "updated_at": at}},
        )

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        cursor = self.collection.find({"participants": user_id}).sort(
            [("last_message_at", DESCENDING), ("_id", DESCENDING)]
        )
        docs = await cursor.to_list(length=None)
        return decode_many(Conversation, COLLECTION, docs)
