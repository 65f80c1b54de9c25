from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from flownote.models.event import EventDocument
from flownote.schemas.events import Event
from flownote.utils.dates import utcnow
from flownote.utils.documents import decode_document, decode_many


COLLECTION = "events"


class EventRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[COLLECTION]

    async def insert(self, doc: EventDocument) -> Event:
        await self.collection.insert_one(doc)
        return decode_document(Event, COLLECTION, doc)

    async def get(self, event_id: str) -> Optional[Event]:
        doc = await self.collection.find_one({"_id": event_id})
        return decode_document(Event, COLLECTION, doc)

    async def find_in_range(
        self,
        school_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        descending: bool = False,
        limit: int = 0,
    ) -> List[Event]:
        query: Dict[str, Any] = {"school_id": school_id}
        date_filter: Dict[str, datetime] = {}
        if start is not None:
            date_filter["$gte"] = start
        if end is not None:
            date_filter["$lte"] = end
        if date_filter:
            query["date"] = date_filter
        direction = DESCENDING if descending else ASCENDING
        cursor = self.collection.find(query).sort([("date", direction), ("_id", direction)])
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=limit or None)
        return decode_many(Event, COLLECTION, docs)

    async def update_fields(self, event_id: str, fields: Dict[str, Any]) -> Optional[Event]:
        if fields:
            await self.collection.update_one({"_id": event_id}, {"$set": {**fields, "updated_at": utcnow()}})
        return await self.get(event_id)

    async def delete(self, event_id: str) -> bool:
        result = await self.collection.delete_one({"_id": event_id})
        return result.deleted_count > 0
