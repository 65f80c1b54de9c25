from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from flownote.models.prints import PrintDocument
from flownote.schemas.prints import Print
from flownote.utils.dates import utcnow
from flownote.utils.documents import decode_document, decode_many


COLLECTION = "prints"


class PrintRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[COLLECTION]

    async def insert(self, doc: PrintDocument) -> Print:
        await self.collection.insert_one(doc)
        return decode_document(Print, COLLECTION, doc)

    async def get(self, print_id: str) -> Optional[Print]:
        doc = await self.collection.find_one({"_id": print_id})
        return decode_document(Print, COLLECTION, doc)

    async def list_for_school(self, school_id: str, category: Optional[str] = None, limit: int = 50) -> List[Print]:
        query: Dict[str, Any] = {"school_id": school_id}
        if category:
            query["category"] = category
        cursor = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        return decode_many(Print, COLLECTION, await cursor.to_list(length=limit))

    async def update_fields(self, print_id: str, fields: Dict[str, Any]) -> Optional[Print]:
        if fields:
            await self.collection.update_one({"_id": print_id}, {"$set": {**fields, "updated_at": utcnow()}})
        return await self.get(print_id)

    async def delete(self, print_id: str) -> bool:
        result = await self.collection.delete_one({"_id": print_id})
        return result.deleted_count > 0

    async def categories(self, school_id: str) -> List[str]:
        values = await self.collection.distinct("category", {"school_id": school_id})
        return sorted(v for v in values if v)
