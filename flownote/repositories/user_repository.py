import re
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from flownote.models.user import UserDocument
from flownote.schemas.user import UserInDB, UserPublic
from flownote.utils.dates import utcnow
from flownote.utils.documents import decode_document, decode_many


COLLECTION = "users"


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection(COLLECTION)

    async def create_user(
        self,
        email: str,
        hashed_password: str,
        name: str,
        role: str,
        school_id: Optional[str] = None,
    ) -> str:
        now = utcnow()
        # hex ObjectId strings never contain "_", which conversation ids rely on
        doc: UserDocument = {
            "_id": str(ObjectId()),
            "email": email,
            "hashed_password": hashed_password,
            "name": name,
            "role": role,
            "school_id": school_id,
            "fcm_tokens": [],
            "created_at": now,
            "updated_at": now,
        }
        result = await self._collection.insert_one(doc)
        return str(result.inserted_id)

    async def get_user_by_email(self, email: str) -> Optional[UserInDB]:
        doc = await self._collection.find_one({"email": email})
        return decode_document(UserInDB, COLLECTION, doc)

    async def get_user_by_id(self, user_id: str) -> Optional[UserInDB]:
        doc = await self._collection.find_one({"_id": user_id})
        return decode_document(UserInDB, COLLECTION, doc)

    async def get_users_by_ids(self, user_ids: List[str]) -> List[UserPublic]:
        if not user_ids:
            return []
        cursor = self._collection.find({"_id": {"$in": list(user_ids)}})
        found = {u.id: u for u in decode_many(UserPublic, COLLECTION, await cursor.to_list(length=len(user_ids)))}
        return [found[uid] for uid in user_ids if uid in found]

    async def search_by_name_prefix(
        self,
        prefix: str,
        school_id: Optional[str] = None,
        exclude_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[UserPublic]:
        query = {"name": {"$regex": f"^{re.escape(prefix)}"}}
        if school_id:
            query["school_id"] = school_id
        if exclude_id:
            query["_id"] = {"$ne": exclude_id}
        cursor = self._collection.find(query).sort("name", 1).limit(limit)
        return decode_many(UserPublic, COLLECTION, await cursor.to_list(length=limit))

    async def add_fcm_token(self, user_id: str, token: str) -> bool:
        result = await self._collection.update_one(
            {"_id": user_id},
            {"$addToSet": {"fcm_tokens": token}, "$set": {"updated_at": utcnow()}},
        )
        return result.matched_count > 0
