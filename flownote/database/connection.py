import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from flownote import config


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def connect_to_mongo() -> None:
    global _client
    _client = AsyncIOMotorClient(config.MONGO_URL)
    logger.info("Connected to MongoDB database %s", config.MONGO_DB_NAME)
    await ensure_indexes(_client[config.MONGO_DB_NAME])


async def close_mongo_connection() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")


def get_database() -> AsyncIOMotorDatabase:
    if _client is None:
        raise RuntimeError("MongoDB client is not connected")
    return _client[config.MONGO_DB_NAME]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db["users"].create_index([("email", ASCENDING)], unique=True)
    await db["users"].create_index([("school_id", ASCENDING), ("name", ASCENDING)])
    await db["conversations"].create_index([("participants", ASCENDING), ("last_message_at", DESCENDING)])
    await db["messages"].create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])
    await db["messages"].create_index([("conversation_id", ASCENDING), ("read_by", ASCENDING)])
    await db["prints"].create_index([("school_id", ASCENDING), ("category", ASCENDING), ("created_at", DESCENDING)])
    await db["events"].create_index([("school_id", ASCENDING), ("date", ASCENDING)])
