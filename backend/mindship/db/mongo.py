# backend/mindship/db/mongo.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING

from mindship.core.config import settings

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient | None = None
db = None


async def connect_to_mongo():
    global client, db
    client = AsyncIOMotorClient(settings.MONGO_URI)
    db = client[settings.MONGO_DB_NAME]
    await ensure_indexes(db)
    logger.info("MongoDB connected (db=%s)", settings.MONGO_DB_NAME)


async def close_mongo_connection():
    global client, db
    if client:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    db = None


def get_db():
    if db is None:
        raise RuntimeError("MongoDB not initialized. Did you call connect_to_mongo()?")
    return db


async def ensure_indexes(database) -> None:
    """
    스트릭 계산은 세션별 최신 이벤트 N개 조회가 전부이므로
    (session_id, seq DESC) 인덱스 하나로 충분합니다.
    """
    await database["drift_events"].create_index(
        [("session_id", ASCENDING), ("seq", DESCENDING)], unique=True
    )
    await database["sessions"].create_index([("user_id", ASCENDING), ("state", ASCENDING)])
    await database["ai_conversations"].create_index(
        [("session_id", ASCENDING), ("created_at", ASCENDING)]
    )
