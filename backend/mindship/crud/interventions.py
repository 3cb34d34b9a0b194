# backend/mindship/crud/interventions.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from mindship.db.mongo import get_db
from mindship.models.intervention import ConversationMessage, InterventionRecordInDB


def get_interventions_collection():
    """
    Motor DB 핸들에서 ai_conversations 컬렉션을 가져옵니다.
    """
    return get_db()["ai_conversations"]


# CREATE
async def create_intervention_record(
    user_id: str,
    session_id: str,
    consecutive_drifts: int,
    message: str,
    delivered: bool,
    tts_success: bool,
    conversation_id: Optional[str],
    context: Dict[str, Any],
) -> str:
    now = datetime.now(timezone.utc)
    record = InterventionRecordInDB(
        id=str(uuid.uuid4()),
        user_id=user_id,
        session_id=session_id,
        messages=[
            ConversationMessage(
                role="system",
                content=f"Drift intervention triggered after {consecutive_drifts} consecutive minutes",
                timestamp=now,
            ),
            ConversationMessage(role="assistant", content=message, timestamp=now),
        ],
        delivered=delivered,
        tts_success=tts_success,
        conversation_id=conversation_id,
        context=context,
        created_at=now,
    )
    doc = record.model_dump(by_alias=True)
    await get_interventions_collection().insert_one(doc)
    return doc["_id"]


# READ MANY (오래된 순)
async def get_session_interventions(session_id: str, limit: int = 10) -> List[InterventionRecordInDB]:
    """
    대화형 서비스에 이전 턴으로 넘길 개입 기록. 최신 limit개를 시간순으로 반환합니다.
    """
    col = get_interventions_collection()
    cursor = col.find({"session_id": session_id}).sort("created_at", -1).limit(limit)
    docs = await cursor.to_list(length=limit)
    docs.reverse()
    return [InterventionRecordInDB(**d) for d in docs]
