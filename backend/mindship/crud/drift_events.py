# backend/mindship/crud/drift_events.py

from datetime import datetime, timedelta, timezone
from typing import List, Optional
import uuid

from mindship.db.mongo import get_db
from mindship.models.drift_event import DriftEventInDB
from mindship.schemas.drift_event import DriftEventRead


def get_drift_events_collection():
    return get_db()["drift_events"]


def serialize_drift_event(doc) -> DriftEventRead:
    return DriftEventRead(
        id=str(doc["_id"]),
        session_id=doc["session_id"],
        user_id=doc["user_id"],
        seq=doc["seq"],
        is_drifting=doc["is_drifting"],
        drift_reason=doc.get("drift_reason") or "",
        actual_task=doc.get("actual_task") or "",
        user_mood=doc.get("user_mood"),
        mood_reason=doc.get("mood_reason"),
        verdict_source=doc.get("verdict_source", "classifier"),
        intervention_triggered=doc.get("intervention_triggered", False),
        created_at=doc["created_at"],
    )


# CREATE
async def create_drift_event(
    session_id: str,
    user_id: str,
    seq: int,
    is_drifting: bool,
    drift_reason: str,
    actual_task: str,
    user_mood: Optional[str] = None,
    mood_reason: Optional[str] = None,
    verdict_source: str = "classifier",
) -> DriftEventRead:
    """
    하트비트 1회분 분류 결과를 추가합니다. intervention_triggered 는 항상 false로 시작.
    - _id는 uuid 문자열로 통일
    """
    events = get_drift_events_collection()

    doc = DriftEventInDB(
        id=str(uuid.uuid4()),
        session_id=session_id,
        user_id=user_id,
        seq=seq,
        is_drifting=is_drifting,
        drift_reason=drift_reason,
        actual_task=actual_task,
        user_mood=user_mood,
        mood_reason=mood_reason,
        verdict_source=verdict_source,
        intervention_triggered=False,
        created_at=datetime.now(timezone.utc),
    ).model_dump(by_alias=True)

    await events.insert_one(doc)
    return serialize_drift_event(doc)


# READ MANY (최신순)
async def get_recent_events(
    session_id: str,
    limit: int = 5,
    drifting_only: bool = False,
) -> List[DriftEventRead]:
    events = get_drift_events_collection()

    query = {"session_id": session_id}
    if drifting_only:
        query["is_drifting"] = True

    safe_limit = max(1, min(limit, 1000))
    cursor = events.find(query).sort("seq", -1).limit(safe_limit)
    docs = await cursor.to_list(length=safe_limit)
    return [serialize_drift_event(d) for d in docs]


# ---------- 개입 플래그 (조건부 갱신) ----------

async def claim_for_intervention(event_id: str, lease_seconds: int) -> bool:
    """
    개입 발송 전 이벤트를 점유합니다.
    플래그가 false 이고 유효한 점유가 없을 때만 성공하므로,
    겹쳐 실행된 스윕 중 하나만 개입을 발송합니다.
    """
    events = get_drift_events_collection()
    now = datetime.now(timezone.utc)
    result = await events.update_one(
        {
            "_id": event_id,
            "intervention_triggered": False,
            "$or": [
                {"intervention_claimed_until": None},
                {"intervention_claimed_until": {"$lt": now}},
            ],
        },
        {"$set": {"intervention_claimed_until": now + timedelta(seconds=lease_seconds)}},
    )
    return result.modified_count == 1


async def release_claim(event_id: str) -> None:
    events = get_drift_events_collection()
    await events.update_one(
        {"_id": event_id, "intervention_triggered": False},
        {"$set": {"intervention_claimed_until": None}},
    )


async def mark_intervention_triggered(event_id: str) -> bool:
    """
    false -> true 전이. 이미 true 였다면 아무 것도 바꾸지 않고 False 반환.
    """
    events = get_drift_events_collection()
    result = await events.update_one(
        {"_id": event_id, "intervention_triggered": False},
        {"$set": {"intervention_triggered": True, "intervention_claimed_until": None}},
    )
    return result.modified_count == 1
