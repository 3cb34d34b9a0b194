# backend/mindship/crud/sessions.py

from datetime import datetime, timezone
from typing import AsyncIterator, Optional
import uuid

from fastapi import HTTPException
from pymongo import ReturnDocument

from mindship.db.mongo import get_db
from mindship.models.session import SessionInDB
from mindship.schemas.session import SessionCreate, SessionRead, SessionStats


def get_sessions_collection():
    """
    Motor DB 핸들에서 sessions 컬렉션을 가져옵니다.
    """
    return get_db()["sessions"]


def serialize_session(session) -> SessionRead:
    """
    Mongo document(dict) -> SessionRead
    """
    return SessionRead(
        id=str(session["_id"]),
        user_id=session["user_id"],
        task_id=session.get("task_id"),
        state=session.get("state", "active"),
        started_at=session["started_at"],
        ended_at=session.get("ended_at"),
        total_focus_seconds=session.get("total_focus_seconds", 0),
        total_drift_seconds=session.get("total_drift_seconds", 0),
        drift_count=session.get("drift_count", 0),
        conversation_id=session.get("conversation_id"),
    )


def _clean_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        raise HTTPException(status_code=400, detail="Invalid session_id")
    return session_id.strip()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware_utc(dt: datetime) -> datetime:
    """
    Mongo에서 읽은 datetime은 naive(UTC)로 돌아오는 경우가 있어 방어.
    naive면 UTC로 간주해서 tzinfo를 붙임.
    """
    if dt is None:
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if not isinstance(v, str):
        return v
    s = v.strip()
    return s or None


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """
    두 시각 사이의 초 (음수 방지).
    """
    sec = (_ensure_aware_utc(end) - _ensure_aware_utc(start)).total_seconds()
    return max(0, int(sec))


def compute_stats(session: SessionRead) -> SessionStats:
    """
    세션 통계. 총 시간은 시작~종료(또는 현재) 벽시계 기준,
    집중/드리프트 시간은 하트비트 누적 카운터 기준입니다.
    """
    end = session.ended_at or _utcnow()
    total = elapsed_seconds(session.started_at, end)
    focus = session.total_focus_seconds
    drift = session.total_drift_seconds
    tracked = focus + drift
    base = max(total, tracked)
    focus_pct = round(focus / base * 100) if base > 0 else 0
    return SessionStats(
        total_duration=total,
        focus_seconds=focus,
        drift_seconds=drift,
        drift_count=session.drift_count,
        focus_percentage=focus_pct,
    )


def summarize_session(stats: SessionStats) -> str:
    # 분 단위 반올림 (x.5 는 올림)
    minutes = (stats.total_duration + 30) // 60
    return f"Session completed successfully. Duration: {minutes} minutes, Focus: {stats.focus_percentage}%"


async def _end_existing_active_sessions(user_id: str) -> None:
    """
    정책: 유저당 진행 중인 세션은 1개만 허용.
    start_session 호출 시 기존 세션을 자동 ended 처리합니다.
    """
    col = get_sessions_collection()
    now = _utcnow()
    await col.update_many(
        {"user_id": user_id, "state": {"$ne": "ended"}},
        {"$set": {"state": "ended", "ended_at": now}},
    )


# CREATE (START)
async def start_session(user_id: str, data: SessionCreate) -> SessionRead:
    col = get_sessions_collection()

    # 1) 기존 세션 자동 종료(정책 적용)
    await _end_existing_active_sessions(user_id)

    doc = SessionInDB(
        id=str(uuid.uuid4()),
        user_id=user_id,
        task_id=_strip_or_none(data.task_id),
        state="active",
        started_at=_utcnow(),
    ).model_dump(by_alias=True)

    await col.insert_one(doc)
    created = await col.find_one({"_id": doc["_id"]})
    if not created:
        raise HTTPException(status_code=500, detail="Failed to create session")
    return serialize_session(created)


# READ ONE
async def get_session(session_id: str) -> Optional[SessionRead]:
    col = get_sessions_collection()
    session = await col.find_one({"_id": _clean_id(session_id)})
    if not session:
        return None
    return serialize_session(session)


# READ CURRENT (진행 중 세션 1개)
async def get_current_session(user_id: str) -> Optional[SessionRead]:
    col = get_sessions_collection()
    session = await col.find_one(
        {"user_id": user_id, "state": {"$ne": "ended"}},
        sort=[("started_at", -1)],
    )
    if not session:
        return None
    return serialize_session(session)


# READ ALL (모니터 스윕용: 종료되지 않은 모든 세션, 상한 없이 배치 단위로 순회)
async def iter_open_sessions(batch_size: int = 500) -> AsyncIterator[SessionRead]:
    col = get_sessions_collection()
    cursor = col.find({"state": {"$ne": "ended"}}).sort("started_at", 1).batch_size(batch_size)
    async for session in cursor:
        yield serialize_session(session)


async def next_event_seq(session_id: str) -> int:
    """
    drift_events.seq 발급. 동시 쓰기에서도 단조 증가가 보장됩니다.
    """
    col = get_sessions_collection()
    updated = await col.find_one_and_update(
        {"_id": session_id},
        {"$inc": {"event_seq": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Session not found")
    return updated["event_seq"]


async def apply_heartbeat_counters(
    session_id: str,
    is_drifting: bool,
    interval_seconds: int,
) -> bool:
    """
    하트비트 1회분을 누적 카운터에 반영합니다.
    스트릭 진입 여부는 세션 문서의 last_is_drifting 을 조건으로 한 단일 갱신에서 판단하므로
    같은 세션의 하트비트가 동시에 들어와도 drift_count 는 한 번만 증가합니다.
    ended 세션은 동결되어 있으므로 조건부로만 갱신하고, 반영 여부를 반환합니다.
    """
    col = get_sessions_collection()
    open_session = {"_id": session_id, "state": {"$ne": "ended"}}

    if not is_drifting:
        result = await col.update_one(
            open_session,
            {"$inc": {"total_focus_seconds": interval_seconds}, "$set": {"last_is_drifting": False}},
        )
        return result.modified_count == 1

    # 새 스트릭 진입: 직전 반영분이 집중이었거나 아직 없음
    entered = await col.update_one(
        {**open_session, "last_is_drifting": {"$ne": True}},
        {
            "$inc": {"total_drift_seconds": interval_seconds, "drift_count": 1},
            "$set": {"last_is_drifting": True},
        },
    )
    if entered.modified_count == 1:
        return True

    continued = await col.update_one(
        open_session,
        {"$inc": {"total_drift_seconds": interval_seconds}, "$set": {"last_is_drifting": True}},
    )
    return continued.modified_count == 1


async def set_conversation_id(session_id: str, conversation_id: str) -> None:
    col = get_sessions_collection()
    await col.update_one(
        {"_id": session_id, "conversation_id": None},
        {"$set": {"conversation_id": conversation_id}},
    )


# END 세션
async def end_session(user_id: str, session_id: str) -> SessionRead:
    col = get_sessions_collection()
    session_id = _clean_id(session_id)

    existing = await col.find_one({"_id": session_id})
    if not existing:
        raise HTTPException(status_code=404, detail="Session not found")

    # 다른 유저 세션 수정 방지
    if existing.get("user_id") != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 이미 종료된 세션은 그대로 반환 (카운터 동결)
    if existing.get("state") == "ended":
        return serialize_session(existing)

    await col.update_one(
        {"_id": session_id, "state": {"$ne": "ended"}},
        {"$set": {"state": "ended", "ended_at": _utcnow()}},
    )
    updated = await col.find_one({"_id": session_id})
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to end session")
    return serialize_session(updated)
