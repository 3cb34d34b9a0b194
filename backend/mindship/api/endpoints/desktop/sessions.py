from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mindship.api import deps
from mindship.crud import drift_events as event_crud
from mindship.crud import sessions as session_crud
from mindship.schemas.drift_event import DriftEventRead
from mindship.schemas.session import SessionCreate, SessionEndResponse, SessionRead

router = APIRouter()


async def _get_owned_session(session_id: str, user_id: str) -> SessionRead:
    session = await session_crud.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    if session.user_id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return session


# --------------------------------------------------------------------------
# 세션 시작 (POST /api/v1/sessions/start)
# --------------------------------------------------------------------------
@router.post("/start", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def start_session(
    data: SessionCreate,
    user_id: str = Depends(deps.get_current_user_id),
):
    return await session_crud.start_session(user_id, data)


@router.get("/current", response_model=SessionRead)
async def read_current_session(user_id: str = Depends(deps.get_current_user_id)):
    session = await session_crud.get_current_session(user_id)
    if not session:
        raise HTTPException(status_code=404, detail="No active session")
    return session


@router.get("/{session_id}", response_model=SessionRead)
async def read_session(session_id: str, user_id: str = Depends(deps.get_current_user_id)):
    return await _get_owned_session(session_id, user_id)


# --------------------------------------------------------------------------
# 세션 종료 (POST /api/v1/sessions/{session_id}/end)
# 종료 후에는 focus/drift 누적 시간이 동결됩니다.
# --------------------------------------------------------------------------
@router.post("/{session_id}/end", response_model=SessionEndResponse)
async def end_session(session_id: str, user_id: str = Depends(deps.get_current_user_id)):
    session = await session_crud.end_session(user_id, session_id)
    stats = session_crud.compute_stats(session)
    return SessionEndResponse(session=session, stats=stats, summary=session_crud.summarize_session(stats))


@router.get("/{session_id}/drift-events", response_model=List[DriftEventRead])
async def read_drift_events(
    session_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    user_id: str = Depends(deps.get_current_user_id),
):
    session = await _get_owned_session(session_id, user_id)
    return await event_crud.get_recent_events(session.id, limit=limit)
