# 파일 위치: backend/mindship/schemas/session.py

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional

# --- API 요청(Request) 스키마 ---

class SessionCreate(BaseModel):
    """
    [요청] POST /api/v1/sessions/start
    새로운 항해(집중) 세션을 시작할 때 클라이언트가 보내는 데이터 구조입니다.
    """
    task_id: Optional[str] = None

# --- API 응답(Response) 스키마 ---

class SessionRead(BaseModel):
    """
    [응답] 세션 정보를 클라이언트에게 반환할 때의 데이터 구조입니다.
    (예: GET /sessions/current, POST /sessions/start 성공 시)
    """
    id: str
    user_id: str
    task_id: Optional[str] = None
    state: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    total_focus_seconds: int
    total_drift_seconds: int
    drift_count: int
    conversation_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SessionStats(BaseModel):
    total_duration: int  # 초
    focus_seconds: int
    drift_seconds: int
    drift_count: int
    focus_percentage: int


class SessionEndResponse(BaseModel):
    """
    [응답] POST /api/v1/sessions/{session_id}/end
    """
    success: bool = True
    session: SessionRead
    stats: SessionStats
    summary: str
