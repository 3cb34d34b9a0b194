# 파일 위치: backend/mindship/schemas/heartbeat.py

from pydantic import BaseModel
from typing import Optional


class HeartbeatRequest(BaseModel):
    """
    [요청] POST /api/v1/heartbeat
    샘플링 주기 1회분. 이미지는 base64 문자열 또는 data URI 입니다.
    {
        "session_id": "...",
        "camera_image": "data:image/jpeg;base64,...",
        "screen_image": null
    }
    """
    session_id: str
    camera_image: Optional[str] = None
    screen_image: Optional[str] = None


class HeartbeatResponse(BaseModel):
    """
    [응답] POST /api/v1/heartbeat 성공 시
    """
    success: bool = True
    is_drifting: bool
    reason: str
    actual_task: str
    user_mood: Optional[str] = None
    mood_reason: Optional[str] = None
    message: str
    event_id: str
