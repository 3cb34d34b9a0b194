# 파일 위치: backend/mindship/schemas/monitor.py

from pydantic import BaseModel, Field
from typing import List, Optional


class SweepReport(BaseModel):
    """
    [응답] POST /api/v1/monitor/sweep
    """
    success: bool = True
    message: str = ""
    sessions_checked: int = 0
    interventions_triggered: int = 0
    failures: int = 0
    escalated_session_ids: List[str] = Field(default_factory=list)


class InterventionResult(BaseModel):
    """
    [응답] 개입 1회의 결과. 라이브 채널로 보낸 내용과 동일합니다.
    """
    success: bool = True
    session_id: str
    user_id: str
    consecutive_drifts: int
    intervention_message: str
    used_fallback_message: bool = False
    audio_data: Optional[str] = None
    audio_url: Optional[str] = None
    tts_success: bool = False
    tts_error: Optional[str] = None
    conversation_id: Optional[str] = None
    delivered_to: int = 0
    test_mode: bool = False


class InterventionTestRequest(BaseModel):
    """
    [요청] POST /api/v1/interventions/{session_id}/test
    """
    consecutive_drifts: int = Field(default=5, ge=1)
