# 파일 위치: backend/mindship/schemas/drift_event.py

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class DriftEventRead(BaseModel):
    """
    [응답] GET /api/v1/sessions/{session_id}/drift-events
    """
    id: str
    session_id: str
    user_id: str
    seq: int
    is_drifting: bool
    drift_reason: str
    actual_task: str
    user_mood: Optional[str] = None
    mood_reason: Optional[str] = None
    verdict_source: str
    intervention_triggered: bool
    created_at: datetime
