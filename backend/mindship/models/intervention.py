# 파일 위치: backend/mindship/models/intervention.py

from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Any, Dict, List, Optional


class ConversationMessage(BaseModel):
    role: str  # system, assistant
    content: str
    timestamp: datetime


class InterventionRecordInDB(BaseModel):
    """
    MongoDB의 'ai_conversations' 컬렉션에 저장되는 개입 1회분의 기록입니다.
    생성 후에는 수정하지 않습니다.
    """
    id: str = Field(..., alias="_id")
    user_id: str
    session_id: str
    messages: List[ConversationMessage]
    delivered: bool
    tts_success: bool
    conversation_id: Optional[str] = None
    # consecutive_drifts, task_title, user_goal, session_duration
    context: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
    )
