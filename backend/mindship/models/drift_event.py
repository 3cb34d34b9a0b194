# 파일 위치: backend/mindship/models/drift_event.py

from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional


class DriftEventInDB(BaseModel):
    """
    MongoDB의 'drift_events' 컬렉션에 저장되는 하트비트 1회분의 분류 결과입니다.
    intervention_triggered 는 false -> true 로 단 한 번만 바뀝니다.
    """
    id: str = Field(..., alias="_id")
    session_id: str
    user_id: str
    seq: int  # 세션 내 단조 증가 순번 (정렬 기준)

    is_drifting: bool
    drift_reason: str
    actual_task: str
    user_mood: Optional[str] = None
    mood_reason: Optional[str] = None
    verdict_source: str = "classifier"  # classifier | no_media | fallback

    intervention_triggered: bool = False
    # 모니터 스윕 간 중복 개입 방지용 임시 점유 (만료 시각)
    intervention_claimed_until: Optional[datetime] = None

    created_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
    )
