# 파일 위치: backend/mindship/models/session.py

from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Literal, Optional

SessionState = Literal["active", "drifting", "ended"]


class SessionInDB(BaseModel):
    """
    MongoDB의 'sessions' 컬렉션에 저장되는 완전한 형태의 데이터 모델입니다.
    focus/drift 누적 시간은 하트비트마다 증가하고, 세션 종료(ended) 후에는 동결됩니다.
    """
    id: str = Field(..., alias="_id")  # MongoDB의 '_id'를 'id'로 매핑 (uuid 문자열)
    user_id: str
    task_id: Optional[str] = None  # 연결된 할 일이 없을 수도 있습니다.

    state: SessionState = "active"
    started_at: datetime
    ended_at: Optional[datetime] = None

    total_focus_seconds: int = 0
    total_drift_seconds: int = 0
    drift_count: int = 0  # 새 드리프트 스트릭에 진입한 횟수

    # drift_events.seq 발급용 카운터 ($inc로 원자적으로 증가)
    event_seq: int = 0
    # 직전에 반영된 하트비트의 드리프트 여부 (drift_count 스트릭 진입 판단용)
    last_is_drifting: Optional[bool] = None
    # 대화형 서비스 연속성 ID (첫 개입 시 발급)
    conversation_id: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
    )
