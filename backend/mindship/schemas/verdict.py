from pydantic import BaseModel, Field
from typing import Optional


class ClassifierOutput(BaseModel):
    """
    분류 서비스(Gemini)에 강제하는 JSON 응답 구조.
    is_drifting / actual_current_task / reasons 는 필수입니다.
    """
    is_drifting: bool = Field(description="사용자가 목표/할 일에서 벗어났는지 여부")
    actual_current_task: str = Field(description="화면/카메라로 보아 사용자가 실제로 하고 있는 일")
    reasons: str = Field(description="판단 근거 (한두 문장)")
    user_mood: Optional[str] = Field(default=None, description="추정 기분 (예: 'focused', 'tired')")
    mood_reason: Optional[str] = Field(default=None, description="기분 추정 근거")
