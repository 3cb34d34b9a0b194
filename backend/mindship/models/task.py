# 파일 위치: backend/mindship/models/task.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class TaskInDB(BaseModel):
    """
    MongoDB의 'tasks' 컬렉션 문서 중 드리프트 분석에 필요한 필드만 다룹니다.
    할 일 CRUD 자체는 이 서비스의 범위가 아닙니다.
    """
    id: str = Field(..., alias="_id")
    user_id: Optional[str] = None
    title: str
    description: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )
