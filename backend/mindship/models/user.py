# 파일 위치: backend/mindship/models/user.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class UserInDB(BaseModel):
    """
    MongoDB의 'users' 컬렉션 문서입니다.
    드리프트 분류에는 사용자가 선언한 장기 목표(guiding_star)만 사용합니다.
    """
    id: str = Field(..., alias="_id")
    guiding_star: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )
