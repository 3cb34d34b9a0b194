from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from jose import jwt, JWTError

from mindship.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 1일


def create_access_token(subject: Union[str, Any]) -> str:
    """
    Access Token 생성 (유효기간 1일)
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"exp": expire, "sub": str(subject), "type": "access"}
    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[str]:
    """
    토큰을 검증하고 sub(user_id)를 반환합니다. 검증 실패 시 None.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

    if payload.get("type", "access") != "access":
        return None
    return payload.get("sub")
