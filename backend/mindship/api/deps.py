import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from mindship.core.config import settings
from mindship.core.security import decode_access_token
from mindship.realtime.channels import hub
from mindship.services.classifier import ClassifierGateway
from mindship.services.conversation import ConversationService
from mindship.services.heartbeat import HeartbeatProcessor
from mindship.services.intervention import InterventionDispatcher
from mindship.services.monitor import DriftMonitor
from mindship.services.speech import SpeechService

# FastAPI가 스와거 문서에서 토큰 입력창을 보여주게 함
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """
    JWT 토큰을 검증하고 user_id (sub)를 반환합니다.
    """
    user_id = decode_access_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def verify_cron_token(authorization: Optional[str] = Header(default=None)) -> None:
    """
    외부 스케줄러(cron) 전용 엔드포인트 보호.
    MONITOR_CRON_TOKEN 이 설정되지 않았으면 호출 자체를 막습니다.
    """
    expected = settings.MONITOR_CRON_TOKEN
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Monitor trigger disabled")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron token")


# --- 서비스 조립 (테스트에서는 app.dependency_overrides 로 교체) ---

_classifier: Optional[ClassifierGateway] = None
_dispatcher: Optional[InterventionDispatcher] = None


def get_classifier() -> ClassifierGateway:
    global _classifier
    if _classifier is None:
        _classifier = ClassifierGateway()
    return _classifier


def get_heartbeat_processor(
    classifier: ClassifierGateway = Depends(get_classifier),
) -> HeartbeatProcessor:
    return HeartbeatProcessor(classifier)


def get_dispatcher() -> InterventionDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = InterventionDispatcher(ConversationService(), SpeechService(), hub)
    return _dispatcher


def get_monitor(dispatcher: InterventionDispatcher = Depends(get_dispatcher)) -> DriftMonitor:
    return DriftMonitor(dispatcher)
