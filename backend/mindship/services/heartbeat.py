# 파일 위치: backend/mindship/services/heartbeat.py
"""
하트비트 처리기: 세션 1개의 샘플링 주기 1회를 처리합니다.

1. 검증 (세션 존재 / 종료 여부 / 이미지 유무)
2. 세션 컨텍스트 로드 (사용자 목표, 할 일 제목/설명)
3. 분류 게이트웨이 호출 (실패해도 항상 Verdict)
4. drift_events 에 1건 추가
5. 세션 누적 카운터 갱신

세션 상태(state)는 드리프트 여부와 무관하게 active 로 유지하고,
순간순간의 드리프트 정보는 이벤트 로그에만 남깁니다.
개입(escalation) 판단은 전적으로 드리프트 모니터가 합니다.
"""

import logging
from typing import Optional

from mindship.core.config import settings
from mindship.core.exceptions import NoSensorData, SessionEnded, SessionNotFound
from mindship.crud import drift_events as event_crud
from mindship.crud import sessions as session_crud
from mindship.crud import tasks as task_crud
from mindship.crud import users as users_crud
from mindship.schemas.heartbeat import HeartbeatResponse
from mindship.schemas.session import SessionRead
from mindship.services.classifier import ClassifierGateway, SessionContext

logger = logging.getLogger(__name__)

DEFAULT_GOAL = "No specific goal set"
DEFAULT_TASK = "No specific task"


async def load_session_context(session: SessionRead) -> SessionContext:
    user = await users_crud.get_user_by_id(session.user_id)
    task = await task_crud.get_task(session.task_id)
    return SessionContext(
        user_goal=(user.guiding_star if user else None) or DEFAULT_GOAL,
        task_title=(task.title if task else None) or DEFAULT_TASK,
        task_description=(task.description if task else None) or "",
    )


def _has_payload(image: Optional[str]) -> bool:
    return bool(image and image.strip())


class HeartbeatProcessor:
    def __init__(self, classifier: ClassifierGateway, interval_seconds: Optional[int] = None):
        self.classifier = classifier
        self.interval_seconds = interval_seconds or settings.HEARTBEAT_INTERVAL_SECONDS

    async def process(
        self,
        session_id: str,
        camera_image: Optional[str] = None,
        screen_image: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> HeartbeatResponse:
        # 1) 입력 검증: 여기서 실패하면 아무 상태도 바꾸지 않습니다.
        session = await session_crud.get_session(session_id)
        if session is None or (user_id is not None and session.user_id != user_id):
            raise SessionNotFound(session_id)
        if session.state == "ended":
            raise SessionEnded(session_id)
        if not (_has_payload(camera_image) or _has_payload(screen_image)):
            raise NoSensorData()

        logger.info("Processing heartbeat for session %s", session.id)

        # 2) 컨텍스트
        context = await load_session_context(session)

        # 3) 분류
        verdict = await self.classifier.classify(context, camera_image, screen_image)

        # 4) 이벤트 기록
        seq = await session_crud.next_event_seq(session.id)
        event = await event_crud.create_drift_event(
            session_id=session.id,
            user_id=session.user_id,
            seq=seq,
            is_drifting=verdict.is_drifting,
            drift_reason=verdict.reasons,
            actual_task=verdict.actual_task,
            user_mood=verdict.mood,
            mood_reason=verdict.mood_reason,
            verdict_source=verdict.source,
        )

        # 5) 카운터: 스트릭 진입 여부는 세션 갱신 안에서 원자적으로 판단
        applied = await session_crud.apply_heartbeat_counters(
            session.id,
            is_drifting=verdict.is_drifting,
            interval_seconds=self.interval_seconds,
        )
        if not applied:
            logger.warning("Session %s ended during heartbeat; counters left frozen", session.id)

        if verdict.source == "no_media":
            message = "Heartbeat received but no media available - assuming focused"
        elif verdict.is_drifting:
            message = "Drift detected - monitoring continues"
        else:
            message = "User focused - good work!"

        logger.info(
            "Heartbeat processed (session=%s seq=%d drifting=%s source=%s)",
            session.id, seq, verdict.is_drifting, verdict.source,
        )

        return HeartbeatResponse(
            is_drifting=verdict.is_drifting,
            reason=verdict.reasons,
            actual_task=verdict.actual_task,
            user_mood=verdict.mood,
            mood_reason=verdict.mood_reason,
            message=message,
            event_id=event.id,
        )
