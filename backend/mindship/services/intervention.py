# 파일 위치: backend/mindship/services/intervention.py
"""
개입 디스패처: 드리프트가 이어지는 세션 1개에 음성 개입을 만들어 보냅니다.

1. 컨텍스트 수집 (목표, 할 일, 최근 드리프트 기록, 경과 시간)
2. 대화형 서비스로 메시지 생성 -> 실패/빈 응답이면 템플릿 메시지
3. TTS -> 실패하면 텍스트만
4. 세션 라이브 채널로 발행 -> 실패하면 PublishError 전파 (대체 수단 없음)
5. 개입 기록 저장 (best-effort)
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from mindship.core.exceptions import ConversationServiceError, SessionNotFound, SpeechServiceError
from mindship.crud import drift_events as event_crud
from mindship.crud import interventions as intervention_crud
from mindship.crud import sessions as session_crud
from mindship.realtime.channels import ChannelHub, channel_name, hub
from mindship.schemas.drift_event import DriftEventRead
from mindship.schemas.monitor import InterventionResult
from mindship.services.conversation import ConversationRequest, ConversationService
from mindship.services.heartbeat import load_session_context
from mindship.services.speech import SpeechService

logger = logging.getLogger(__name__)

DEEP_DRIFT_EVENT = "deep_drift_detected"


@dataclass
class InterventionContext:
    user_goal: str
    task_title: str
    task_description: str
    heartbeat_record: str
    session_minutes: int
    conversation_id: str
    history: List[Tuple[str, str]] = field(default_factory=list)


def format_drift_history(events: List[DriftEventRead]) -> str:
    if not events:
        return "No recent drift history"
    return "\n".join(
        f"{e.created_at.isoformat()}: {e.drift_reason} (doing: {e.actual_task})" for e in events
    )


def fallback_message(consecutive_drifts: int, task_title: str) -> str:
    return (
        f"Captain, I've noticed you've been drifting for {consecutive_drifts} minutes. "
        f"Let's get back on course and focus on {task_title}. "
        "You're doing great - just need to steer back towards your goal!"
    )


def drift_query(consecutive_drifts: int) -> str:
    return (
        "I was distracted while working just now and it took some effort to bring me back "
        f"on track. I've been drifting for {consecutive_drifts} minutes consecutively."
    )


class InterventionDispatcher:
    def __init__(
        self,
        conversation: ConversationService,
        speech: SpeechService,
        channels: ChannelHub = hub,
    ):
        self.conversation = conversation
        self.speech = speech
        self.channels = channels

    async def gather_context(self, session) -> InterventionContext:
        base = await load_session_context(session)
        recent = await event_crud.get_recent_events(session.id, limit=5, drifting_only=True)
        minutes = session_crud.elapsed_seconds(session.started_at, datetime.now(timezone.utc)) // 60

        history = []
        for record in await intervention_crud.get_session_interventions(session.id):
            for message in record.messages:
                role = "model" if message.role == "assistant" else "user"
                history.append((role, message.content))

        return InterventionContext(
            user_goal=base.user_goal,
            task_title=base.task_title,
            task_description=base.task_description,
            heartbeat_record=format_drift_history(recent),
            session_minutes=minutes,
            conversation_id=session.conversation_id or str(uuid.uuid4()),
            history=history,
        )

    async def _generate_message(
        self, user_id: str, consecutive_drifts: int, context: InterventionContext
    ) -> Tuple[str, bool]:
        request = ConversationRequest(
            context={
                "heartbeat_record": context.heartbeat_record,
                "user_goal": context.user_goal,
                "task_title": context.task_title,
                "task_description": context.task_description,
                "session_minutes": context.session_minutes,
            },
            query=drift_query(consecutive_drifts),
            user=user_id[:256],
            conversation_id=context.conversation_id,
            history=context.history,
        )
        try:
            reply = await self.conversation.generate(request)
            return reply.text, False
        except ConversationServiceError as e:
            logger.warning("Conversation service failed (%s); using fallback message", e)
            return fallback_message(consecutive_drifts, context.task_title), True

    async def dispatch(
        self,
        session_id: str,
        user_id: str,
        consecutive_drifts: int,
        test_mode: bool = False,
    ) -> InterventionResult:
        session = await session_crud.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        context = await self.gather_context(session)
        message, used_fallback = await self._generate_message(user_id, consecutive_drifts, context)

        audio_data = None
        audio_url = None
        tts_error = None
        try:
            speech = await self.speech.synthesize(message)
            audio_data = speech.audio_data
            audio_url = speech.data_url
        except SpeechServiceError as e:
            logger.warning("TTS failed for session %s (%s); publishing text only", session_id, e)
            tts_error = str(e)

        payload = {
            "session_id": session_id,
            "user_id": user_id,
            "consecutive_drifts": consecutive_drifts,
            "message": message,
            "audio_url": audio_url,
            "audio_data": audio_data,
            "tts_success": audio_data is not None,
            "conversation_id": context.conversation_id,
            "test_mode": test_mode,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        # PublishError 는 여기서 잡지 않습니다.
        delivered_to = await self.channels.publish(channel_name(session_id), DEEP_DRIFT_EVENT, payload)

        if not test_mode:
            await self._record(
                session, user_id, consecutive_drifts, message, delivered_to > 0, audio_data is not None, context
            )

        logger.info(
            "Intervention published (session=%s drifts=%d fallback=%s tts=%s listeners=%d)",
            session_id, consecutive_drifts, used_fallback, audio_data is not None, delivered_to,
        )

        return InterventionResult(
            session_id=session_id,
            user_id=user_id,
            consecutive_drifts=consecutive_drifts,
            intervention_message=message,
            used_fallback_message=used_fallback,
            audio_data=audio_data,
            audio_url=audio_url,
            tts_success=audio_data is not None,
            tts_error=tts_error,
            conversation_id=context.conversation_id,
            delivered_to=delivered_to,
            test_mode=test_mode,
        )

    async def _record(
        self,
        session,
        user_id: str,
        consecutive_drifts: int,
        message: str,
        delivered: bool,
        tts_success: bool,
        context: InterventionContext,
    ) -> Optional[str]:
        """
        감사/분석용 기록. 저장 실패가 이미 끝난 발행을 되돌리지는 않습니다.
        """
        try:
            if session.conversation_id is None:
                await session_crud.set_conversation_id(session.id, context.conversation_id)
            return await intervention_crud.create_intervention_record(
                user_id=user_id,
                session_id=session.id,
                consecutive_drifts=consecutive_drifts,
                message=message,
                delivered=delivered,
                tts_success=tts_success,
                conversation_id=context.conversation_id,
                context={
                    "consecutive_drifts": consecutive_drifts,
                    "task_title": context.task_title,
                    "user_goal": context.user_goal,
                    "session_duration": context.session_minutes,
                },
            )
        except Exception:
            logger.exception("Failed to log intervention for session %s", session.id)
            return None
