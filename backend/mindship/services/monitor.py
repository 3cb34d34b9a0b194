# 파일 위치: backend/mindship/services/monitor.py
"""
드리프트 모니터: 종료되지 않은 모든 세션을 훑어 개입이 필요한 세션을 찾습니다.

스트릭은 저장하지 않고 매 스윕마다 이벤트 로그에서 다시 계산합니다.
개입 발송 여부는 가장 최신 이벤트의 intervention_triggered 플래그로만 판단하며,
점유(claim) -> 발송 -> 조건부 플래그 전환 순서라서 스윕이 겹쳐도 한 스트릭에
개입은 최대 한 번입니다. 스윕 자체는 상태가 없는 함수입니다.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from mindship.core.config import settings
from mindship.crud import drift_events as event_crud
from mindship.crud import sessions as session_crud
from mindship.schemas.drift_event import DriftEventRead
from mindship.schemas.monitor import SweepReport
from mindship.schemas.session import SessionRead
from mindship.services.intervention import InterventionDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscalationCandidate:
    session_id: str
    user_id: str
    consecutive_drifts: int
    latest_event_id: str


def count_streak(events: List[DriftEventRead]) -> int:
    """
    최신순 이벤트 목록의 맨 앞에서부터 연속된 드리프트 개수.
    """
    streak = 0
    for event in events:
        if not event.is_drifting:
            break
        streak += 1
    return streak


def should_escalate(events: List[DriftEventRead], threshold: int) -> bool:
    if not events:
        return False
    return count_streak(events) >= threshold and not events[0].intervention_triggered


class DriftMonitor:
    def __init__(
        self,
        dispatcher: InterventionDispatcher,
        threshold: Optional[int] = None,
        window: Optional[int] = None,
        claim_seconds: Optional[int] = None,
    ):
        self.dispatcher = dispatcher
        self.threshold = threshold or settings.DRIFT_STREAK_THRESHOLD
        # 창 크기가 임계값보다 작으면 절대 발동하지 않으므로 최소 threshold 만큼 읽음
        self.window = max(window or settings.DRIFT_WINDOW, self.threshold)
        self.claim_seconds = claim_seconds or settings.INTERVENTION_CLAIM_SECONDS

    async def evaluate(self, session: SessionRead) -> Optional[EscalationCandidate]:
        events = await event_crud.get_recent_events(session.id, limit=self.window)
        if not events:
            return None

        streak = count_streak(events)
        logger.debug("Session %s: %d consecutive drifts", session.id, streak)

        if not should_escalate(events, self.threshold):
            if streak >= self.threshold:
                logger.debug("Session %s: intervention already triggered for latest drift", session.id)
            return None

        return EscalationCandidate(
            session_id=session.id,
            user_id=session.user_id,
            consecutive_drifts=streak,
            latest_event_id=events[0].id,
        )

    async def escalate(self, candidate: EscalationCandidate) -> bool:
        """
        개입 1회. 점유에 실패하면(다른 스윕이 처리 중/완료) False.
        발송에 실패하면 점유를 풀고 예외를 다시 던져 다음 스윕에서 재시도되게 합니다.
        """
        claimed = await event_crud.claim_for_intervention(candidate.latest_event_id, self.claim_seconds)
        if not claimed:
            logger.info("Session %s: event %s already claimed", candidate.session_id, candidate.latest_event_id)
            return False

        try:
            await self.dispatcher.dispatch(
                session_id=candidate.session_id,
                user_id=candidate.user_id,
                consecutive_drifts=candidate.consecutive_drifts,
            )
        except Exception:
            await event_crud.release_claim(candidate.latest_event_id)
            raise

        return await event_crud.mark_intervention_triggered(candidate.latest_event_id)

    async def sweep(self) -> SweepReport:
        logger.info("Starting drift monitoring sweep")
        report = SweepReport()

        async for session in session_crud.iter_open_sessions():
            report.sessions_checked += 1
            # 세션 하나의 실패가 나머지 세션 처리를 막지 않도록 격리
            try:
                candidate = await self.evaluate(session)
                if candidate is None:
                    continue

                logger.info(
                    "Triggering intervention for session %s (%d consecutive drifts)",
                    candidate.session_id, candidate.consecutive_drifts,
                )
                if await self.escalate(candidate):
                    report.interventions_triggered += 1
                    report.escalated_session_ids.append(candidate.session_id)
            except Exception:
                report.failures += 1
                logger.exception("Error triggering intervention for session %s", session.id)

        if report.sessions_checked == 0:
            report.message = "No open sessions to monitor"
            return report

        report.message = (
            f"Deep drift monitoring completed. {report.interventions_triggered} interventions triggered."
        )
        logger.info(
            "Sweep done (checked=%d triggered=%d failures=%d)",
            report.sessions_checked, report.interventions_triggered, report.failures,
        )
        return report
