# services/scheduler.py
"""
프로세스 내부 주기 실행 (선택). 운영에서는 외부 cron이 /api/v1/monitor/sweep 을 호출하고,
ENABLE_INTERNAL_SCHEDULER=true 일 때만 이 스케줄러가 같은 스윕을 돌립니다.
"""

import logging
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "drift-monitor-sweep"

scheduler = AsyncIOScheduler()


def schedule_drift_sweep(callback: Callable[[], Awaitable], seconds: int) -> None:
    # 이전 스윕이 끝나지 않았으면 다음 실행은 건너뜀 (스윕은 취소하지 않음)
    scheduler.add_job(
        callback,
        "interval",
        seconds=seconds,
        id=SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info("Drift sweep scheduled every %ss", seconds)


def start_scheduler() -> None:
    if not scheduler.running:
        scheduler.start()


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)


def is_running() -> bool:
    return scheduler.running
