# backend/mindship/api/endpoints/health.py

from fastapi import APIRouter

from mindship.db.mongo import get_db
from mindship.realtime.channels import hub
from mindship.services import scheduler

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """
    [운영] 헬스 체크
    - 서버 생존 여부 + Mongo 연결 여부 + 내부 스케줄러/라이브 채널 상태
    """
    mongo_ok = False
    mongo_error = None

    try:
        await get_db().command("ping")
        mongo_ok = True
    except Exception as e:
        mongo_error = str(e)

    return {
        "status": "ok" if mongo_ok else "degraded",
        "mongo": mongo_ok,
        "mongo_error": mongo_error,
        "internal_scheduler": scheduler.is_running(),
        "live_channels": hub.channel_count(),
    }
