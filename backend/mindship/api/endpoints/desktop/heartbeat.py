from fastapi import APIRouter, Depends

from mindship.api import deps
from mindship.schemas.heartbeat import HeartbeatRequest, HeartbeatResponse
from mindship.services.heartbeat import HeartbeatProcessor

router = APIRouter()


# --------------------------------------------------------------------------
# 하트비트 1회 (POST /api/v1/heartbeat)
# SessionNotFound / NoSensorData / SessionEnded 는 main.py 핸들러가 4xx로 변환
# --------------------------------------------------------------------------
@router.post("", response_model=HeartbeatResponse)
async def submit_heartbeat(
    body: HeartbeatRequest,
    user_id: str = Depends(deps.get_current_user_id),
    processor: HeartbeatProcessor = Depends(deps.get_heartbeat_processor),
):
    return await processor.process(
        session_id=body.session_id,
        camera_image=body.camera_image,
        screen_image=body.screen_image,
        user_id=user_id,
    )
