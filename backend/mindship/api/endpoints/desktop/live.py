import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from mindship.core.security import decode_access_token
from mindship.crud import sessions as session_crud
from mindship.realtime.channels import channel_name, hub

logger = logging.getLogger(__name__)

router = APIRouter()


# --------------------------------------------------------------------------
# 세션 라이브 채널 구독 (WS /ws/sessions/{session_id}?token=...)
# 서버 -> 클라이언트 단방향. 클라이언트가 보내는 메시지는 무시(keep-alive 용)
# --------------------------------------------------------------------------
@router.websocket("/sessions/{session_id}")
async def session_channel(websocket: WebSocket, session_id: str, token: Optional[str] = Query(default=None)):
    user_id = decode_access_token(token) if token else None
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session = await session_crud.get_session(session_id)
    if session is None or session.user_id != user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channel = channel_name(session.id)
    await hub.subscribe(channel, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Listener left %s", channel)
    finally:
        await hub.unsubscribe(channel, websocket)
