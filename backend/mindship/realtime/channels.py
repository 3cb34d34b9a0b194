# 파일 위치: backend/mindship/realtime/channels.py
"""
세션별 라이브 채널 (publish / subscribe).

클라이언트는 WebSocket /ws/sessions/{session_id} 로 구독하고,
개입 디스패처는 channel_name(session_id) 로 메시지 1건을 발행합니다.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Protocol

from mindship.core.exceptions import PublishError

logger = logging.getLogger(__name__)


def channel_name(session_id: str) -> str:
    return f"session:{session_id}"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ChannelHub:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def subscribe(self, channel: str, subscriber: Subscriber) -> None:
        async with self._lock:
            listeners = self._subscribers[channel]
            if not any(s is subscriber for s in listeners):
                listeners.append(subscriber)
        logger.info("Subscribed to %s (%d listeners)", channel, self.subscriber_count(channel))

    async def unsubscribe(self, channel: str, subscriber: Subscriber) -> None:
        # WebSocket 은 Mapping 이라 == 비교가 위험하므로 identity 로 제거
        async with self._lock:
            listeners = self._subscribers.get(channel)
            if listeners is None:
                return
            listeners[:] = [s for s in listeners if s is not subscriber]
            if not listeners:
                del self._subscribers[channel]

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    def channel_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> int:
        """
        채널의 모든 구독자에게 {"type": "broadcast", "event", "payload"} 를 보냅니다.
        반환값은 전달에 성공한 구독자 수.
        - 구독자가 없으면 0 (실패 아님)
        - 구독자가 있는데 전부 실패하면 PublishError
        """
        message = {"type": "broadcast", "event": event, "payload": payload}
        async with self._lock:
            listeners = list(self._subscribers.get(channel, ()))

        if not listeners:
            logger.warning("No listeners on %s; %s not delivered to anyone", channel, event)
            return 0

        delivered = 0
        dead = []
        for listener in listeners:
            try:
                await listener.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Send to listener on %s failed: %s", channel, e)
                dead.append(listener)

        for listener in dead:
            await self.unsubscribe(channel, listener)

        if delivered == 0:
            raise PublishError(f"Failed to deliver {event} to any listener on {channel}")
        return delivered


hub = ChannelHub()
