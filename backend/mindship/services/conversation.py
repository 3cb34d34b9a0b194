# 파일 위치: backend/mindship/services/conversation.py

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from google import genai

from mindship.core.config import settings
from mindship.core.exceptions import ConversationServiceError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """
You are the seagull companion on the user's ship. The user set out to work on a task and
has drifted off course for a while. Speak to them directly in two or three short, warm
sentences that will be read aloud: name what they drifted into, remind them of their goal,
and suggest one concrete next step. No lists, no emojis, no markdown.
"""


@dataclass
class ConversationRequest:
    context: Dict[str, Any]
    query: str
    user: str
    conversation_id: Optional[str] = None
    # (role, text) 쌍. role 은 user / model
    history: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class ConversationReply:
    text: str
    conversation_id: Optional[str] = None


def build_contents(request: ConversationRequest) -> List[Dict[str, Any]]:
    contents = [
        {"role": role, "parts": [{"text": text}]}
        for role, text in request.history
        if text
    ]
    turn = "[Context]\n" + json.dumps(request.context, ensure_ascii=False, indent=2)
    turn += "\n\n" + request.query
    contents.append({"role": "user", "parts": [{"text": turn}]})
    return contents


class ConversationService:
    def __init__(self, client=None, model: Optional[str] = None, timeout: Optional[float] = None):
        self._client = client
        self.model = model or settings.CONVERSATION_MODEL
        self.timeout = timeout if timeout is not None else settings.CONVERSATION_TIMEOUT_SECONDS

    @property
    def client(self):
        if self._client is None:
            self._client = genai.Client(api_key=settings.GEMINI_API_KEY)
        return self._client

    async def _collect(self, request: ConversationRequest) -> str:
        stream = await self.client.aio.models.generate_content_stream(
            model=self.model,
            contents=build_contents(request),
            config={"system_instruction": SYSTEM_INSTRUCTION},
        )
        parts = []
        async for chunk in stream:
            if chunk.text:
                parts.append(chunk.text)
        return "".join(parts)

    async def generate(self, request: ConversationRequest) -> ConversationReply:
        """
        스트리밍 응답을 끝까지 모아 하나의 메시지로 돌려줍니다.
        실패/타임아웃/빈 응답은 모두 ConversationServiceError.
        """
        try:
            text = await asyncio.wait_for(self._collect(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ConversationServiceError(f"no response within {self.timeout}s") from e
        except ConversationServiceError:
            raise
        except Exception as e:
            raise ConversationServiceError(str(e)) from e

        if not text.strip():
            raise ConversationServiceError("empty response")

        logger.info("Conversation reply received (%d chars)", len(text))
        return ConversationReply(text=text.strip(), conversation_id=request.conversation_id)
