# 파일 위치: backend/mindship/services/speech.py
"""
ElevenLabs TTS. 오디오는 개입의 부가 요소이므로 실패하면 SpeechServiceError 를 던지고
디스패처가 텍스트만 발행합니다.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from mindship.core.config import settings
from mindship.core.exceptions import SpeechServiceError

logger = logging.getLogger(__name__)

DEFAULT_VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0,
    "use_speaker_boost": True,
}


@dataclass(frozen=True)
class SpeechResult:
    audio_data: str  # base64
    content_type: str = "audio/mpeg"

    @property
    def data_url(self) -> str:
        return f"data:{self.content_type};base64,{self.audio_data}"


class SpeechService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.ELEVENLABS_API_KEY
        self.voice_id = voice_id or settings.ELEVENLABS_VOICE_ID
        self.model_id = model_id or settings.ELEVENLABS_MODEL_ID
        self.timeout = timeout if timeout is not None else settings.TTS_TIMEOUT_SECONDS

    async def _request_audio(self, body: Dict[str, Any]) -> bytes:
        url = f"{settings.ELEVENLABS_API_URL.rstrip('/')}/text-to-speech/{self.voice_id}"
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=body, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise SpeechServiceError(
                        f"ElevenLabs API error: {response.status} - {error_text}"
                    )
                return await response.read()

    async def synthesize(
        self, text: str, voice_settings: Optional[Dict[str, Any]] = None
    ) -> SpeechResult:
        if not self.api_key:
            raise SpeechServiceError("ElevenLabs API key not configured")
        if not text or not text.strip():
            raise SpeechServiceError("Text is required for TTS conversion")

        body = {
            "text": text.strip(),
            "model_id": self.model_id,
            "voice_settings": voice_settings or DEFAULT_VOICE_SETTINGS,
        }

        try:
            audio = await self._request_audio(body)
        except SpeechServiceError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SpeechServiceError(f"ElevenLabs request failed: {e}") from e

        if not audio:
            raise SpeechServiceError("ElevenLabs returned no audio")

        logger.info("TTS successful: %d bytes", len(audio))
        return SpeechResult(audio_data=base64.b64encode(audio).decode("ascii"))
