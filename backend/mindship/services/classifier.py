# 파일 위치: backend/mindship/services/classifier.py
"""
집중 분류 게이트웨이.

카메라/화면 이미지와 사용자 목표를 Gemini에 보내 드리프트 여부를 판정합니다.
내부 요청 결과는 Verdict | ClassifierError 로 태깅되고, classify() 경계에서
항상 Verdict 로 변환됩니다. 분류기가 죽어도 하트비트는 막히지 않으며
기본값은 "집중 중"입니다 (fail-open).
"""

import asyncio
import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from google import genai
from google.genai import types
from pydantic import ValidationError

from mindship.core.config import settings
from mindship.schemas.verdict import ClassifierOutput

logger = logging.getLogger(__name__)

NO_MEDIA_REASON = "No media available for analysis"
FALLBACK_REASON = "Analysis unavailable - assuming focused"


@dataclass(frozen=True)
class SessionContext:
    user_goal: str
    task_title: str
    task_description: str = ""


@dataclass(frozen=True)
class SensorImage:
    kind: str  # camera | screen
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class Verdict:
    is_drifting: bool
    actual_task: str
    reasons: str
    mood: Optional[str] = None
    mood_reason: Optional[str] = None
    source: str = "classifier"  # classifier | no_media | fallback


@dataclass(frozen=True)
class ClassifierError:
    kind: str  # timeout | unavailable | malformed
    detail: str


ClassifierResult = Union[Verdict, ClassifierError]


def no_media_verdict(context: SessionContext) -> Verdict:
    return Verdict(
        is_drifting=False,
        actual_task=context.task_title,
        reasons=NO_MEDIA_REASON,
        source="no_media",
    )


def fallback_verdict(context: SessionContext) -> Verdict:
    return Verdict(
        is_drifting=False,
        actual_task=context.task_title,
        reasons=FALLBACK_REASON,
        source="fallback",
    )


def decode_image(raw: Optional[str], kind: str, max_bytes: int) -> Optional[SensorImage]:
    """
    base64 문자열 또는 data URI를 디코딩합니다.
    비어 있거나, 디코딩이 안 되거나, max_bytes 를 넘으면 None (제외).
    """
    if not raw or not raw.strip():
        return None

    raw = raw.strip()
    mime_type = "image/jpeg"
    if raw.startswith("data:"):
        header, _, raw = raw.partition(",")
        declared = header[len("data:"):].split(";")[0]
        if declared:
            mime_type = declared

    try:
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("%s image rejected: not valid base64", kind)
        return None

    if not data:
        return None

    if len(data) > max_bytes:
        logger.warning(
            "%s image rejected: %.2f MB (max %.2f MB)",
            kind, len(data) / 1024 / 1024, max_bytes / 1024 / 1024,
        )
        return None

    return SensorImage(kind=kind, data=data, mime_type=mime_type)


def build_prompt(context: SessionContext, images: List[SensorImage]) -> str:
    kinds = ", ".join(
        "webcam frame of the user" if img.kind == "camera" else "screenshot of the user's screen"
        for img in images
    )
    return f"""
    You are a focus coach watching over a person who is trying to work.
    Decide whether the person is drifting away from what they said they would do.

    [Context]
    - Guiding goal: {context.user_goal}
    - Current task: {context.task_title}
    - Task description: {context.task_description or "(none)"}

    [Attached images]
    {kinds}

    Answer strictly as JSON with the fields is_drifting, actual_current_task, reasons,
    and optionally user_mood and mood_reason. Only report drifting when the images clearly
    show activity unrelated to the task.
    """


def parse_output(response) -> ClassifierOutput:
    """
    Gemini 응답 -> ClassifierOutput. 형식이 맞지 않으면 ValueError / ValidationError.
    """
    parsed = getattr(response, "parsed", None)
    if isinstance(parsed, ClassifierOutput):
        return parsed
    if isinstance(parsed, dict):
        return ClassifierOutput.model_validate(parsed)

    text = getattr(response, "text", None)
    if not text:
        raise ValueError("empty classifier response")
    return ClassifierOutput.model_validate(json.loads(text))


class ClassifierGateway:
    def __init__(
        self,
        client=None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_image_bytes: Optional[int] = None,
    ):
        self._client = client
        self.model = model or settings.CLASSIFIER_MODEL
        self.timeout = timeout if timeout is not None else settings.CLASSIFIER_TIMEOUT_SECONDS
        self.max_image_bytes = max_image_bytes or settings.MAX_IMAGE_BYTES

    @property
    def client(self):
        if self._client is None:
            self._client = genai.Client(api_key=settings.GEMINI_API_KEY)
        return self._client

    def prepare_images(
        self, camera_image: Optional[str], screen_image: Optional[str]
    ) -> List[SensorImage]:
        images = [
            decode_image(camera_image, "camera", self.max_image_bytes),
            decode_image(screen_image, "screen", self.max_image_bytes),
        ]
        return [img for img in images if img is not None]

    async def request_verdict(
        self, context: SessionContext, images: List[SensorImage]
    ) -> ClassifierResult:
        contents = [build_prompt(context, images)]
        contents.extend(
            types.Part.from_bytes(data=img.data, mime_type=img.mime_type) for img in images
        )

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config={
                        "response_mime_type": "application/json",
                        "response_schema": ClassifierOutput,
                    },
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return ClassifierError(kind="timeout", detail=f"no response within {self.timeout}s")
        except Exception as e:
            return ClassifierError(kind="unavailable", detail=str(e))

        try:
            output = parse_output(response)
        except (ValidationError, ValueError) as e:
            return ClassifierError(kind="malformed", detail=str(e))

        return Verdict(
            is_drifting=output.is_drifting,
            actual_task=output.actual_current_task,
            reasons=output.reasons,
            mood=output.user_mood,
            mood_reason=output.mood_reason,
        )

    async def classify(
        self,
        context: SessionContext,
        camera_image: Optional[str] = None,
        screen_image: Optional[str] = None,
    ) -> Verdict:
        images = self.prepare_images(camera_image, screen_image)
        if not images:
            logger.warning("No usable images, returning default focused verdict")
            return no_media_verdict(context)

        result = await self.request_verdict(context, images)
        if isinstance(result, ClassifierError):
            logger.warning("Classifier %s (%s), assuming focused", result.kind, result.detail)
            return fallback_verdict(context)
        return result
