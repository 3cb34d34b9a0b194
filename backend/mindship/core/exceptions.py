# 파일 위치: backend/mindship/core/exceptions.py
"""
드리프트 파이프라인의 도메인 예외.

- 입력 오류(DriftError 하위 클래스)는 status_code를 가지고 있으며
  main.py의 exception handler가 그대로 4xx 응답으로 변환합니다.
- 외부 서비스 오류(ConversationServiceError, SpeechServiceError)는
  각 서비스 경계에서 fallback으로 흡수됩니다.
- PublishError 만이 안전한 대체값이 없어 호출자까지 전파됩니다.
"""


class DriftError(Exception):
    status_code = 400
    error = "drift_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionNotFound(DriftError):
    status_code = 404
    error = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class NoSensorData(DriftError):
    status_code = 400
    error = "no_sensor_data"

    def __init__(self):
        super().__init__("At least one image (camera or screen) is required")


class SessionEnded(DriftError):
    status_code = 409
    error = "session_ended"

    def __init__(self, session_id: str):
        super().__init__(f"Session already ended: {session_id}")
        self.session_id = session_id


class ConversationServiceError(Exception):
    """대화형 텍스트 생성 실패 (빈 응답 포함)"""


class SpeechServiceError(Exception):
    """TTS 변환 실패"""


class PublishError(Exception):
    """라이브 채널 전송 실패"""
