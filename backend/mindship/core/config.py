from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "mindship"

    ENVIRONMENT: str = "development"
    JWT_SECRET_KEY: str = "super-secret-key"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # 외부 서비스 (Gemini / ElevenLabs)
    GEMINI_API_KEY: Optional[str] = None
    CLASSIFIER_MODEL: str = "gemini-2.0-flash"
    CONVERSATION_MODEL: str = "gemini-2.0-flash"
    ELEVENLABS_API_KEY: Optional[str] = None
    ELEVENLABS_API_URL: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_VOICE_ID: str = "EXAVITQu4vr4xnSDxMaL"
    ELEVENLABS_MODEL_ID: str = "eleven_monolingual_v1"

    # 외부 호출 타임아웃 (초)
    CLASSIFIER_TIMEOUT_SECONDS: float = 20.0
    CONVERSATION_TIMEOUT_SECONDS: float = 30.0
    TTS_TIMEOUT_SECONDS: float = 20.0

    # 하트비트 / 드리프트 정책
    # 클라이언트 하트비트 주기와 반드시 같아야 함 (벽시계 차이로 계산하지 않음)
    HEARTBEAT_INTERVAL_SECONDS: int = 30
    MAX_IMAGE_BYTES: int = 3 * 1024 * 1024
    DRIFT_WINDOW: int = 5
    DRIFT_STREAK_THRESHOLD: int = 5

    # 드리프트 모니터 스윕
    MONITOR_INTERVAL_SECONDS: int = 15
    INTERVENTION_CLAIM_SECONDS: int = 120
    MONITOR_CRON_TOKEN: Optional[str] = None
    ENABLE_INTERNAL_SCHEDULER: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
