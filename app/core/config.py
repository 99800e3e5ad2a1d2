from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import validator
import logging

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    # API 설정
    PROJECT_NAME: str = "Freelance Marketplace Chat API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # 환경 설정
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # 로깅 설정
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(levelname)s - %(name)s - %(message)s"
    LOG_FILE: Optional[str] = None

    # JWT 설정
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7일

    # Database settings
    DATABASE_URL: str
    SQLALCHEMY_DATABASE_URL: Optional[str] = None

    # 실시간 브로드캐스트 설정 (memory | redis)
    BROADCAST_BACKEND: str = "memory"
    BROADCAST_CHANNEL: str = "marketplace:broadcast"
    REDIS_URL: Optional[str] = None

    # 채팅 설정
    MAX_MESSAGE_LENGTH: int = 5000

    # 에러 추적 (Sentry)
    SENTRY_DSN: Optional[str] = None

    # Frontend URL / CORS 설정
    CLIENT_URL: str = "http://localhost:5173"
    BACKEND_CORS_ORIGINS_STR: Optional[str] = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        logger.info(f"Environment: {self.ENVIRONMENT}")

    @validator("SQLALCHEMY_DATABASE_URL", pre=True, always=True)
    def assemble_db_url(cls, v: Optional[str], values: dict) -> str:
        if v:
            return v
        return values.get("DATABASE_URL", "")

    @validator("BROADCAST_BACKEND", pre=True)
    def normalize_broadcast_backend(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
        if v not in ("memory", "redis"):
            raise ValueError("BROADCAST_BACKEND must be 'memory' or 'redis'")
        return v

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        if self.BACKEND_CORS_ORIGINS_STR is None or self.BACKEND_CORS_ORIGINS_STR == "":
            return [self.CLIENT_URL, "http://localhost:3000"]
        if self.BACKEND_CORS_ORIGINS_STR == "*":
            return ["*"]
        return [i.strip() for i in self.BACKEND_CORS_ORIGINS_STR.split(",")]

    class Config:
        case_sensitive = True
        env_file = ".env"

settings = Settings()
