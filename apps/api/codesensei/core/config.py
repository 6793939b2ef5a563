from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    # 공급자 선택(기본: gemini, 필요 시 openai로 전환)
    ai_provider: Literal["gemini", "openai"] = "gemini"
    ai_request_timeout_sec: int = 30
    ai_max_concurrency: int = 4
    ai_backpressure_acquire_timeout_ms: int = 200

    # 프런트엔드 시절 키 이름도 그대로 허용
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GEMINI_API_KEY",
            "GOOGLE_GENERATIVE_AI_API_KEY",
            "NEXT_PUBLIC_GENAI_API_KEY",
        ),
    )
    gemini_model: str = "gemini-1.5-flash"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"

    retry_max_attempts: int = 3
    retry_base_delay_sec: float = 1.0

    database_url: str = "sqlite:///./codesensei.db"
    redis_url: str = ""
    question_ttl_sec: int = 24 * 60 * 60
    question_cache_ttl_sec: int = 60 * 60
    topics_cache_ttl_sec: int = 30 * 60

    jwt_secret: str = "change-this-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60

    rate_limit_requests: int = 100
    rate_limit_window_sec: int = 900

    default_user_id: str = "default_user"
    default_email_domain: str = "codesensei.local"

    piston_base_url: str = "https://emkc.org/api/v2/piston"
    execution_timeout_sec: int = 15

    media_root: str = "./media"
    media_base_url: str = "/media"
    max_image_bytes: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(env_file="../../.env", extra="ignore")

    @property
    def ai_configured(self) -> bool:
        if self.ai_provider == "openai":
            return bool(self.openai_api_key)
        return bool(self.gemini_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
