from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from env vars and local env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    chat_api_base_url: str = Field(default="http://0.0.0.0:8080", alias="CHAT_API_BASE_URL")
    chat_api_timeout_seconds: float = Field(default=60.0, alias="CHAT_API_TIMEOUT_SECONDS", gt=0)
    conversation_api_base_url: str | None = Field(default=None, alias="CONVERSATION_API_BASE_URL")
    chat_default_timezone: str = Field(default="UTC", alias="CHAT_DEFAULT_TIMEZONE")

    transcript_load_max_retries: int = Field(default=3, alias="TRANSCRIPT_LOAD_MAX_RETRIES", ge=0)
    transcript_load_base_delay_seconds: float = Field(
        default=1.0,
        alias="TRANSCRIPT_LOAD_BASE_DELAY_SECONDS",
        ge=0,
    )

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.app_env.lower() == "local" else "INFO"

    @property
    def effective_conversation_api_base_url(self) -> str:
        return self.conversation_api_base_url or self.chat_api_base_url


@lru_cache
def get_settings() -> Settings:
    return Settings()
