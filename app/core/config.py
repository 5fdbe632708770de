from typing import Annotated, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_PROJECT_NAME = "DeepSeek Chat API"
DEFAULT_API_PREFIX = "/api"
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Provide clear, accurate, and helpful responses. "
    "Be conversational and engaging."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    PROJECT_NAME: str = DEFAULT_PROJECT_NAME
    API_PREFIX: str = DEFAULT_API_PREFIX
    ENV: str = 'development'
    DEBUG: bool = False

    DATABASE_URL: str
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ['*']

    SECRET_KEY: str
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    AUTO_CREATE_TABLES: bool = False

    DEEPSEEK_API_KEY: Optional[str] = None
    DEEPSEEK_BASE_URL: str = 'https://api.deepseek.com'
    CHAT_MODEL: str = 'deepseek-chat'
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_TOKENS: int = 1000
    SYSTEM_PROMPT: str = DEFAULT_SYSTEM_PROMPT

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return []
            if value == '*':
                return ['*']
            return [item.strip() for item in value.split(',') if item.strip()]
        return value

    @field_validator('DEEPSEEK_API_KEY', mode='before')
    @classmethod
    def blank_key_is_missing(cls, value):  # type: ignore[override]
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def deepseek_api_base(self) -> str:
        return f"{self.DEEPSEEK_BASE_URL.rstrip('/')}/v1"


settings = Settings()
