from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./whatsapp_agent.db"
    log_level: str = "INFO"

    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o"
    moderation_model: str = "omni-moderation-latest"
    transcription_model: str = "whisper-1"
    max_completion_tokens: int = 800
    llm_timeout_seconds: float = 60.0

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"
    media_timeout_seconds: float = 30.0

    reset_keyword: str = "clear"
    # Fail-open: provider errors count as "not flagged" / "not stale".
    moderation_fail_open: bool = True
    staleness_fail_open: bool = True
    moderate_replies: bool = True

    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None
    admin_token: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
