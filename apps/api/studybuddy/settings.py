from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


# Find .env in the parent directory of this file (apps/api/)
ENV_FILE = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore")

    env: str = "local"
    log_level: str = "INFO"

    database_url: str = ""

    openai_api_key: str = ""
    openai_base_url: str = ""  # e.g. https://api.openai.com/v1
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0

    # Optional JSON file overriding the built-in moderation word lists.
    moderation_rules_file: str = ""

    otp_ttl_seconds: int = 300
    otp_resend_after_seconds: int = 60
    expose_otp_in_logs: bool = False  # dev only; never enable in production

    max_history_messages: int = 10
    session_ttl_seconds: int = 3600  # idle sessions are dropped after this

    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
    ]


settings = Settings()
