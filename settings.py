"""Application settings loaded from environment variables and an optional .env file"""
import logging
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Chat service configuration (env prefix CHAT_)"""

    database_path: str = "chat_history.db"

    jwt_secret: SecretStr = Field(
        default=SecretStr("dev-only-secret-change-me-in-production-0000"),
        description="Shared secret used to verify access tokens",
    )
    jwt_algorithm: str = "HS256"
    access_token_ttl_minutes: int = 15

    max_message_length: int = 2000
    default_page_size: int = 20
    max_page_size: int = 50
    joined_history_size: int = 20

    # Upper bound for a single storage or lookup call
    storage_timeout_seconds: float = 5.0
    # Upper bound for delivering one event to one connection
    broadcast_send_timeout_seconds: float = 5.0

    send_rate_limit_messages: int = 5
    send_rate_limit_window_seconds: float = 1.0
    send_rate_limit_cooldown_seconds: float = 2.0

    host: str = "localhost"
    port: int = 8765
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CHAT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server process"""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
