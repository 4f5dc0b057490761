from functools import lru_cache
import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CACHE_DIR = Path.home() / ".cache" / "stackeer"


def _find_env_file() -> Path | None:
    """Find .env file in project root."""
    current = Path(__file__).parent
    for _ in range(3):
        env_file = current / ".env"
        if env_file.exists():
            return env_file
        current = current.parent
    cwd_env = Path(".env")
    if cwd_env.exists():
        return cwd_env
    return None


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or .env."""

    cache_dir: Path = Field(default=DEFAULT_CACHE_DIR, alias="STACKEER_CACHE_DIR")
    http_timeout: float = Field(default=15.0, gt=0, alias="STACKEER_HTTP_TIMEOUT")
    max_attempts: int = Field(default=4, ge=1, alias="STACKEER_MAX_ATTEMPTS")
    default_ttl_hours: int = Field(default=72, ge=0, alias="STACKEER_DEFAULT_TTL_HOURS")
    log_level: str = Field(default="INFO", alias="STACKEER_LOG_LEVEL")
    user_agent: str = Field(default="stackeer/0.1", alias="STACKEER_USER_AGENT")

    model_config = SettingsConfigDict(
        env_file=_find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
