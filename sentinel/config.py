"""Runtime settings, read from the environment."""
import os
from dataclasses import dataclass


DEFAULT_DATABASE_URL = "sqlite:///./sentinel.db"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


def _database_url() -> str:
    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    # Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str
    gemini_api_key: str
    gemini_model: str
    gemini_base_url: str
    gemini_timeout: float
    log_level: str
    log_format: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=_database_url(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
            gemini_timeout=float(os.getenv("GEMINI_TIMEOUT", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
        )


settings = Settings.from_env()
