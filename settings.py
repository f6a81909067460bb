"""
Service configuration, read from environment variables (and a local .env file).
"""
import os
from enum import Enum
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class ResponseMode(str, Enum):
    SCHEMA_CONSTRAINED = "schema"
    PROMPT_ONLY = "prompt"


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: str) -> str:
    # Hosted Postgres providers hand out postgres:// URLs; SQLAlchemy wants an explicit driver.
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


class Settings:
    def __init__(self, environ=None):
        env = os.environ if environ is None else environ

        self.GEMINI_API_KEY: Optional[str] = env.get("GEMINI_API_KEY") or None
        self.GEMINI_MODEL: str = env.get("GEMINI_MODEL", "gemini-2.0-flash")
        self.RESPONSE_MODE_RAW: str = env.get("RESPONSE_MODE", ResponseMode.SCHEMA_CONSTRAINED.value)

        self.DATABASE_URL: str = normalize_database_url(env.get("DATABASE_URL", "sqlite:///./users.db"))
        self.CREATE_TABLES: bool = _as_bool(env.get("CREATE_TABLES"), True)

        self.LOG_LEVEL: str = env.get("LOG_LEVEL", "INFO").upper()
        self.PORT: int = int(env.get("PORT", "8000"))

    @property
    def response_mode(self) -> ResponseMode:
        try:
            return ResponseMode(self.RESPONSE_MODE_RAW.strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in ResponseMode)
            raise RuntimeError(f"Invalid RESPONSE_MODE {self.RESPONSE_MODE_RAW!r}; expected one of: {allowed}")

    def require_keys(self) -> None:
        """Raise if the service cannot start with this configuration."""
        if not self.GEMINI_API_KEY:
            raise RuntimeError("Missing required environment variable: GEMINI_API_KEY")
        self.response_mode  # raises on an unknown mode


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
