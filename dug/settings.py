from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the dug browser.

    Values are loaded from environment variables and `.env`.

    Notes:
    - Passwords given here are only used for auto-connect; they are never
      written to the recent-connections file.
    - The debug log stays off unless DUG_DEBUG (or DEBUG) names a namespace.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Default instance / credentials
    HARPER_URL: str | None = Field(default=None)
    HARPER_USER: str | None = Field(default=None)
    HARPER_PASSWORD: str | None = Field(default=None)

    # Local state (recent connections, debug log)
    DUG_HOME: Path = Field(default=Path.home() / ".dug")
    DUG_MAX_RECENT: int = Field(default=10)

    # Debug logging: namespace pattern such as "dug:*" or "dug:api,dug:nav"
    DUG_DEBUG: str | None = Field(default=None)
    DEBUG: str | None = Field(default=None)
    DUG_LOG_LEVEL: str = Field(default="DEBUG")

    # Query client
    DUG_CACHE_TTL_MS: int = Field(default=60_000)
    DUG_MAX_RETRIES: int = Field(default=3)
    DUG_BACKOFF_MS: int = Field(default=500)
    DUG_HTTP_TIMEOUT: float = Field(default=30.0)

    @property
    def debug_pattern(self) -> str | None:
        return self.DUG_DEBUG or self.DEBUG or None

    @property
    def connections_path(self) -> Path:
        return self.DUG_HOME / "connections.json"

    @property
    def debug_log_path(self) -> Path:
        return self.DUG_HOME / "debug.log"


def load_settings() -> Settings:
    return Settings()
