"""Application configuration loaded from environment variables.

Uses ``pydantic-settings`` for automatic env-var loading, type coercion,
and ``.env`` file support.  Validates required settings on import -- fails
fast if critical vars are missing outside of tests.
"""

VERSION = "0.1.0"

import sys

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------------------------------------------------------------------------
# Required var names -- checked after instantiation (not during), so tests
# that leave them blank still work.
# ---------------------------------------------------------------------------
_REQUIRED_VARS: list[str] = [
    "DATABASE_URL",
]


class Settings(BaseSettings):
    """Application settings -- sourced from environment / ``.env`` file.

    Required vars (must be set in production, may be blank in test):
      DATABASE_URL

    ``ANTHROPIC_API_KEY`` is optional: without it every analysis run is
    recorded as degraded (static metrics only).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- required in production (default empty so tests don't fail) --
    DATABASE_URL: str = ""

    # -- optional with sensible defaults --
    FRONTEND_URL: str = "http://localhost:5173"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # asyncpg pool
    DB_POOL_MIN_SIZE: int = Field(default=1, ge=1)
    DB_POOL_MAX_SIZE: int = Field(default=10, ge=1)
    DB_MAX_RETRIES: int = Field(default=4, ge=0)  # dead-connection retries per query

    ANTHROPIC_API_KEY: str = ""
    ANALYSIS_MODEL: str = "claude-3-haiku-20240307"
    ANALYSIS_MAX_TOKENS: int = Field(default=4000, ge=1)

    # Collector bounds
    ANALYSIS_MAX_FILES: int = Field(default=100, ge=1)
    ANALYSIS_MAX_FILE_BYTES: int = Field(default=100_000, ge=1)

    # Sort every directory listing by path before traversal.  Off by default:
    # the sample then follows whatever order GitHub returns listings in,
    # which can change between calls.
    ANALYSIS_SORT_LISTINGS: bool = False


settings = Settings()


# Validate at import time -- but only when NOT running under pytest.
if "pytest" not in sys.modules:
    _missing = [v for v in _REQUIRED_VARS if not getattr(settings, v)]
    if _missing:
        print(
            f"[config] FATAL: missing required environment variables: "
            f"{', '.join(_missing)}",
            file=sys.stderr,
        )
        sys.exit(1)
