"""
Centralised settings loader (pydantic-settings).

Every field can be overridden from the environment or a local `.env`
file; names map case-insensitively (``DATABASE_URL`` → ``database_url``).
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime / DB ────────────────────────────────────────────────
    env_name: str = "local"
    database_url: str | None = None
    log_level: str = "INFO"

    # ─── planning windows ────────────────────────────────────────────
    expiry_window_days: int = Field(7, ge=0)
    recent_cooking_days: int = Field(14, ge=0)
    plan_include_breakfast: bool = False

    # ─── preference row read-modify-write ────────────────────────────
    preference_update_retries: int = Field(3, ge=1)

    # allow other teammates’ env-vars without crashing
    model_config = SettingsConfigDict(
        extra="ignore", env_file=".env", env_file_encoding="utf-8"
    )


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()


settings: _Settings = _cached()
