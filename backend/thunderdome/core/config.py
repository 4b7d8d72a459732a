"""
Service settings, read once from the environment (or .env).

An empty provider key means that provider is not configured: its models stay
in the catalogue but every call fails fast with "<Provider> client not configured".
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_GUEST_LIMIT = 20

# Public value; anyone can sign sessions with it
DEFAULT_SESSION_SECRET = "complex_password_at_least_32_characters_long"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Provider credentials (empty = provider not configured)
    # ------------------------------------------------------------------
    openai_api_key:    str = ""
    anthropic_api_key: str = ""
    google_ai_api_key: str = ""

    # ------------------------------------------------------------------
    # Provider call shaping
    # ------------------------------------------------------------------
    anthropic_default_max_tokens: int = 8192   # Anthropic rejects requests without max_tokens

    # None = no hard deadline; abort signals are still honoured
    stream_timeout_seconds: float | None = None

    # Diagnostics probe (python -m thunderdome.diagnostics.probe)
    probe_timeout_seconds:   float = 30.0
    probe_max_output_tokens: int   = 100

    # ------------------------------------------------------------------
    # Evaluation judge
    # ------------------------------------------------------------------
    judge_provider: str = "google"
    judge_model:    str = "gemini-2.5-flash"

    # ------------------------------------------------------------------
    # Session auth
    # ------------------------------------------------------------------
    auth_password:           str = ""
    session_secret:          str = DEFAULT_SESSION_SECRET
    session_cookie_name:     str = "thunderdome_session"
    session_max_age_seconds: int = 60 * 60 * 24   # 24 hours

    # ------------------------------------------------------------------
    # Guest quota
    # ------------------------------------------------------------------
    guest_daily_execution_limit: int = _DEFAULT_GUEST_LIMIT

    # ------------------------------------------------------------------
    # Saved configurations
    # ------------------------------------------------------------------
    config_storage_dir: str = "data/configs"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @field_validator("guest_daily_execution_limit", mode="before")
    @classmethod
    def _positive_guest_limit(cls, value: object) -> int:
        """Invalid or non-positive limits fall back to the default."""
        try:
            parsed = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return _DEFAULT_GUEST_LIMIT
        return parsed if parsed > 0 else _DEFAULT_GUEST_LIMIT

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def uses_default_session_secret(self) -> bool:
        return self.session_secret == DEFAULT_SESSION_SECRET


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
