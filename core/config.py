"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the E-Learning API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
or accept a Settings instance instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The app
      lifespan builds the AuthService from that one instance, so the service
      never reaches for process-global state on its own.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation of the three token
      secrets. Unlike a single SECRET_KEY there is no dev-mode fallback: a
      missing secret is a hard startup failure in every environment.

Security notes:
  [S1] Each secret must be at least 32 characters. HS256 signing relies on
       key entropy -- a short key weakens every token of that class.

  [S2] The three secrets must be pairwise distinct. If the access and refresh
       secrets were equal, an access token would verify as a refresh token and
       the two token classes would collapse into one.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
cache/, mail/, or media/.
"""

import logging
from functools import lru_cache
from itertools import combinations
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("elearning.config")

_ROOT = Path(__file__).resolve().parent.parent

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Secrets have no usable default. Everything else does, so tests only need
    to export the three secrets before the first get_settings() call.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Token secrets and lifetimes
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; the validator below
    # refuses to build a Settings object while any of them is empty.
    activation_secret: str = ""
    access_token_secret: str = ""
    refresh_token_secret: str = ""

    activation_token_expire_seconds: int = 300
    access_token_expire_minutes: int = 5
    refresh_token_expire_days: int = 3

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_ROOT / 'auth' / 'elearning_users.db'}"
    session_db_path: str = str(_ROOT / "cache" / "elearning_sessions.db")
    # Non-empty switches the session cache from SQLite to Redis.
    redis_url: str = ""

    # ------------------------------------------------------------------
    # Mail (empty smtp_host = log instead of send)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = ""

    # ------------------------------------------------------------------
    # Avatar storage (Cloudinary)
    # ------------------------------------------------------------------

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.refresh_token_expire_days * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Refuse to start unless all three secrets are present, long, and distinct.

        Raising here means Settings() fails inside the lifespan startup, before
        uvicorn accepts a single connection [S1] [S2].
        """
        secrets = {
            "ACTIVATION_SECRET": self.activation_secret,
            "ACCESS_TOKEN_SECRET": self.access_token_secret,
            "REFRESH_TOKEN_SECRET": self.refresh_token_secret,
        }
        missing = [name for name, value in secrets.items() if not value]
        if missing:
            raise ValueError(
                f"{', '.join(missing)} must be set. "
                "Set them in your environment or .env file."
            )
        for name, value in secrets.items():
            if len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name} must be at least {_MIN_SECRET_LENGTH} characters.")
        for (name_a, value_a), (name_b, value_b) in combinations(secrets.items(), 2):
            if value_a == value_b:
                raise ValueError(f"{name_a} and {name_b} must be different.")

        if self.access_token_expire_minutes <= 0 or self.refresh_token_expire_days <= 0:
            raise ValueError("Token lifetimes must be positive.")
        if not self.secure_cookies:
            logger.warning("SECURE_COOKIES is disabled -- auth cookies will be sent over plain HTTP.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
