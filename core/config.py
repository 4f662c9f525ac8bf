"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for pagedesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. base_url -> BASE_URL, mongo_url -> MONGO_URL).

  @model_validator(mode="after"): cross-field validation once every field is
      resolved. SECRET_KEY follows the DEBUG-conditional policy; BASE_URL must
      be present so pagination links are never built from a missing value.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
catalog/, or store/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("pagedesk.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # Absolute origin used to build nextPage / prevPage links.
    base_url: str = "http://localhost:8000"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "pagedesk"

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    default_page_size: int = 10
    max_page_size: int = 100

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 3600
    bcrypt_rounds: int = 10
    otp_ttl_seconds: int = 300
    login_rate_limit: str = "10/minute"
    rate_limit_storage: str = "memory://"
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_base_url(self) -> "Settings":
        """Require BASE_URL and drop any trailing slash.

        Pagination links are "{base_url}/api/...", so a trailing slash would
        produce a double slash and an empty value a relative, broken link.
        """
        self.base_url = self.base_url.strip().rstrip("/")
        if not self.base_url:
            raise ValueError("BASE_URL must be set to the public origin of the API, e.g. https://api.example.com")
        return self

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        if self.default_page_size < 1 or self.max_page_size < self.default_page_size:
            raise ValueError("Require 1 <= DEFAULT_PAGE_SIZE <= MAX_PAGE_SIZE.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
