"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SimpleAuth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. store_backend -> STORE_BACKEND).

  @model_validator(mode="after"): Cross-field rules that a single Field()
      constraint cannot express -- the SQL backend needs a URL, and the
      bootstrap admin is all-or-nothing.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("simpleauth.config")


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

    # Starlette debug mode: unhandled errors render a traceback page instead
    # of the generic 500 envelope. Never enable in production.
    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # User store
    # ------------------------------------------------------------------

    # "memory" keeps everything in process; "sql" uses SqlUserStore.
    store_backend: Literal["memory", "sql"] = "memory"
    database_url: str = ""
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Bootstrap admin (optional). /users is admin-only and registration
    # always creates members, so this is the only way to get an admin.
    # ------------------------------------------------------------------

    admin_username: str = ""
    admin_email: str = ""
    admin_password: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_store(self) -> "Settings":
        """Reject configurations the lifespan could not act on.

        STORE_BACKEND=sql without DATABASE_URL would silently fall back to
        nothing, so it fails at startup. The three ADMIN_* values must be set
        together; a partial set is almost always a typo in the .env file.
        """
        if self.store_backend == "sql" and not self.database_url:
            raise ValueError("DATABASE_URL is required when STORE_BACKEND=sql.")
        admin_fields = (self.admin_username, self.admin_email, self.admin_password)
        if any(admin_fields) and not all(admin_fields):
            raise ValueError("ADMIN_USERNAME, ADMIN_EMAIL and ADMIN_PASSWORD must be set together.")
        if self.store_backend == "memory" and self.database_url:
            logger.warning("DATABASE_URL is ignored because STORE_BACKEND=memory")
        return self

    @property
    def bootstrap_admin(self) -> bool:
        return bool(self.admin_username)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
