"""
core/config.py -- Centralized client configuration via pydantic-settings.

All environment variable reads for authflow happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from AUTHFLOW_* environment
      variables and an optional .env file automatically. Type coercion and
      validation are built in.

  @model_validator(mode="after"): Normalizes the backend URL and endpoint
      paths once, so callers can join them without checking for slashes.

Layer rule: core/ is the kernel. This module may not import from auth/,
session/, or main.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authflow.config")

_DEFAULT_SESSION_DB = Path.home() / ".authflow" / "session.db"


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased and
    prefixed. E.g. `api_base_url` reads from AUTHFLOW_API_BASE_URL.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Backend
    # ------------------------------------------------------------------

    api_base_url: str = "http://localhost:3000"
    signin_path: str = "/staff/signin"
    federated_signin_path: str = "/staff/google-signin"
    sms_verify_path: str = "/authentication/verify-mfa-sms"

    # None means no local timeout -- a hung request stays in flight until the
    # server or the OS gives up.
    request_timeout: Optional[float] = None

    # ------------------------------------------------------------------
    # CLI
    # ------------------------------------------------------------------

    session_db_path: Path = _DEFAULT_SESSION_DB
    log_level: str = "WARNING"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def normalize_endpoints(self) -> "Settings":
        """Reject non-http(s) base URLs and make every path absolute.

        A trailing slash on the base URL is dropped so base + path never
        produces "//".
        """
        parsed = urlparse(self.api_base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"AUTHFLOW_API_BASE_URL must be an http(s) URL, got {self.api_base_url!r}")
        self.api_base_url = self.api_base_url.rstrip("/")

        for name in ("signin_path", "federated_signin_path", "sms_verify_path"):
            value = getattr(self, name).strip()
            if not value:
                raise ValueError(f"{name} must not be empty")
            if not value.startswith("/"):
                value = "/" + value
            setattr(self, name, value)

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive when set")

        self.log_level = self.log_level.upper()
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
