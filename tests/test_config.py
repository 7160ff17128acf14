"""Unit tests for core/config.py -- Settings validation and defaults."""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("AUTHFLOW_API_BASE_URL", raising=False)
        cfg = Settings(_env_file=None)
        assert cfg.api_base_url == "http://localhost:3000"
        assert cfg.signin_path == "/staff/signin"
        assert cfg.sms_verify_path == "/authentication/verify-mfa-sms"
        assert cfg.request_timeout is None

    def test_trailing_slash_stripped(self):
        cfg = Settings(_env_file=None, api_base_url="https://auth.example.com/api/")
        assert cfg.api_base_url == "https://auth.example.com/api"

    def test_relative_path_made_absolute(self):
        cfg = Settings(_env_file=None, signin_path="staff/signin")
        assert cfg.signin_path == "/staff/signin"

    @pytest.mark.parametrize("url", ["ftp://example.com", "localhost:3000", ""])
    def test_non_http_base_url_rejected(self, url):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, api_base_url=url)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, request_timeout=0)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("AUTHFLOW_REQUEST_TIMEOUT", "7.5")
        monkeypatch.setenv("AUTHFLOW_LOG_LEVEL", "debug")
        get_settings.cache_clear()
        cfg = get_settings()
        assert cfg.request_timeout == 7.5
        assert cfg.log_level == "DEBUG"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
