"""Tests for settings and startup validation."""

import pytest

from resto_agent.config import Settings
from resto_agent.errors import ConfigurationError, ToolResult, ErrorKind


def _settings(**kwargs) -> Settings:
    defaults = dict(resto_api_url="https://resto.example.com", admin_api_key="k")
    defaults.update(kwargs)
    return Settings(**defaults)


class TestSettings:
    def test_api_base_url(self):
        assert _settings().api_base_url == "https://resto.example.com/api"
        assert _settings(resto_api_url="https://x.test/").api_base_url == "https://x.test/api"

    def test_language_list(self):
        assert _settings(call_languages="en, fr,,nl").language_list == ["en", "fr", "nl"]

    def test_defaults(self):
        s = _settings()
        assert s.backend_timeout_seconds == 10.0
        assert s.require_lookup_before_cancel is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RESTO_API_URL", "http://env.test")
        monkeypatch.setenv("REQUIRE_LOOKUP_BEFORE_CANCEL", "false")
        s = Settings()
        assert s.resto_api_url == "http://env.test"
        assert s.require_lookup_before_cancel is False


class TestValidateStartup:
    def test_valid(self):
        assert _settings().validate_startup() == []

    def test_missing_backend_url_is_fatal(self):
        with pytest.raises(ConfigurationError, match="RESTO_API_URL"):
            _settings(resto_api_url="").validate_startup()

    def test_non_http_url(self):
        with pytest.raises(ConfigurationError, match="http"):
            _settings(resto_api_url="ftp://x").validate_startup()

    def test_bad_timeout(self):
        with pytest.raises(ConfigurationError, match="BACKEND_TIMEOUT_SECONDS"):
            _settings(backend_timeout_seconds=0).validate_startup()

    def test_warnings(self):
        warnings = _settings(admin_api_key="", require_lookup_before_cancel=False).validate_startup()
        assert len(warnings) == 2
        assert "ADMIN_API_KEY" in warnings[0]


class TestToolResult:
    def test_success_text(self):
        assert ToolResult.success("done").to_text() == "done"

    def test_failure_text(self):
        result = ToolResult.failure(ErrorKind.BACKEND, "Maintenance")
        assert not result.ok
        assert result.to_text() == "error: Maintenance"
