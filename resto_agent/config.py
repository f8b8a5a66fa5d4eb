"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

from resto_agent.errors import ConfigurationError

log = logging.getLogger("resto_agent.config")


class Settings(BaseSettings):
    # Reservation backend
    resto_api_url: str = ""
    backend_timeout_seconds: float = 10.0

    # Tenants (inline JSON wins over the file)
    tenants_file: str = "tenants.jsonl"
    tenants_json: str = ""

    # Call handling
    require_lookup_before_cancel: bool = True
    call_languages: str = "en"

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def api_base_url(self) -> str:
        """Backend base URL including the ``/api`` prefix."""
        return f"{self.resto_api_url.rstrip('/')}/api"

    @property
    def language_list(self) -> list[str]:
        return [lang.strip() for lang in self.call_languages.split(",") if lang.strip()]

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        # Backend URL is required
        if not self.resto_api_url:
            raise ConfigurationError(
                "RESTO_API_URL environment variable is not set. "
                "Set it in .env to point at the reservation backend."
            )
        if not self.resto_api_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"RESTO_API_URL must be an http(s) URL, got {self.resto_api_url!r}"
            )

        if self.backend_timeout_seconds <= 0:
            raise ConfigurationError(
                f"BACKEND_TIMEOUT_SECONDS must be > 0, got {self.backend_timeout_seconds}"
            )

        # Admin API key: warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.require_lookup_before_cancel:
            warnings.append(
                "REQUIRE_LOOKUP_BEFORE_CANCEL is off; cancellations are only "
                "guarded by tool descriptions."
            )

        return warnings


settings = Settings()
