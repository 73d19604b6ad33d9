"""Paygent-Engine configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class PaygentSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PAYGENT_")

    environment: str = "development"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/paygent.db"
    db_echo: bool = False

    # API
    api_title: str = "Paygent-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Logging
    log_level: str = "INFO"

    # Billing
    default_billing_timezone: str = "UTC"
    billing_hour: int = 12  # local hour fee due dates are pinned to
    default_period_days: int = 7  # only used for daily averages

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"PAYGENT_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default admin key, set PAYGENT_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> PaygentSettings:
    settings = PaygentSettings()
    settings.validate_for_production()
    return settings
