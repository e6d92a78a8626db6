# app/config/settings.py

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "property-audit-log"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    version: str = "0.1.0"

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # --- Audit log ---
    audit_log_enabled: bool = True
    audit_log_max_age_days: int = Field(90, ge=1, description="Retention window in days")
    audit_log_exclude_paths: List[str] = Field(
        default_factory=lambda: [
            "/health",
            "/health/live",
            "/health/ready",
            "/metrics",
            "/docs",
            "/openapi.json",
        ]
    )
    audit_log_exclude_status_codes: List[int] = Field(default_factory=list)
    audit_log_sensitive_fields: List[str] = Field(
        default_factory=lambda: [
            "password",
            "password_hash",
            "current_password",
            "new_password",
            "token",
            "access_token",
            "refresh_token",
            "secret",
            "api_key",
        ]
    )
    audit_log_redaction: str = "***REDACTED***"


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
