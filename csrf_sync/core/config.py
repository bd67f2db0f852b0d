from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from csrf_sync.core.csrf import (
    CSRF_HEADER_NAME,
    CSRF_SESSION_KEY,
    DEFAULT_IGNORED_METHODS,
    DEFAULT_TOKEN_SIZE,
    REQUEST_METHODS,
)


class Settings(BaseSettings):
    project_name: str = Field(default="csrf-sync demo")
    secret_key: str = Field(...)
    session_cookie_name: str = Field(default="session")
    session_cookie_secure: bool = Field(default=True)
    session_cookie_max_age: int = Field(default=60 * 60 * 4)
    session_cookie_same_site: Literal["lax", "strict", "none"] = Field(default="lax")
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @model_validator(mode="after")
    def validate_security(self) -> "Settings":
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long.")
        return self


class CsrfSettings(BaseSettings):
    """Guard options read from ``CSRF_*`` environment variables."""

    ignored_methods: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORED_METHODS))
    size: int = Field(default=DEFAULT_TOKEN_SIZE)
    header_name: str = Field(default=CSRF_HEADER_NAME)
    form_field: str | None = Field(default=None)
    session_key: str = Field(default=CSRF_SESSION_KEY)
    error_status_code: int = Field(default=403)
    error_message: str = Field(default="invalid csrf token")
    error_code: str | None = Field(default="EBADCSRFTOKEN")

    model_config = SettingsConfigDict(
        env_prefix="CSRF_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("ignored_methods")
    @classmethod
    def normalize_methods(cls, value: list[str]) -> list[str]:
        methods = [method.strip().upper() for method in value]
        unknown = sorted(set(methods) - REQUEST_METHODS)
        if unknown:
            raise ValueError(f"Unknown HTTP method(s): {', '.join(unknown)}")
        return methods

    @model_validator(mode="after")
    def validate_guard(self) -> "CsrfSettings":
        if self.size <= 0:
            raise ValueError("CSRF_SIZE must be a positive number of bytes.")
        if not 400 <= self.error_status_code <= 599:
            raise ValueError("CSRF_ERROR_STATUS_CODE must be a 4xx or 5xx status.")
        if not self.session_key:
            raise ValueError("CSRF_SESSION_KEY must not be empty.")
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_csrf_settings() -> CsrfSettings:
    return CsrfSettings()
