"""
Configuration Management for the Expense Parser

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Credentials found in the environment only SEED the CredentialStore;
afterwards the store is the single source of truth, so keys can be
rotated or revoked at runtime without touching the environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from expense_parser.models.expense import RemoteProvider


class RemoteSettings(BaseSettings):
    """Remote language-understanding configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_REMOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    provider: RemoteProvider = Field(
        default=RemoteProvider.GEMINI,
        description="Which remote provider the parser escalates to"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0.0,
        le=120.0,
        description="Upper bound for a single remote call"
    )

    # Retry policy (owned by the orchestrator, never by the clients)
    max_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Remote attempts per parse, including the first"
    )
    retry_min_wait: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum backoff between attempts (seconds)"
    )
    retry_max_wait: float = Field(
        default=4.0,
        ge=0.0,
        description="Maximum backoff between attempts (seconds)"
    )

    local_confidence_threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Skip the remote call when the local result is at least this confident"
    )

    # Provider specifics
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    dashscope_model: str = Field(
        default="qwen-turbo",
        description="DashScope model to use"
    )
    dashscope_base_url: str = Field(
        default="https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation",
        description="DashScope text-generation endpoint"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    max_output_tokens: int = Field(
        default=500,
        ge=50,
        le=4096,
        description="Maximum tokens in response"
    )

    @field_validator("retry_max_wait")
    @classmethod
    def max_wait_not_below_min(cls, v: float, info) -> float:
        min_wait = info.data.get("retry_min_wait")
        if min_wait is not None and v < min_wait:
            raise ValueError("retry_max_wait cannot be smaller than retry_min_wait")
        return v


class CredentialSettings(BaseSettings):
    """
    Credentials used to seed the CredentialStore at startup.

    Kept as SecretStr so they never show up in reprs or logs.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Google Gemini API key"
    )
    dashscope_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Alibaba DashScope (Tongyi Qianwen) API key"
    )

    def seed_secrets(self) -> dict[str, str]:
        """Non-empty secrets keyed by provider credential key."""
        seeds = {
            RemoteProvider.GEMINI.value: self.gemini_api_key,
            RemoteProvider.DASHSCOPE.value: self.dashscope_api_key,
        }
        return {
            key: secret.get_secret_value().strip()
            for key, secret in seeds.items()
            if secret is not None and secret.get_secret_value().strip()
        }


class ParserSettings(BaseSettings):
    """Local extraction and session settings."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_PARSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    short_text_length: int = Field(
        default=5,
        ge=0,
        description="Inputs shorter than this get a 're-record' suggestion"
    )
    audit_buffer_size: int = Field(
        default=500,
        ge=1,
        description="How many audit events the in-memory trail keeps"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily to allow partial configuration

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def credentials(self) -> CredentialSettings:
        return CredentialSettings()

    @property
    def parser(self) -> ParserSettings:
        return ParserSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for every group that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("remote", "credentials", "parser"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
