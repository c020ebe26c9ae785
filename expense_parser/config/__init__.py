"""Configuration package."""

from expense_parser.config.settings import (
    CredentialSettings,
    ParserSettings,
    RemoteSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "CredentialSettings",
    "ParserSettings",
    "RemoteSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
