"""Validation package."""

from expense_parser.validation.validator import ApiKeyValidator, KeyPolicy, KEY_POLICIES

__all__ = ["ApiKeyValidator", "KeyPolicy", "KEY_POLICIES"]
