"""
Two-Stage API Key Validation

DESIGN DECISION: Key validation happens in two distinct stages:

STAGE 1 - GENERIC CHECKS:
- Empty / whitespace-only keys
- Minimum length shared by every provider

STAGE 2 - PROVIDER POLICY:
- Expected prefix (e.g. "sk-" for DashScope, "AIza" for Gemini)
- Allowed length range
- Allowed character set

WHY LOCAL ONLY:
Validation never touches the network. It catches typos and pasted
fragments before a key is stored, not revoked or mistyped accounts.

IMPORTANT: Validation NEVER silently fixes a key beyond trimming
surrounding whitespace, and never echoes the key in its reasons.
"""

import re
from dataclasses import dataclass

from expense_parser.models.expense import ApiKeyValidationResult, RemoteProvider


GENERIC_MIN_LENGTH = 10


@dataclass(frozen=True)
class KeyPolicy:
    """Format rules for one provider's API keys."""

    prefix: str
    min_length: int
    max_length: int
    charset: re.Pattern
    charset_description: str


KEY_POLICIES: dict[RemoteProvider, KeyPolicy] = {
    RemoteProvider.DASHSCOPE: KeyPolicy(
        prefix="sk-",
        min_length=20,
        max_length=100,
        charset=re.compile(r"[A-Za-z0-9_-]+"),
        charset_description="letters, digits, '-' and '_'",
    ),
    RemoteProvider.GEMINI: KeyPolicy(
        prefix="AIza",
        min_length=39,
        max_length=39,
        charset=re.compile(r"[A-Za-z0-9_-]+"),
        charset_description="letters, digits, '-' and '_'",
    ),
}


class ApiKeyValidator:
    """
    Validates API keys through a two-stage pipeline.

    Stateless and free of I/O; safe to call from any thread.
    """

    def __init__(self, policies: dict[RemoteProvider, KeyPolicy] = None):
        self._policies = policies or KEY_POLICIES

    def _validate_generic(self, key: str) -> list[str]:
        """
        Stage 1: checks that apply to every provider.

        Returns: list of failure reasons
        """
        if not key:
            return ["API key cannot be empty"]
        if len(key) < GENERIC_MIN_LENGTH:
            return [f"API key is too short (minimum {GENERIC_MIN_LENGTH} characters)"]
        return []

    def _validate_policy(self, key: str, provider: RemoteProvider) -> list[str]:
        """
        Stage 2: provider-specific format rules.

        Returns: list of failure reasons
        """
        policy = self._policies.get(provider)
        if policy is None:
            return []

        issues = []
        name = provider.display_name

        if not key.startswith(policy.prefix):
            issues.append(f"{name} API keys must start with '{policy.prefix}'")

        if policy.min_length == policy.max_length and len(key) != policy.min_length:
            issues.append(f"{name} API keys must be exactly {policy.min_length} characters long")
        elif not policy.min_length <= len(key) <= policy.max_length:
            issues.append(
                f"{name} API keys must be {policy.min_length}-{policy.max_length} characters long"
            )

        if not policy.charset.fullmatch(key):
            issues.append(
                f"API key contains invalid characters (allowed: {policy.charset_description})"
            )

        return issues

    def validate(self, key: str, provider: RemoteProvider) -> ApiKeyValidationResult:
        """
        Run both stages and return a structured result.

        Stage 2 is skipped when stage 1 fails. Only the first
        reason is reported to keep the message actionable.
        """
        candidate = (key or "").strip()

        issues = self._validate_generic(candidate)
        if not issues:
            issues = self._validate_policy(candidate, provider)

        if issues:
            return ApiKeyValidationResult(is_valid=False, reason=issues[0])
        return ApiKeyValidationResult(is_valid=True, reason=None)
