"""
Core Data Models for the Expense Parser

These models define the values that flow out of every parse:
1. ParseResult - the structured expense record handed to the caller
2. ApiKeyValidationResult - the outcome of a local credential check
3. CredentialStatus - a secret-free overview of configured providers

DESIGN DECISION: Results are frozen Pydantic models.
A ParseResult is built once per call and never mutated afterwards,
so it can be shared between the UI, the audit trail and the caller.
"""

import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ParseSource(str, Enum):
    """Which extractor produced the result returned to the caller."""
    LOCAL = "local"
    REMOTE = "remote"


class ExpenseCategory(str, Enum):
    """
    Default spending categories.

    The values are the labels shown to the user. HOUSING and OTHER are
    never inferred by the local rules; OTHER is what a remote service
    answers when it cannot classify.
    """
    DINING = "餐饮"
    TRANSPORT = "交通"
    SHOPPING = "购物"
    ENTERTAINMENT = "娱乐"
    MEDICAL = "医疗"
    EDUCATION = "教育"
    LIVING = "生活"
    DIGITAL = "数码"
    HOUSING = "住房"
    OTHER = "其他"


class RemoteProvider(str, Enum):
    """
    Remote language-understanding providers.

    The value doubles as the key under which the provider's
    credential is kept in the CredentialStore.
    """
    GEMINI = "gemini_api_key"
    DASHSCOPE = "dashscope_api_key"

    @property
    def display_name(self) -> str:
        return {
            RemoteProvider.GEMINI: "Google Gemini",
            RemoteProvider.DASHSCOPE: "Alibaba Tongyi Qianwen (DashScope)",
        }[self]


# =============================================================================
# PARSE RESULT
# =============================================================================

WEAK_CONFIDENCE_THRESHOLD = 0.5


class ParseResult(BaseModel):
    """
    Structured expense record produced from one utterance.

    CRITICAL: original_text is echoed back verbatim, including "".
    A note is either meaningful text or None, never an empty string.
    """
    model_config = ConfigDict(frozen=True)

    original_text: str = Field(
        ...,
        description="Verbatim input text"
    )
    amount: Optional[float] = Field(
        default=None,
        ge=0,
        description="Parsed monetary value"
    )
    category: Optional[str] = Field(
        default=None,
        description="Inferred spending category label"
    )
    note: Optional[str] = Field(
        default=None,
        description="Residual descriptive text"
    )
    confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Self-assessed reliability (0-1)"
    )
    source: ParseSource = Field(
        ...,
        description="Provenance of the result"
    )
    provider: Optional[RemoteProvider] = Field(
        default=None,
        description="Remote provider that produced the result, if any"
    )
    suggestions: tuple[str, ...] = Field(
        default_factory=tuple,
        description="User-facing hints for correcting the record"
    )

    @field_validator("amount")
    @classmethod
    def amount_must_be_finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v

    @field_validator("note")
    @classmethod
    def empty_note_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def has_amount(self) -> bool:
        return self.amount is not None and self.amount > 0

    @property
    def is_weak(self) -> bool:
        """True when the result should be double-checked by the user."""
        return self.confidence is None or self.confidence < WEAK_CONFIDENCE_THRESHOLD


# =============================================================================
# CREDENTIAL MODELS
# =============================================================================

class ApiKeyValidationResult(BaseModel):
    """Outcome of a local (no network) credential format check."""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    reason: Optional[str] = None


class CredentialStatus(BaseModel):
    """
    Configuration overview for one provider.

    Safe to display or log: holds only a masked form of the secret.
    """
    model_config = ConfigDict(frozen=True)

    provider: RemoteProvider
    is_configured: bool
    masked_value: Optional[str] = None

    @property
    def display_status(self) -> str:
        if self.is_configured:
            return f"Configured ({self.masked_value})" if self.masked_value else "Configured"
        return "Not configured"
