"""
Data Models Package

This package contains all Pydantic models and the error taxonomy
shared by the extractor, the remote clients and the orchestrator.
"""

from expense_parser.models.expense import (
    ApiKeyValidationResult,
    CredentialStatus,
    ExpenseCategory,
    ParseResult,
    ParseSource,
    RemoteProvider,
)
from expense_parser.models.errors import (
    InvalidResponseError,
    MissingCredentialError,
    NetworkFailureError,
    RateLimitedError,
    RemoteErrorKind,
    RemoteUnderstandingError,
    UnknownRemoteError,
)
from expense_parser.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "ApiKeyValidationResult",
    "CredentialStatus",
    "ExpenseCategory",
    "ParseResult",
    "ParseSource",
    "RemoteProvider",
    # Errors
    "InvalidResponseError",
    "MissingCredentialError",
    "NetworkFailureError",
    "RateLimitedError",
    "RemoteErrorKind",
    "RemoteUnderstandingError",
    "UnknownRemoteError",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
