"""
Audit Models for the Expense Parser

Every significant step of a parse is recorded as an audit event.
This provides:
1. Traceability of which extractor produced a result
2. Debugging information when the remote path degrades
3. A record of credential changes made from a settings surface

DESIGN DECISION: Audit events never contain secrets or raw input text.
Input is described by its length; credentials by their masked form.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the parsing pipeline has its own event type.
    """
    # Parsing
    PARSE_REQUESTED = "parse_requested"
    LOCAL_PARSE_COMPLETED = "local_parse_completed"
    REMOTE_PARSE_SKIPPED = "remote_parse_skipped"
    REMOTE_PARSE_SUCCEEDED = "remote_parse_succeeded"
    REMOTE_PARSE_FAILED = "remote_parse_failed"
    FALLBACK_TO_LOCAL = "fallback_to_local"
    SESSION_RESET = "session_reset"

    # Credentials
    CREDENTIAL_STORED = "credential_stored"
    CREDENTIAL_STORE_FAILED = "credential_store_failed"
    CREDENTIAL_READ_FAILED = "credential_read_failed"
    CREDENTIAL_DELETED = "credential_deleted"
    CREDENTIAL_VALIDATION_FAILED = "credential_validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'parse', 'credential')"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one parse)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.parse_requested(text_length, correlation_id)
        event = AuditEventBuilder.credential_deleted("gemini_api_key")
    """

    @staticmethod
    def parse_requested(
        text_length: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARSE_REQUESTED,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"Parse requested for {text_length} characters",
            details={
                "text_length": text_length,
            },
        )

    @staticmethod
    def local_parse_completed(
        confidence: float,
        has_amount: bool,
        category: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_PARSE_COMPLETED,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"Local parse completed with {confidence:.0%} confidence",
            details={
                "confidence": confidence,
                "has_amount": has_amount,
                "category": category,
            },
        )

    @staticmethod
    def remote_parse_skipped(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_PARSE_SKIPPED,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"Remote parse skipped: {reason}",
            details={
                "reason": reason,
            },
        )

    @staticmethod
    def remote_parse_succeeded(
        provider: str,
        confidence: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_PARSE_SUCCEEDED,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"Remote parse via {provider} succeeded",
            details={
                "provider": provider,
                "confidence": confidence,
            },
        )

    @staticmethod
    def remote_parse_failed(
        provider: Optional[str],
        error_kind: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="parse",
            correlation_id=correlation_id,
            description=f"Remote parse failed: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def fallback_to_local(
        confidence: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FALLBACK_TO_LOCAL,
            severity=AuditSeverity.WARNING,
            entity_type="parse",
            correlation_id=correlation_id,
            description="Returned local result after remote failure",
            details={
                "confidence": confidence,
            },
        )

    @staticmethod
    def session_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESET,
            entity_type="session",
            description="Parser session state cleared",
        )

    @staticmethod
    def credential_stored(
        provider: str,
        masked_value: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_STORED,
            entity_type="credential",
            description=f"Credential stored for {provider}",
            details={
                "provider": provider,
                "masked_value": masked_value,
            },
        )

    @staticmethod
    def credential_store_failed(
        provider: str,
        error_message: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_STORE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="credential",
            description=f"Could not store credential for {provider}",
            error_message=error_message,
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def credential_read_failed(
        provider: str,
        error_message: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_READ_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="credential",
            description=f"Could not read credential for {provider}",
            error_message=error_message,
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def credential_deleted(
        provider: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_DELETED,
            entity_type="credential",
            description=f"Credential deleted for {provider}",
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def credential_validation_failed(
        provider: str,
        reason: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="credential",
            description=f"Credential rejected for {provider}",
            details={
                "provider": provider,
                "reason": reason,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
