"""
Audit Logger

DESIGN DECISION: Every significant step of a parse is logged.
This provides:
1. Traceability of local vs remote provenance
2. Debugging capability when the remote path degrades
3. A record of credential changes

The audit logger:
- Is synchronous, so the credential store and the local path can use it
- Gracefully handles storage failures (never crashes a parse)
- Supports correlation IDs to trace the events of one parse
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_parser.audit.storage import AuditStorageInterface
from expense_parser.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend (for diagnostics screens)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for the audit trail.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_parser.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage is not None:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_parse_requested(self, text_length: int, correlation_id: UUID) -> None:
        """Log the start of a parse."""
        self.log(AuditEventBuilder.parse_requested(
            text_length=text_length,
            correlation_id=correlation_id,
        ))

    def log_local_parse_completed(
        self,
        confidence: float,
        has_amount: bool,
        category: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log local extractor output."""
        self.log(AuditEventBuilder.local_parse_completed(
            confidence=confidence,
            has_amount=has_amount,
            category=category,
            correlation_id=correlation_id,
        ))

    def log_remote_skipped(self, reason: str, correlation_id: UUID) -> None:
        """Log that the remote path was not attempted."""
        self.log(AuditEventBuilder.remote_parse_skipped(
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_remote_succeeded(
        self,
        provider: str,
        confidence: float,
        correlation_id: UUID,
    ) -> None:
        """Log a successful remote parse."""
        self.log(AuditEventBuilder.remote_parse_succeeded(
            provider=provider,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_remote_failed(
        self,
        provider: Optional[str],
        error_kind: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed remote parse."""
        self.log(AuditEventBuilder.remote_parse_failed(
            provider=provider,
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_fallback(self, confidence: float, correlation_id: UUID) -> None:
        """Log that the local result replaced a failed remote one."""
        self.log(AuditEventBuilder.fallback_to_local(
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    def log_session_reset(self) -> None:
        """Log a parser reset."""
        self.log(AuditEventBuilder.session_reset())

    def log_credential_stored(self, provider: str, masked_value: str) -> None:
        """Log a stored credential (masked)."""
        self.log(AuditEventBuilder.credential_stored(
            provider=provider,
            masked_value=masked_value,
        ))

    def log_credential_store_failed(self, provider: str, error_message: str) -> None:
        """Log a storage-layer failure while storing a credential."""
        self.log(AuditEventBuilder.credential_store_failed(
            provider=provider,
            error_message=error_message,
        ))

    def log_credential_read_failed(self, provider: str, error_message: str) -> None:
        """Log a storage-layer failure while reading a credential."""
        self.log(AuditEventBuilder.credential_read_failed(
            provider=provider,
            error_message=error_message,
        ))

    def log_credential_deleted(self, provider: str) -> None:
        """Log a credential removal."""
        self.log(AuditEventBuilder.credential_deleted(provider=provider))

    def log_credential_validation_failed(self, provider: str, reason: str) -> None:
        """Log a credential rejected by format validation."""
        self.log(AuditEventBuilder.credential_validation_failed(
            provider=provider,
            reason=reason,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a parse and pass it through all steps.
    """
    return uuid4()
