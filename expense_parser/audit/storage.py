"""
Audit Storage Interface

DESIGN DECISION: The audit trail is written through an abstract interface.
This allows us to:
1. Keep a bounded in-memory trail for diagnostics screens and tests
2. Plug in a durable store later without touching the parser
3. Keep the parser decoupled from whatever persists the trail

Audit logs are append-only - events are never modified once written.
"""

import threading
from abc import ABC, abstractmethod
from collections import deque
from uuid import UUID

from expense_parser.models.audit import AuditEvent, AuditEventType


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Implementations must be safe to call from several threads.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one parse call).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class InMemoryAuditStorage(AuditStorageInterface):
    """Bounded in-process audit trail. Oldest events drop off first."""

    def __init__(self, max_events: int = 500):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        with self._lock:
            return [e for e in self._events if e.correlation_id == correlation_id]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        return list(reversed(events))[:limit]

    def get_events_by_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        with self._lock:
            return [e for e in self._events if e.event_type == event_type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
