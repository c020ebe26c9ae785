"""Audit logging package."""

from expense_parser.audit.logger import AuditLogger, create_correlation_id
from expense_parser.audit.storage import AuditStorageInterface, InMemoryAuditStorage

__all__ = [
    "AuditLogger",
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "create_correlation_id",
]
