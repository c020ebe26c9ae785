"""
Credential Store

Holds, validates and erases API credentials for the remote
understanding providers.

CRITICAL BOUNDARIES:
- CAN: store, read, delete and validate secrets per provider
- CANNOT: log or echo a raw secret (only masked forms leave this module)
- CANNOT: hide storage failures (store() returns False and audits them)

Absence of a credential is a normal state; it only becomes an error
when a remote call is actually attempted.

Every operation runs under one re-entrant lock, so a settings surface can
rotate or revoke a key while a parse is reading it.
"""

import threading
from typing import Optional

import structlog

from expense_parser.audit import AuditLogger
from expense_parser.credentials.backend import SecretBackend, SecretBackendError
from expense_parser.models.expense import (
    ApiKeyValidationResult,
    CredentialStatus,
    RemoteProvider,
)
from expense_parser.validation import ApiKeyValidator


logger = structlog.get_logger(__name__)


def mask_secret(secret: str) -> str:
    """First and last four characters, the rest starred."""
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"


class CredentialStore:
    """
    Thread-safe credential store over a SecretBackend.

    Constructed explicitly and passed to whatever needs it;
    there is no process-wide instance.
    """

    def __init__(
        self,
        backend: SecretBackend,
        validator: Optional[ApiKeyValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._validator = validator or ApiKeyValidator()
        self._audit_logger = audit_logger
        self._lock = threading.RLock()

    def store(self, secret: str, provider: RemoteProvider) -> bool:
        """
        Persist a secret for a provider, overwriting any existing value.

        Returns:
            False only when the backend fails; the failure is logged and
            audited without the secret.
        """
        with self._lock:
            try:
                self._backend.set_secret(provider.value, secret)
            except SecretBackendError as e:
                logger.error(
                    "credential_store_failed",
                    provider=provider.value,
                    error=str(e),
                )
                if self._audit_logger:
                    self._audit_logger.log_credential_store_failed(provider.value, str(e))
                return False

        logger.info("credential_stored", provider=provider.value)
        if self._audit_logger:
            self._audit_logger.log_credential_stored(provider.value, mask_secret(secret))
        return True

    def get(self, provider: RemoteProvider) -> Optional[str]:
        """
        Current secret for the provider, or None.

        A backend read failure also yields None, so the caller degrades to
        offline parsing; the failure is audited to tell a broken medium
        apart from an unset key.
        """
        with self._lock:
            try:
                return self._backend.get_secret(provider.value)
            except SecretBackendError as e:
                logger.error(
                    "credential_read_failed",
                    provider=provider.value,
                    error=str(e),
                )
                if self._audit_logger:
                    self._audit_logger.log_credential_read_failed(provider.value, str(e))
                return None

    def delete(self, provider: RemoteProvider) -> None:
        """
        Remove the provider's secret. Idempotent.

        Raises:
            SecretBackendError: If the medium rejects the delete
        """
        with self._lock:
            self._backend.delete_secret(provider.value)

        logger.info("credential_deleted", provider=provider.value)
        if self._audit_logger:
            self._audit_logger.log_credential_deleted(provider.value)

    def validate(self, secret: str, provider: RemoteProvider) -> ApiKeyValidationResult:
        """Pure format check; no I/O, no lock needed."""
        return self._validator.validate(secret, provider)

    def configure(self, secret: str, provider: RemoteProvider) -> ApiKeyValidationResult:
        """
        Validate, then store the trimmed secret.

        Convenience for settings surfaces: a rejected key is never stored,
        and a storage failure is reported as an invalid result.
        """
        result = self.validate(secret, provider)
        if not result.is_valid:
            logger.warning(
                "credential_rejected",
                provider=provider.value,
                reason=result.reason,
            )
            if self._audit_logger:
                self._audit_logger.log_credential_validation_failed(
                    provider.value, result.reason or ""
                )
            return result

        if not self.store(secret.strip(), provider):
            return ApiKeyValidationResult(
                is_valid=False,
                reason="Key format is valid but it could not be saved",
            )
        return result

    def has_credential(self, provider: RemoteProvider) -> bool:
        return bool(self.get(provider))

    def masked(self, provider: RemoteProvider) -> Optional[str]:
        """Masked form of the stored secret, safe to display."""
        secret = self.get(provider)
        if not secret:
            return None
        return mask_secret(secret)

    def status(self) -> list[CredentialStatus]:
        """Configuration overview for every known provider."""
        return [
            CredentialStatus(
                provider=provider,
                is_configured=self.has_credential(provider),
                masked_value=self.masked(provider),
            )
            for provider in RemoteProvider
        ]

    def clear_all(self) -> bool:
        """
        Delete every provider's secret.

        Returns:
            True if all deletes succeeded
        """
        all_success = True
        for provider in RemoteProvider:
            try:
                self.delete(provider)
            except SecretBackendError as e:
                logger.error(
                    "credential_delete_failed",
                    provider=provider.value,
                    error=str(e),
                )
                all_success = False
        return all_success
