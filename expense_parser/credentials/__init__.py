"""Credential storage package."""

from expense_parser.credentials.backend import (
    InMemorySecretBackend,
    SecretBackend,
    SecretBackendError,
)
from expense_parser.credentials.store import CredentialStore, mask_secret

__all__ = [
    "CredentialStore",
    "InMemorySecretBackend",
    "SecretBackend",
    "SecretBackendError",
    "mask_secret",
]
