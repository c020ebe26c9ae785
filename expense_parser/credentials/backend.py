"""
Abstract Secret Backend

DESIGN DECISION: The CredentialStore talks to its secret medium through
an abstract interface. This allows us to:
1. Back it with an OS keychain or vault in the host application
2. Use in-memory storage for tests and short-lived processes
3. Keep validation, masking and auditing in one place

The interface is intentionally tiny - get, set, delete by key.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SecretBackendError(Exception):
    """The secret medium could not complete an operation."""
    pass


class SecretBackend(ABC):
    """
    Abstract interface for a key-value secret medium.

    Keys are provider credential keys (e.g. "gemini_api_key").
    """

    @abstractmethod
    def set_secret(self, key: str, value: str) -> None:
        """
        Store a secret, replacing any existing value.

        Raises:
            SecretBackendError: If the medium rejects the write
        """
        pass

    @abstractmethod
    def get_secret(self, key: str) -> Optional[str]:
        """
        Read a secret.

        Returns:
            The secret if present, None otherwise

        Raises:
            SecretBackendError: If the medium cannot be read
        """
        pass

    @abstractmethod
    def delete_secret(self, key: str) -> None:
        """
        Remove a secret. Deleting a missing key is not an error.

        Raises:
            SecretBackendError: If the medium rejects the delete
        """
        pass


class InMemorySecretBackend(SecretBackend):
    """Process-lifetime secret medium, optionally seeded at construction."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._secrets: dict[str, str] = dict(initial or {})

    def set_secret(self, key: str, value: str) -> None:
        self._secrets[key] = value

    def get_secret(self, key: str) -> Optional[str]:
        return self._secrets.get(key)

    def delete_secret(self, key: str) -> None:
        self._secrets.pop(key, None)

    def __repr__(self) -> str:
        return f"InMemorySecretBackend(keys={sorted(self._secrets)})"
