"""
Tests for API key validation and the credential store.
"""

import logging
import threading

import pytest

from expense_parser.credentials import (
    CredentialStore,
    InMemorySecretBackend,
    SecretBackend,
    SecretBackendError,
    mask_secret,
)
from expense_parser.models.audit import AuditEventType
from expense_parser.models.expense import RemoteProvider
from expense_parser.validation import ApiKeyValidator

from tests.conftest import DASHSCOPE_KEY, GEMINI_KEY


class FailingBackend(SecretBackend):
    """Backend whose medium is unavailable."""

    def set_secret(self, key, value):
        raise SecretBackendError("keychain locked")

    def get_secret(self, key):
        raise SecretBackendError("keychain locked")

    def delete_secret(self, key):
        raise SecretBackendError("keychain locked")


class TestApiKeyValidator:
    """Tests for the two-stage key validation."""

    @pytest.fixture
    def validator(self):
        return ApiKeyValidator()

    def test_valid_dashscope_key(self, validator):
        result = validator.validate(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
        assert result.is_valid
        assert result.reason is None

    def test_valid_gemini_key(self, validator):
        assert validator.validate(GEMINI_KEY, RemoteProvider.GEMINI).is_valid

    def test_surrounding_whitespace_is_ignored(self, validator):
        assert validator.validate(f"  {DASHSCOPE_KEY}\n", RemoteProvider.DASHSCOPE).is_valid

    @pytest.mark.parametrize("key", ["", "   ", None])
    def test_empty_key(self, validator, key):
        result = validator.validate(key, RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert result.reason == "API key cannot be empty"

    def test_short_key(self, validator):
        result = validator.validate("sk-123", RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert "too short" in result.reason

    def test_wrong_prefix(self, validator):
        result = validator.validate("pk-" + "a" * 30, RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert "'sk-'" in result.reason

    def test_too_long(self, validator):
        result = validator.validate("sk-" + "a" * 120, RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert "20-100" in result.reason

    def test_invalid_characters(self, validator):
        result = validator.validate("sk-abc def ghi jkl mno pq", RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert "invalid characters" in result.reason

    def test_gemini_length_is_exact(self, validator):
        result = validator.validate(GEMINI_KEY + "x", RemoteProvider.GEMINI)
        assert not result.is_valid
        assert "exactly 39" in result.reason

    def test_reason_never_echoes_key(self, validator):
        key = "sk-" + "secret" * 30
        result = validator.validate(key, RemoteProvider.DASHSCOPE)
        assert key not in result.reason


class TestMaskSecret:

    def test_long_secret(self):
        assert mask_secret("sk-1234567890abcd") == "sk-1*********abcd"

    def test_short_secret_is_fully_masked(self):
        assert mask_secret("12345678") == "********"


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_store_and_get(self, credential_store):
        assert credential_store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
        assert credential_store.get(RemoteProvider.DASHSCOPE) == DASHSCOPE_KEY
        assert credential_store.get(RemoteProvider.GEMINI) is None

    def test_store_overwrites(self, credential_store):
        credential_store.store("sk-old-value-0000000000", RemoteProvider.DASHSCOPE)
        credential_store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
        assert credential_store.get(RemoteProvider.DASHSCOPE) == DASHSCOPE_KEY

    def test_delete_is_idempotent(self, credential_store):
        credential_store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
        credential_store.delete(RemoteProvider.DASHSCOPE)
        credential_store.delete(RemoteProvider.DASHSCOPE)
        assert credential_store.get(RemoteProvider.DASHSCOPE) is None
        assert not credential_store.has_credential(RemoteProvider.DASHSCOPE)

    def test_store_failure_returns_false_and_is_audited(self, audit_logger, audit_storage):
        store = CredentialStore(FailingBackend(), audit_logger=audit_logger)
        assert store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE) is False

        failures = audit_storage.get_events_by_type(AuditEventType.CREDENTIAL_STORE_FAILED)
        assert len(failures) == 1
        assert failures[0].error_message == "keychain locked"

    def test_read_failure_is_absence(self, audit_logger):
        store = CredentialStore(FailingBackend(), audit_logger=audit_logger)
        assert store.get(RemoteProvider.GEMINI) is None
        assert not store.has_credential(RemoteProvider.GEMINI)

    def test_read_failure_is_audited(self, audit_logger, audit_storage):
        """A broken medium is distinguishable from an unset key."""
        store = CredentialStore(FailingBackend(), audit_logger=audit_logger)
        store.get(RemoteProvider.DASHSCOPE)

        failures = audit_storage.get_events_by_type(AuditEventType.CREDENTIAL_READ_FAILED)
        assert len(failures) == 1
        assert failures[0].details["provider"] == "dashscope_api_key"
        assert failures[0].error_message == "keychain locked"

    def test_unset_key_is_not_audited_as_failure(self, credential_store, audit_storage):
        assert credential_store.get(RemoteProvider.GEMINI) is None
        assert audit_storage.get_events_by_type(AuditEventType.CREDENTIAL_READ_FAILED) == []

    def test_delete_failure_raises(self):
        store = CredentialStore(FailingBackend())
        with pytest.raises(SecretBackendError):
            store.delete(RemoteProvider.GEMINI)

    def test_configure_valid_key_stores_trimmed(self, credential_store):
        result = credential_store.configure(f"  {DASHSCOPE_KEY}  ", RemoteProvider.DASHSCOPE)
        assert result.is_valid
        assert credential_store.get(RemoteProvider.DASHSCOPE) == DASHSCOPE_KEY

    def test_configure_invalid_key_is_not_stored(self, credential_store, audit_storage):
        result = credential_store.configure("not-a-key", RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert credential_store.get(RemoteProvider.DASHSCOPE) is None
        assert audit_storage.get_events_by_type(AuditEventType.CREDENTIAL_VALIDATION_FAILED)

    def test_configure_storage_failure_is_invalid(self):
        store = CredentialStore(FailingBackend())
        result = store.configure(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
        assert not result.is_valid
        assert "could not be saved" in result.reason

    def test_masked(self, configured_store):
        masked = configured_store.masked(RemoteProvider.DASHSCOPE)
        assert masked == DASHSCOPE_KEY[:4] + "*" * (len(DASHSCOPE_KEY) - 8) + DASHSCOPE_KEY[-4:]
        assert configured_store.masked(RemoteProvider.GEMINI) is not None

    def test_status_covers_every_provider(self, credential_store):
        credential_store.store(GEMINI_KEY, RemoteProvider.GEMINI)
        status = {s.provider: s for s in credential_store.status()}

        assert set(status) == set(RemoteProvider)
        assert status[RemoteProvider.GEMINI].is_configured
        assert GEMINI_KEY not in status[RemoteProvider.GEMINI].masked_value
        assert not status[RemoteProvider.DASHSCOPE].is_configured
        assert status[RemoteProvider.DASHSCOPE].masked_value is None

    def test_clear_all(self, configured_store):
        assert configured_store.clear_all()
        assert not any(s.is_configured for s in configured_store.status())

    def test_clear_all_reports_failure(self):
        assert CredentialStore(FailingBackend()).clear_all() is False

    def test_backend_repr_hides_values(self):
        backend = InMemorySecretBackend({"dashscope_api_key": DASHSCOPE_KEY})
        assert DASHSCOPE_KEY not in repr(backend)
        assert "dashscope_api_key" in repr(backend)

    def test_concurrent_rotation(self, credential_store):
        keys = [f"sk-{i:032d}" for i in range(20)]

        def rotate(key):
            credential_store.store(key, RemoteProvider.DASHSCOPE)
            credential_store.get(RemoteProvider.DASHSCOPE)

        threads = [threading.Thread(target=rotate, args=(key,)) for key in keys]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert credential_store.get(RemoteProvider.DASHSCOPE) in keys


class TestSecretsNeverLogged:
    """The raw secret must not appear in logs or the audit trail."""

    def test_store_and_delete_paths(self, credential_store, audit_storage, caplog):
        with caplog.at_level(logging.DEBUG):
            credential_store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)
            credential_store.configure(GEMINI_KEY, RemoteProvider.GEMINI)
            credential_store.configure(GEMINI_KEY + "zz", RemoteProvider.GEMINI)
            credential_store.status()
            credential_store.clear_all()

        assert DASHSCOPE_KEY not in caplog.text
        assert GEMINI_KEY not in caplog.text

        for event in audit_storage.get_recent_events(limit=100):
            dumped = str(event.to_log_dict())
            assert DASHSCOPE_KEY not in dumped
            assert GEMINI_KEY not in dumped

    def test_failure_path(self, audit_logger, audit_storage, caplog):
        store = CredentialStore(FailingBackend(), audit_logger=audit_logger)
        with caplog.at_level(logging.DEBUG):
            store.store(DASHSCOPE_KEY, RemoteProvider.DASHSCOPE)

        assert DASHSCOPE_KEY not in caplog.text
        for event in audit_storage.get_recent_events(limit=100):
            assert DASHSCOPE_KEY not in str(event.to_log_dict())
