"""
Hybrid Orchestrator for the Expense Parser

This module ties together the local extractor, the remote client and
the credential store behind a single entry point: parse().

DESIGN DECISION: The orchestrator enforces the boundaries:
- parse() always returns a result; remote failures never reach the caller
- source is REMOTE only after a successful, schema-valid remote answer
- the retry policy lives here, not in the clients
- every step is audited under one correlation id

The only way a caller learns about a remote failure is last_error,
which is purely informational.
"""

import threading
from typing import Optional
from uuid import UUID

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_parser.audit import AuditLogger, InMemoryAuditStorage, create_correlation_id
from expense_parser.config import RemoteSettings, Settings, get_settings
from expense_parser.credentials import CredentialStore, InMemorySecretBackend
from expense_parser.extraction import LocalExpenseExtractor
from expense_parser.extraction.local_parser import SUGGEST_AMOUNT, SUGGEST_CATEGORY
from expense_parser.models.errors import (
    NetworkFailureError,
    RateLimitedError,
    RemoteUnderstandingError,
    UnknownRemoteError,
)
from expense_parser.models.expense import ExpenseCategory, ParseResult
from expense_parser.remote import RemoteUnderstandingClient, create_remote_client


logger = structlog.get_logger(__name__)

RETRYABLE_ERRORS = (NetworkFailureError, RateLimitedError)


def merge_results(remote: ParseResult, local: ParseResult) -> ParseResult:
    """
    Fill the gaps of a remote result from the local one.

    Provenance and confidence stay remote. A remote "其他" counts as a
    gap when the local rules found a specific category.
    """
    amount = remote.amount if remote.amount is not None else local.amount

    category = remote.category
    if local.category and (not category or category == ExpenseCategory.OTHER.value):
        category = local.category

    note = remote.note or local.note

    suggestions = list(remote.suggestions)
    for suggestion in local.suggestions:
        if suggestion in suggestions:
            continue
        if suggestion == SUGGEST_AMOUNT and amount is not None:
            continue
        if suggestion == SUGGEST_CATEGORY and category:
            continue
        suggestions.append(suggestion)

    return remote.model_copy(update={
        "amount": amount,
        "category": category,
        "note": note,
        "suggestions": tuple(suggestions),
    })


class HybridExpenseParser:
    """
    Single public entry point for parsing expenses.

    Flow:
    1. Local → always computed, synchronously
    2. Route → blank text, no client, no credential or a confident
       local result (when configured) stop here
    3. Remote → bounded, retried on transient failures only
    4. Merge → remote result with gaps filled from local
    5. Fallback → any remote failure returns the local result
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        remote_client: Optional[RemoteUnderstandingClient] = None,
        local_extractor: Optional[LocalExpenseExtractor] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[RemoteSettings] = None,
    ):
        self._credential_store = credential_store
        self._remote_client = remote_client
        self._local_extractor = local_extractor or LocalExpenseExtractor()
        self._audit_logger = audit_logger
        self._settings = settings or (remote_client.settings if remote_client else RemoteSettings())

        self._lock = threading.Lock()
        self._last_error: Optional[RemoteUnderstandingError] = None
        self._last_result: Optional[ParseResult] = None

    @property
    def last_error(self) -> Optional[RemoteUnderstandingError]:
        """Most recent remote failure, cleared by a remote success or reset()."""
        with self._lock:
            return self._last_error

    @property
    def last_result(self) -> Optional[ParseResult]:
        with self._lock:
            return self._last_result

    @property
    def remote_available(self) -> bool:
        """True when a remote client exists and its credential is stored."""
        return self._remote_client is not None and self._credential_store.has_credential(
            self._remote_client.provider
        )

    def reset(self) -> None:
        """Forget the last error and the last result."""
        with self._lock:
            self._last_error = None
            self._last_result = None
        if self._audit_logger:
            self._audit_logger.log_session_reset()

    async def parse(self, text: str) -> ParseResult:
        """
        Parse one utterance.

        Never raises for remote failures. Cancellation by the caller
        propagates and leaves last_error untouched.
        """
        correlation_id = create_correlation_id()
        if self._audit_logger:
            self._audit_logger.log_parse_requested(len(text), correlation_id)

        local = self._local_extractor.extract(text)
        if self._audit_logger:
            self._audit_logger.log_local_parse_completed(
                confidence=local.confidence,
                has_amount=local.amount is not None,
                category=local.category,
                correlation_id=correlation_id,
            )

        skip_reason = self._skip_reason(text, local)
        if skip_reason:
            logger.debug("remote_parse_skipped", reason=skip_reason)
            if self._audit_logger:
                self._audit_logger.log_remote_skipped(skip_reason, correlation_id)
            return self._finish(local)

        try:
            remote = await self._call_remote(text)
        except RemoteUnderstandingError as e:
            return self._fall_back(local, e, correlation_id)
        except Exception as e:
            wrapped = UnknownRemoteError(
                f"Unexpected remote failure: {type(e).__name__}",
                provider=self._remote_client.provider,
            )
            wrapped.__cause__ = e
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"stage": "remote_parse"},
                    correlation_id=correlation_id,
                )
            return self._fall_back(local, wrapped, correlation_id)

        result = merge_results(remote, local)
        with self._lock:
            self._last_error = None
        if self._audit_logger:
            self._audit_logger.log_remote_succeeded(
                provider=self._remote_client.provider.value,
                confidence=result.confidence,
                correlation_id=correlation_id,
            )
        return self._finish(result)

    def _skip_reason(self, text: str, local: ParseResult) -> Optional[str]:
        if not text.strip():
            return "empty_input"
        if self._remote_client is None:
            return "no_remote_client"
        if not self._credential_store.has_credential(self._remote_client.provider):
            return "no_credential"
        threshold = self._settings.local_confidence_threshold
        if threshold is not None and local.confidence is not None and local.confidence >= threshold:
            return "local_confident"
        return None

    async def _call_remote(self, text: str) -> ParseResult:
        settings = self._settings
        analyze = retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(settings.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=settings.retry_min_wait,
                max=settings.retry_max_wait,
            ),
            reraise=True,
        )(self._remote_client.analyze)
        return await analyze(text)

    def _fall_back(
        self,
        local: ParseResult,
        error: RemoteUnderstandingError,
        correlation_id: UUID,
    ) -> ParseResult:
        with self._lock:
            self._last_error = error

        logger.warning("remote_parse_failed", **error.to_log_dict())
        if self._audit_logger:
            self._audit_logger.log_remote_failed(
                provider=error.provider.value if error.provider else None,
                error_kind=error.kind.value,
                error_message=str(error),
                correlation_id=correlation_id,
            )
            self._audit_logger.log_fallback(local.confidence, correlation_id)
        return self._finish(local)

    def _finish(self, result: ParseResult) -> ParseResult:
        with self._lock:
            self._last_result = result
        return result


def create_parser_components(
    settings: Optional[Settings] = None,
) -> tuple[HybridExpenseParser, CredentialStore, AuditLogger]:
    """
    Factory function to create all parser components.

    Credentials found in the settings seed an in-memory store; a host
    application with a real keychain builds its own CredentialStore and
    passes it to HybridExpenseParser directly.

    Returns:
        (parser, credential_store, audit_logger)
    """
    settings = settings or get_settings()
    remote_settings = settings.remote
    parser_settings = settings.parser

    audit_logger = AuditLogger(InMemoryAuditStorage(max_events=parser_settings.audit_buffer_size))

    backend = InMemorySecretBackend(settings.credentials.seed_secrets())
    credential_store = CredentialStore(backend, audit_logger=audit_logger)

    remote_client = create_remote_client(
        remote_settings.provider,
        credential_store,
        remote_settings,
    )

    parser = HybridExpenseParser(
        credential_store=credential_store,
        remote_client=remote_client,
        local_extractor=LocalExpenseExtractor(short_text_length=parser_settings.short_text_length),
        audit_logger=audit_logger,
        settings=remote_settings,
    )

    return parser, credential_store, audit_logger
