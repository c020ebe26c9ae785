"""
Remote Understanding Error Taxonomy

DESIGN DECISION: The remote path fails in exactly five ways.
Every exception raised by a remote client is one of the subclasses below,
and every subclass carries a RemoteErrorKind tag. Callers that switch on
`error.kind` therefore see a closed set and cannot silently miss a case.

None of these ever reach the caller of HybridExpenseParser.parse();
they are recorded as the parser's last error for diagnostics only.
"""

from enum import Enum
from typing import Optional

from expense_parser.models.expense import RemoteProvider


class RemoteErrorKind(str, Enum):
    """Closed set of remote failure kinds."""
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK_FAILURE = "network_failure"
    INVALID_RESPONSE = "invalid_response"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class RemoteUnderstandingError(Exception):
    """Base exception for the remote understanding path."""

    kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        provider: Optional[RemoteProvider] = None,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)

    def to_log_dict(self) -> dict:
        return {
            "error_kind": self.kind.value,
            "provider": self.provider.value if self.provider else None,
            "status_code": self.status_code,
            "error_message": str(self),
        }


class MissingCredentialError(RemoteUnderstandingError):
    """No credential is stored for the configured provider."""
    kind = RemoteErrorKind.MISSING_CREDENTIAL


class NetworkFailureError(RemoteUnderstandingError):
    """Transport failure, server error or timeout."""
    kind = RemoteErrorKind.NETWORK_FAILURE


class InvalidResponseError(RemoteUnderstandingError):
    """Response arrived but did not match the expected schema."""
    kind = RemoteErrorKind.INVALID_RESPONSE


class RateLimitedError(RemoteUnderstandingError):
    """Provider rejected the call because of its rate limit."""
    kind = RemoteErrorKind.RATE_LIMITED


class UnknownRemoteError(RemoteUnderstandingError):
    """Anything the other kinds do not describe (auth rejections included)."""
    kind = RemoteErrorKind.UNKNOWN


ERROR_TYPES_BY_KIND: dict[RemoteErrorKind, type[RemoteUnderstandingError]] = {
    RemoteErrorKind.MISSING_CREDENTIAL: MissingCredentialError,
    RemoteErrorKind.NETWORK_FAILURE: NetworkFailureError,
    RemoteErrorKind.INVALID_RESPONSE: InvalidResponseError,
    RemoteErrorKind.RATE_LIMITED: RateLimitedError,
    RemoteErrorKind.UNKNOWN: UnknownRemoteError,
}
