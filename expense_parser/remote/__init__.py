"""Remote language-understanding clients."""

from typing import Optional

from expense_parser.config.settings import RemoteSettings
from expense_parser.credentials import CredentialStore
from expense_parser.models.expense import RemoteProvider
from expense_parser.remote.base import (
    RemoteExpensePayload,
    RemoteUnderstandingClient,
    build_prompt,
    parse_payload,
)
from expense_parser.remote.dashscope_client import DashScopeUnderstandingClient
from expense_parser.remote.gemini_client import GeminiUnderstandingClient


CLIENT_TYPES: dict[RemoteProvider, type[RemoteUnderstandingClient]] = {
    RemoteProvider.GEMINI: GeminiUnderstandingClient,
    RemoteProvider.DASHSCOPE: DashScopeUnderstandingClient,
}


def create_remote_client(
    provider: RemoteProvider,
    credential_store: CredentialStore,
    settings: Optional[RemoteSettings] = None,
) -> RemoteUnderstandingClient:
    """Build the client for a provider."""
    return CLIENT_TYPES[provider](credential_store, settings)


__all__ = [
    "CLIENT_TYPES",
    "DashScopeUnderstandingClient",
    "GeminiUnderstandingClient",
    "RemoteExpensePayload",
    "RemoteUnderstandingClient",
    "build_prompt",
    "create_remote_client",
    "parse_payload",
]
