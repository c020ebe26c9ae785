"""
DashScope Understanding Client

Alibaba Tongyi Qianwen through the DashScope text-generation HTTP API.
"""

from typing import Optional

import httpx

from expense_parser import __version__
from expense_parser.config.settings import RemoteSettings
from expense_parser.credentials import CredentialStore
from expense_parser.models.errors import (
    InvalidResponseError,
    NetworkFailureError,
    RateLimitedError,
    UnknownRemoteError,
)
from expense_parser.models.expense import RemoteProvider
from expense_parser.remote.base import RemoteUnderstandingClient


class DashScopeUnderstandingClient(RemoteUnderstandingClient):
    """
    Remote client for DashScope (qwen-turbo by default).

    A transport can be injected so tests never touch the network.
    """

    provider = RemoteProvider.DASHSCOPE

    def __init__(
        self,
        credential_store: CredentialStore,
        settings: Optional[RemoteSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(credential_store, settings)
        self._transport = transport

    def _build_request_body(self, prompt: str) -> dict:
        return {
            "model": self._settings.dashscope_model,
            "input": {
                "messages": [
                    {"role": "user", "content": prompt},
                ],
            },
            "parameters": {
                "result_format": "message",
                "temperature": self._settings.temperature,
                "max_tokens": self._settings.max_output_tokens,
                "top_p": 0.8,
            },
        }

    async def _generate(self, prompt: str, api_key: str) -> str:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"expense-parser/{__version__}",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.dashscope_base_url,
                    json=self._build_request_body(prompt),
                    headers=headers,
                )
        except httpx.TransportError as e:
            # TimeoutException is a TransportError too
            raise NetworkFailureError(
                f"Could not reach DashScope: {type(e).__name__}",
                provider=self.provider,
            ) from e

        self._raise_for_status(response)
        return self._extract_content(response)

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status == 429:
            raise RateLimitedError(
                "DashScope rate limit exceeded",
                provider=self.provider,
                status_code=status,
            )
        if 500 <= status < 600:
            raise NetworkFailureError(
                f"DashScope server error (HTTP {status})",
                provider=self.provider,
                status_code=status,
            )
        if status in (401, 403):
            raise UnknownRemoteError(
                "DashScope rejected the credential",
                provider=self.provider,
                status_code=status,
            )
        raise UnknownRemoteError(
            f"DashScope request failed (HTTP {status})",
            provider=self.provider,
            status_code=status,
        )

    def _extract_content(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                "DashScope response body is not JSON",
                provider=self.provider,
                status_code=response.status_code,
            ) from e

        output = data.get("output") if isinstance(data, dict) else None
        if not isinstance(output, dict):
            raise InvalidResponseError("DashScope response has no output", provider=self.provider)

        content = None
        choices = output.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict):
                content = message.get("content")
        if content is None:
            content = output.get("text")

        if not isinstance(content, str) or not content.strip():
            raise InvalidResponseError(
                "DashScope response contains no message content",
                provider=self.provider,
            )
        return content
