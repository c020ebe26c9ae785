"""
Tests for the remote understanding clients.

DashScope runs over httpx.MockTransport; Gemini has its SDK patched.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.api_core import exceptions as google_exceptions

from expense_parser.config import RemoteSettings
from expense_parser.models.errors import (
    InvalidResponseError,
    MissingCredentialError,
    NetworkFailureError,
    RateLimitedError,
    UnknownRemoteError,
)
from expense_parser.models.expense import ParseSource, RemoteProvider
from expense_parser.remote import (
    DashScopeUnderstandingClient,
    GeminiUnderstandingClient,
    build_prompt,
    create_remote_client,
    parse_payload,
)

from tests.conftest import DASHSCOPE_KEY, GEMINI_KEY, ScriptedRemoteClient


GOOD_ANSWER = json.dumps({
    "amount": 25.5,
    "category": "餐饮",
    "note": "咖啡",
    "confidence": 0.92,
    "suggestions": [],
}, ensure_ascii=False)


def dashscope_body(content: str) -> dict:
    return {
        "output": {
            "choices": [
                {"message": {"role": "assistant", "content": content}, "finish_reason": "stop"},
            ],
        },
        "usage": {"input_tokens": 120, "output_tokens": 40, "total_tokens": 160},
        "request_id": "req-1",
    }


def dashscope_client(store, handler, settings=None) -> DashScopeUnderstandingClient:
    return DashScopeUnderstandingClient(
        store,
        settings or RemoteSettings(),
        transport=httpx.MockTransport(handler),
    )


class TestPayloadParsing:
    """Tests for parse_payload and RemoteExpensePayload."""

    def test_valid_payload(self):
        payload = parse_payload(GOOD_ANSWER, RemoteProvider.GEMINI)
        assert payload.amount == 25.5
        assert payload.category == "餐饮"
        assert payload.confidence == 0.92

    def test_json_wrapped_in_prose(self):
        content = f"Sure! Here is the result:\n```json\n{GOOD_ANSWER}\n```"
        assert parse_payload(content, RemoteProvider.GEMINI).amount == 25.5

    def test_integer_amount_is_accepted(self):
        content = '{"amount": 30, "category": "交通", "confidence": 1}'
        payload = parse_payload(content, RemoteProvider.GEMINI)
        assert payload.amount == 30.0
        assert payload.note is None
        assert payload.suggestions == []

    def test_null_amount(self):
        content = '{"amount": null, "category": "其他", "confidence": 0.2}'
        assert parse_payload(content, RemoteProvider.GEMINI).amount is None

    def test_confidence_is_clamped(self):
        content = '{"amount": 5, "category": "餐饮", "confidence": 1.7}'
        assert parse_payload(content, RemoteProvider.GEMINI).confidence == 1.0
        content = '{"amount": 5, "category": "餐饮", "confidence": -0.3}'
        assert parse_payload(content, RemoteProvider.GEMINI).confidence == 0.0

    def test_empty_category_defaults_to_other(self):
        content = '{"amount": 5, "category": "", "confidence": 0.5}'
        assert parse_payload(content, RemoteProvider.GEMINI).category == "其他"

    @pytest.mark.parametrize("content", [
        "no json here",
        "{not json}",
        "[1, 2, 3]",
        '{"category": "餐饮", "confidence": 0.5}',
        '{"amount": "25", "category": "餐饮", "confidence": 0.5}',
        '{"amount": -3, "category": "餐饮", "confidence": 0.5}',
        '{"amount": 5, "category": 7, "confidence": 0.5}',
        '{"amount": 5, "category": "餐饮", "confidence": "high"}',
        '{"amount": 5, "category": "餐饮", "confidence": 0.5, "suggestions": "x"}',
    ])
    def test_malformed_payloads(self, content):
        with pytest.raises(InvalidResponseError):
            parse_payload(content, RemoteProvider.DASHSCOPE)

    def test_prompt_contains_text_and_format(self):
        prompt = build_prompt('买咖啡花了25元"')
        assert '"买咖啡花了25元\\""' in prompt
        assert '"amount"' in prompt
        assert "其他" in prompt


class TestRemoteClientBase:
    """Behavior shared by every client."""

    @pytest.mark.asyncio
    async def test_missing_credential_fails_before_network(self, credential_store):
        client = ScriptedRemoteClient(credential_store, [GOOD_ANSWER])
        with pytest.raises(MissingCredentialError):
            await client.analyze("买咖啡花了25元")
        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_result_is_remote(self, configured_store):
        client = ScriptedRemoteClient(configured_store, [GOOD_ANSWER])
        result = await client.analyze("买咖啡花了25.5元")
        assert result.source == ParseSource.REMOTE
        assert result.provider == RemoteProvider.DASHSCOPE
        assert result.original_text == "买咖啡花了25.5元"
        assert result.amount == 25.5

    @pytest.mark.asyncio
    async def test_timeout_is_network_failure(self, configured_store):
        settings = RemoteSettings(timeout_seconds=0.05)
        client = ScriptedRemoteClient(configured_store, [GOOD_ANSWER], settings=settings, delay=1.0)
        with pytest.raises(NetworkFailureError):
            await client.analyze("买咖啡花了25元")

    @pytest.mark.asyncio
    async def test_credential_is_read_on_every_call(self, configured_store):
        client = ScriptedRemoteClient(configured_store, [GOOD_ANSWER])
        await client.analyze("咖啡")
        configured_store.delete(RemoteProvider.DASHSCOPE)
        with pytest.raises(MissingCredentialError):
            await client.analyze("咖啡")

    def test_factory(self, credential_store):
        assert isinstance(
            create_remote_client(RemoteProvider.GEMINI, credential_store),
            GeminiUnderstandingClient,
        )
        assert isinstance(
            create_remote_client(RemoteProvider.DASHSCOPE, credential_store),
            DashScopeUnderstandingClient,
        )


class TestDashScopeClient:
    """Tests for DashScopeUnderstandingClient."""

    @pytest.mark.asyncio
    async def test_success(self, configured_store):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=dashscope_body(GOOD_ANSWER))

        client = dashscope_client(configured_store, handler)
        result = await client.analyze("买咖啡花了25.5元")

        assert result.amount == 25.5
        assert result.category == "餐饮"
        assert result.provider == RemoteProvider.DASHSCOPE
        assert seen["auth"] == f"Bearer {DASHSCOPE_KEY}"
        assert seen["body"]["model"] == "qwen-turbo"
        assert seen["body"]["parameters"]["result_format"] == "message"
        assert seen["body"]["input"]["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_output_text_fallback(self, configured_store):
        def handler(request):
            return httpx.Response(200, json={"output": {"text": GOOD_ANSWER}})

        result = await dashscope_client(configured_store, handler).analyze("咖啡")
        assert result.amount == 25.5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error_type", [
        (429, RateLimitedError),
        (500, NetworkFailureError),
        (503, NetworkFailureError),
        (401, UnknownRemoteError),
        (403, UnknownRemoteError),
        (400, UnknownRemoteError),
    ])
    async def test_status_mapping(self, configured_store, status, error_type):
        def handler(request):
            return httpx.Response(status, json={"code": "Error", "message": "failed"})

        with pytest.raises(error_type) as exc_info:
            await dashscope_client(configured_store, handler).analyze("咖啡")
        assert exc_info.value.status_code == status
        assert DASHSCOPE_KEY not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self, configured_store):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkFailureError):
            await dashscope_client(configured_store, handler).analyze("咖啡")

    @pytest.mark.asyncio
    async def test_transport_timeout(self, configured_store):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(NetworkFailureError):
            await dashscope_client(configured_store, handler).analyze("咖啡")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, content=b"<html>gateway</html>"),
        httpx.Response(200, json={"output": {}}),
        httpx.Response(200, json={"output": {"choices": []}}),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, json=dashscope_body("I could not find an amount.")),
    ])
    async def test_invalid_responses(self, configured_store, response):
        def handler(request):
            return response

        with pytest.raises(InvalidResponseError):
            await dashscope_client(configured_store, handler).analyze("咖啡")

    @pytest.mark.asyncio
    async def test_missing_credential_sends_nothing(self, credential_store):
        handler = MagicMock(return_value=httpx.Response(200, json=dashscope_body(GOOD_ANSWER)))

        with pytest.raises(MissingCredentialError):
            await dashscope_client(credential_store, handler).analyze("咖啡")
        handler.assert_not_called()


class BlockedResponse:
    """Mimics a Gemini response whose candidate was blocked."""

    @property
    def text(self):
        raise ValueError("The response.text quick accessor requires a valid Part")


class TestGeminiClient:
    """Tests for GeminiUnderstandingClient."""

    @pytest.fixture
    def mock_genai(self):
        with patch("expense_parser.remote.gemini_client.genai") as mock_genai:
            yield mock_genai

    def set_response(self, mock_genai, response=None, side_effect=None):
        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=response, side_effect=side_effect)
        return model

    @pytest.mark.asyncio
    async def test_success(self, configured_store, mock_genai):
        model = self.set_response(mock_genai, SimpleNamespace(text=GOOD_ANSWER))
        client = GeminiUnderstandingClient(configured_store, RemoteSettings())

        result = await client.analyze("买咖啡花了25.5元")

        assert result.source == ParseSource.REMOTE
        assert result.provider == RemoteProvider.GEMINI
        assert result.amount == 25.5
        mock_genai.configure.assert_called_once_with(api_key=GEMINI_KEY)
        assert mock_genai.GenerativeModel.call_args.kwargs["model_name"] == "gemini-1.5-flash"
        model.generate_content_async.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rotated_key_is_configured_before_each_model(self, configured_store, mock_genai):
        self.set_response(mock_genai, SimpleNamespace(text=GOOD_ANSWER))
        client = GeminiUnderstandingClient(configured_store, RemoteSettings())
        rotated = GEMINI_KEY[:-4] + "9999"

        await client.analyze("咖啡")
        configured_store.store(rotated, RemoteProvider.GEMINI)
        await client.analyze("咖啡")

        setup_calls = [
            (name, kwargs.get("api_key"))
            for name, _, kwargs in mock_genai.method_calls
            if name in ("configure", "GenerativeModel")
        ]
        assert setup_calls == [
            ("configure", GEMINI_KEY),
            ("GenerativeModel", None),
            ("configure", rotated),
            ("GenerativeModel", None),
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,error_type", [
        (google_exceptions.ResourceExhausted("quota exceeded"), RateLimitedError),
        (google_exceptions.TooManyRequests("slow down"), RateLimitedError),
        (google_exceptions.ServiceUnavailable("unavailable"), NetworkFailureError),
        (google_exceptions.DeadlineExceeded("deadline"), NetworkFailureError),
        (google_exceptions.InternalServerError("boom"), NetworkFailureError),
        (google_exceptions.PermissionDenied("bad key"), UnknownRemoteError),
        (google_exceptions.InvalidArgument("bad request"), UnknownRemoteError),
        (ConnectionError("reset by peer"), NetworkFailureError),
    ])
    async def test_error_mapping(self, configured_store, mock_genai, error, error_type):
        self.set_response(mock_genai, side_effect=error)
        client = GeminiUnderstandingClient(configured_store, RemoteSettings())

        with pytest.raises(error_type):
            await client.analyze("咖啡")

    @pytest.mark.asyncio
    async def test_blocked_response(self, configured_store, mock_genai):
        self.set_response(mock_genai, BlockedResponse())
        client = GeminiUnderstandingClient(configured_store, RemoteSettings())

        with pytest.raises(InvalidResponseError):
            await client.analyze("咖啡")

    @pytest.mark.asyncio
    async def test_empty_response(self, configured_store, mock_genai):
        self.set_response(mock_genai, SimpleNamespace(text="   "))
        client = GeminiUnderstandingClient(configured_store, RemoteSettings())

        with pytest.raises(InvalidResponseError):
            await client.analyze("咖啡")

    @pytest.mark.asyncio
    async def test_slow_model_times_out(self, configured_store, mock_genai):
        async def slow(prompt):
            await asyncio.sleep(1.0)

        model = mock_genai.GenerativeModel.return_value
        model.generate_content_async = slow
        client = GeminiUnderstandingClient(configured_store, RemoteSettings(timeout_seconds=0.05))

        with pytest.raises(NetworkFailureError):
            await client.analyze("咖啡")
