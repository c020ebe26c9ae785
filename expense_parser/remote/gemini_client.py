"""
Gemini Understanding Client

Google Gemini via the google-generativeai SDK.
"""

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from expense_parser.models.errors import (
    InvalidResponseError,
    NetworkFailureError,
    RateLimitedError,
    UnknownRemoteError,
)
from expense_parser.models.expense import RemoteProvider
from expense_parser.remote.base import RemoteUnderstandingClient


class GeminiUnderstandingClient(RemoteUnderstandingClient):
    """Remote client backed by a Gemini generative model."""

    provider = RemoteProvider.GEMINI

    def _build_model(self, api_key: str) -> genai.GenerativeModel:
        """
        Configure the SDK with this call's key and build a model.

        genai.configure() is process-global. The model resolves its client
        when generate_content_async first runs, and _generate reaches that
        point with no await after this call, so calls sharing one event
        loop always send their own key. Parsers driven from several threads
        with different keys are not isolated from each other.
        """
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(
            model_name=self._settings.gemini_model,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_output_tokens,
            },
        )

    async def _generate(self, prompt: str, api_key: str) -> str:
        model = self._build_model(api_key)

        try:
            response = await model.generate_content_async(prompt)
        except google_exceptions.TooManyRequests as e:
            raise RateLimitedError(
                "Gemini rate limit exceeded",
                provider=self.provider,
                status_code=429,
            ) from e
        except google_exceptions.ServerError as e:
            # 5xx, including DeadlineExceeded and ServiceUnavailable
            raise NetworkFailureError(
                f"Gemini server error: {e.message}",
                provider=self.provider,
                status_code=e.code,
            ) from e
        except google_exceptions.GoogleAPICallError as e:
            raise UnknownRemoteError(
                f"Gemini rejected the request: {e.message}",
                provider=self.provider,
                status_code=e.code,
            ) from e
        except (google_exceptions.RetryError, ConnectionError) as e:
            raise NetworkFailureError(
                f"Could not reach Gemini: {type(e).__name__}",
                provider=self.provider,
            ) from e

        try:
            text = response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or is empty
            raise InvalidResponseError(
                "Gemini returned no usable text",
                provider=self.provider,
            ) from e

        if not text or not text.strip():
            raise InvalidResponseError("Gemini returned an empty answer", provider=self.provider)
        return text.strip()
