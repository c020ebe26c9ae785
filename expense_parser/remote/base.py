"""
Abstract Remote Understanding Client

DESIGN DECISION: Providers sit behind one abstract interface. This allows us to:
1. Swap Gemini for DashScope (or a future provider) by configuration
2. Test the orchestrator without any network
3. Keep the prompt, the response schema and the timeout in one place

CRITICAL BOUNDARIES:
- CAN: send the utterance to a provider and return a REMOTE ParseResult
- CANNOT: retry (the orchestrator owns the retry policy)
- CANNOT: fall back to local parsing (the orchestrator does that)
- MUST: raise a RemoteUnderstandingError subclass for every failure

The LLM is a TRANSLATOR, not an ORACLE. Whatever it answers is
validated against a strict schema before it becomes a ParseResult.
"""

import asyncio
import json
import math
from abc import ABC, abstractmethod
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from expense_parser.config.settings import RemoteSettings
from expense_parser.credentials import CredentialStore
from expense_parser.models.errors import (
    InvalidResponseError,
    MissingCredentialError,
    NetworkFailureError,
)
from expense_parser.models.expense import (
    ExpenseCategory,
    ParseResult,
    ParseSource,
    RemoteProvider,
)


logger = structlog.get_logger(__name__)


class RemoteExpensePayload(BaseModel):
    """
    The JSON object a provider must answer with.

    Strict: a string amount ("25") or a missing key is a malformed
    response, not something to coerce.
    """
    model_config = ConfigDict(strict=True, extra="ignore")

    amount: Optional[float] = Field(..., ge=0)
    category: str
    confidence: float
    note: Optional[str] = None
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("amount")
    @classmethod
    def amount_must_be_finite(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("Amount must be a finite number")
        return v

    @field_validator("category")
    @classmethod
    def default_category(cls, v: str) -> str:
        return v.strip() or ExpenseCategory.OTHER.value

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("Confidence must be a finite number")
        return max(0.0, min(1.0, v))

    def to_parse_result(self, original_text: str, provider: RemoteProvider) -> ParseResult:
        return ParseResult(
            original_text=original_text,
            amount=self.amount,
            category=self.category,
            note=self.note,
            confidence=self.confidence,
            source=ParseSource.REMOTE,
            provider=provider,
            suggestions=tuple(self.suggestions),
        )


def build_prompt(text: str) -> str:
    """Prompt asking the model for a single strict JSON object."""
    categories = ", ".join(
        cat.value for cat in ExpenseCategory if cat is not ExpenseCategory.OTHER
    )
    escaped = json.dumps(text, ensure_ascii=False)

    return f"""You are a bookkeeping assistant. Extract the expense from this transcribed utterance.

Utterance: {escaped}

Respond with ONLY a JSON object in this exact format, no other text:
{{"amount": 25.5, "category": "餐饮", "note": "short description", "confidence": 0.9, "suggestions": ["correction hint"]}}

Category rules (use the Chinese label):
- 餐饮: meals, coffee, takeout, snacks, drinks, tea
- 交通: taxi, subway, bus, fuel, parking, train or plane tickets
- 购物: clothes, daily goods, cosmetics, supermarket shopping
- 娱乐: movies, games, KTV, travel, tickets, gym, massage
- 医疗: doctor visits, medicine, check-ups, dentist
- 教育: courses, books, tuition, stationery, online classes
- 生活: rent, utilities, phone bill, haircut, laundry
- 数码: phones, computers, headphones, cameras, chargers
- 住房: mortgage, housing fees, decoration
- 其他: anything that fits none of the above
Allowed labels: {categories}, 其他

Amount rules:
1. Recognise currency units such as 元, 块 and 钱
2. 毛 and 角 are tenths (divide by 10), 分 is hundredths (divide by 100)
3. Convert Chinese numerals (一 二 三 ... 十 百 千 万) to digits
4. Prefer the number after verbs such as 花了, 用了, 买了, 付了
5. If there is no clear amount, use null - NEVER guess

Important:
- amount must be a JSON number or null
- confidence is between 0.0 and 1.0; lower it when the utterance is vague
- note is the remaining description without the amount"""


def extract_json_object(content: str) -> str:
    """Slice from the first "{" to the last "}"; models like to add chatter."""
    start = content.find("{")
    end = content.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object found in response")
    return content[start:end]


def parse_payload(content: str, provider: RemoteProvider) -> RemoteExpensePayload:
    """
    Validate raw model output.

    Raises:
        InvalidResponseError: If the content is not the expected JSON object
    """
    try:
        data = json.loads(extract_json_object(content))
    except ValueError as e:
        raise InvalidResponseError(
            f"Response is not a JSON object: {e}",
            provider=provider,
        ) from e

    if not isinstance(data, dict):
        raise InvalidResponseError("Response JSON is not an object", provider=provider)

    try:
        return RemoteExpensePayload.model_validate(data)
    except ValidationError as e:
        raise InvalidResponseError(
            f"Response does not match the expense schema: {e.error_count()} error(s)",
            provider=provider,
        ) from e


class RemoteUnderstandingClient(ABC):
    """
    Abstract interface for a remote language-understanding provider.

    The credential is read from the store on every call, so a key
    rotated or revoked between calls takes effect immediately.
    """

    provider: RemoteProvider

    def __init__(
        self,
        credential_store: CredentialStore,
        settings: Optional[RemoteSettings] = None,
    ):
        self._credential_store = credential_store
        self._settings = settings or RemoteSettings()

    @property
    def settings(self) -> RemoteSettings:
        return self._settings

    async def analyze(self, text: str) -> ParseResult:
        """
        Ask the provider to parse one utterance.

        Returns:
            A REMOTE ParseResult

        Raises:
            MissingCredentialError: Before any network activity, if no key is stored
            NetworkFailureError: On transport errors, 5xx or timeout
            RateLimitedError: When the provider throttles the call
            InvalidResponseError: When the answer does not match the schema
            UnknownRemoteError: For anything else
        """
        api_key = self._credential_store.get(self.provider)
        if not api_key:
            raise MissingCredentialError(
                f"No credential stored for {self.provider.display_name}",
                provider=self.provider,
            )

        timeout = self._settings.timeout_seconds
        try:
            content = await asyncio.wait_for(
                self._generate(build_prompt(text), api_key),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkFailureError(
                f"{self.provider.display_name} did not answer within {timeout:.1f}s",
                provider=self.provider,
            ) from e

        payload = parse_payload(content, self.provider)
        logger.debug(
            "remote_payload_validated",
            provider=self.provider.value,
            has_amount=payload.amount is not None,
            confidence=payload.confidence,
        )
        return payload.to_parse_result(text, self.provider)

    @abstractmethod
    async def _generate(self, prompt: str, api_key: str) -> str:
        """
        Send the prompt and return the model's raw text answer.

        Implementations map provider failures onto the error taxonomy.
        """
        pass
