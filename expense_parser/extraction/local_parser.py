"""
Local Expense Extractor

Deterministic, offline extraction of amount, category and note.

CRITICAL BOUNDARIES:
- CAN: read numbers, keywords and residual text from the utterance
- CANNOT: fail - missing pieces degrade to None and a lower confidence
- CANNOT: perform I/O or suspend; it runs inline on every parse

Confidence is a plain additive score:
    +0.4 amount found, +0.3 category matched, +0.1 note of 2+ characters
so text without an amount and without a category never exceeds 0.1.
"""

import unicodedata
from typing import Optional

from expense_parser.extraction.amounts import find_amount
from expense_parser.extraction.categories import infer_category
from expense_parser.models.expense import ParseResult, ParseSource


AMOUNT_WEIGHT = 0.4
CATEGORY_WEIGHT = 0.3
NOTE_WEIGHT = 0.1
MIN_NOTE_LENGTH = 2

CLAUSE_SEPARATORS = set("，,。；;、！!？?：:")

SUGGEST_EMPTY = "Input text cannot be empty"
SUGGEST_AMOUNT = "Please confirm the amount"
SUGGEST_CATEGORY = "Please choose a category"
SUGGEST_SHORT = "Input is very short; consider recording again"


def _is_dropped(ch: str) -> bool:
    """Currency, math, emoji, modifiers, variation selectors, joiners."""
    code = ord(ch)
    if 0xFE00 <= code <= 0xFE0F or 0xE0100 <= code <= 0xE01EF:
        return True
    category = unicodedata.category(ch)
    return category[0] == "S" or category in ("Cf", "Me")


def _is_gap(ch: str) -> bool:
    return ch.isspace() or unicodedata.category(ch)[0] == "P"


def clean_note(text: str) -> Optional[str]:
    """
    Reduce residual text to a readable note.

    Punctuation runs collapse to their first clause separator, or to a
    single space when they hold none. Leading and trailing runs vanish.
    """
    parts: list[str] = []
    gap: list[str] = []

    for ch in text:
        if _is_dropped(ch):
            continue
        if _is_gap(ch):
            gap.append(ch)
            continue
        if gap and parts:
            separator = next((g for g in gap if g in CLAUSE_SEPARATORS), " ")
            parts.append(separator)
        gap = []
        parts.append(ch)

    note = "".join(parts)
    return note or None


class LocalExpenseExtractor:
    """
    Rule-based extractor used offline and as the remote fallback.

    Stateless apart from configuration; one instance can serve
    concurrent callers.
    """

    def __init__(self, short_text_length: int = 5):
        self._short_text_length = short_text_length

    def extract(self, text: str) -> ParseResult:
        """
        Parse one utterance.

        Args:
            text: Raw typed or transcribed text

        Returns:
            A LOCAL ParseResult; never raises for any string input
        """
        if not text or not text.strip():
            return ParseResult(
                original_text=text,
                amount=None,
                confidence=0.0,
                source=ParseSource.LOCAL,
                suggestions=(SUGGEST_EMPTY,),
            )

        match = find_amount(text)
        amount = match.value if match else None

        category = infer_category(text)

        residual = text[:match.start] + text[match.end:] if match else text
        note = clean_note(residual)

        confidence = self._score(amount, category is not None, note)

        return ParseResult(
            original_text=text,
            amount=amount,
            category=category.value if category else None,
            note=note,
            confidence=confidence,
            source=ParseSource.LOCAL,
            suggestions=self._suggestions(text, amount, category is not None),
        )

    def _score(self, amount: Optional[float], has_category: bool, note: Optional[str]) -> float:
        score = 0.0
        if amount is not None:
            score += AMOUNT_WEIGHT
        if has_category:
            score += CATEGORY_WEIGHT
        if note and len(note) >= MIN_NOTE_LENGTH:
            score += NOTE_WEIGHT
        return round(min(1.0, max(0.0, score)), 2)

    def _suggestions(self, text: str, amount: Optional[float], has_category: bool) -> tuple[str, ...]:
        suggestions = []
        if amount is None:
            suggestions.append(SUGGEST_AMOUNT)
        if not has_category:
            suggestions.append(SUGGEST_CATEGORY)
        if len(text.strip()) < self._short_text_length:
            suggestions.append(SUGGEST_SHORT)
        return tuple(suggestions)
