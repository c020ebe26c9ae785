"""
Amount Detection

Finds the spent amount in a free-form utterance.

Candidates, in order of preference:
1. CUED numbers - next to a currency symbol ("￥25.50", "$3") or a unit
   ("50元", "三十块", "5 dollars"). The first cued number in the text
   wins: people say what they spent before they elaborate.
2. Numbers right after a spending verb ("花了 50"), unless they name a
   date, time or count ("支付了5月的房租").
3. Digits followed by 块 used as a measure word ("3块蛋糕") - only
   when nothing better exists.
4. A BARE number, but only when it is the single unambiguous candidate
   (not a date, time, percentage, count or model number).

All patterns are linear: alternations of literals and single-level
quantifiers, so scanning noisy input cannot backtrack unboundedly.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional


SPENDING_VERBS = (
    "花了", "花费", "用了", "付了", "付款", "消费了", "消费", "支付了", "支付",
    "spent", "paid",
)

ARABIC_NUMBER = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
CHINESE_NUMBER = r"[零〇一二两三四五六七八九十百千万]+"

AMOUNT_PATTERN = re.compile(
    r"(?:(?P<verb>" + "|".join(SPENDING_VERBS) + r")\s*)?"
    r"(?:(?P<symbol>[￥¥$€£]|rmb|cny|usd)\s*)?"
    r"(?:(?P<number>" + ARABIC_NUMBER + r")|(?P<cn_number>" + CHINESE_NUMBER + r"))"
    r"(?:\s*(?P<unit>块钱|块|元|钱|毛钱|毛|角钱|角|分钱|分(?!钟)|美元|美金"
    r"|(?:yuan|rmb|cny|usd|dollars?|bucks?)(?![a-z])))?",
    re.IGNORECASE,
)

# "三块五", "3块5毛", "两块半": the trailing part after 块/元 is tenths
FRACTION_PATTERN = re.compile(
    r"(?:(?P<half>半)|(?P<jiao>[0-9一二两三四五六七八九])(?P<jiao_unit>[毛角])?)"
)

# A bare number followed by one of these is not a price
NON_MONETARY_SUFFIX = re.compile(
    r"\s*(?:年|月|日|号|点|时|小时|分钟|秒|%|％|岁|周|天|楼|层|路"
    r"|个|杯|份|件|只|瓶|张|本|斤|公斤|次|人|位|盒|包|袋|支|双|台|部|辆|碗|串|条|公里|米)"
)

CJK_IDEOGRAPH = re.compile(r"[一-鿿]")

CHINESE_DIGITS = {
    "零": 0, "〇": 0, "一": 1, "二": 2, "两": 2, "三": 3, "四": 4,
    "五": 5, "六": 6, "七": 7, "八": 8, "九": 9,
}
CHINESE_UNITS = {"十": 10, "百": 100, "千": 1000}

# After 块 these mean money continues ("两块半", "三块五"), not a counted noun
MONEY_CONTINUATION = set("钱半零〇一二两三四五六七八九十")

UNIT_DIVISORS = {"毛": 10, "角": 10, "分": 100}


@dataclass(frozen=True)
class AmountMatch:
    """A detected amount and the span of text that expressed it."""

    value: float
    start: int
    end: int
    cue: str


def chinese_to_number(text: str) -> Optional[int]:
    """
    Convert a run of Chinese numerals to an integer.

    Handles positional forms (五十 -> 50, 一百二十 -> 120, 两千零五 -> 2005),
    a leading 十 (十五 -> 15), colloquial tails (一百二 -> 120) and 万.
    Returns None for runs that are not a well-formed number ("一二").
    """
    if not text:
        return None

    total = 0
    section = 0
    digit: Optional[int] = None
    last_unit = 0
    after_zero = False

    for ch in text:
        if ch in CHINESE_DIGITS:
            value = CHINESE_DIGITS[ch]
            if digit is not None and digit != 0:
                return None
            if value == 0:
                after_zero = True
            digit = value
        elif ch in CHINESE_UNITS:
            unit = CHINESE_UNITS[ch]
            if last_unit and unit >= last_unit:
                return None
            section += (1 if digit is None else digit) * unit
            digit = None
            last_unit = unit
            after_zero = False
        elif ch == "万":
            if digit is not None:
                section += digit
            if section == 0:
                return None
            total += section * 10000
            section = 0
            digit = None
            last_unit = 0
            after_zero = False
        else:
            return None

    if digit is not None:
        if last_unit >= 100 and not after_zero:
            # 一百二 means 120, 三千五 means 3500
            section += digit * (last_unit // 10)
        else:
            section += digit

    return total + section


def _to_float(raw: str) -> Optional[float]:
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _fraction_after(text: str, pos: int) -> tuple[float, int]:
    """Tenths written after 块/元 ("三块五"); returns (value, new_end)."""
    m = FRACTION_PATTERN.match(text, pos)
    if not m:
        return 0.0, pos
    if m.group("half"):
        return 0.5, m.end()

    jiao = m.group("jiao")
    # "三块五买了..." is ambiguous; only accept a tenth that ends the clause
    # or carries its own 毛/角 unit.
    if not m.group("jiao_unit"):
        following = text[m.end():m.end() + 1]
        if following and (following.isdigit() or CJK_IDEOGRAPH.match(following)):
            return 0.0, pos
    tenths = int(jiao) if jiao.isdigit() else CHINESE_DIGITS[jiao]
    return tenths / 10.0, m.end()


def _is_measure_word(text: str, unit: Optional[str], end: int) -> bool:
    """块 directly followed by a noun is a classifier ("一块蛋糕")."""
    if unit != "块":
        return False
    following = text[end:end + 1]
    return bool(following) and bool(CJK_IDEOGRAPH.match(following)) \
        and following not in MONEY_CONTINUATION


def _is_bare_price(text: str, start: int, end: int) -> bool:
    if start > 0 and text[start - 1].isascii() and text[start - 1].isalpha():
        return False
    if end < len(text) and text[end].isascii() and text[end].isalpha():
        return False
    return NON_MONETARY_SUFFIX.match(text, end) is None


def find_amount(text: str) -> Optional[AmountMatch]:
    """
    Locate the spent amount in text.

    Returns:
        The winning AmountMatch, or None when no usable number exists
    """
    cued: list[AmountMatch] = []
    verb_only: list[AmountMatch] = []
    measure_words: list[AmountMatch] = []
    bare: list[AmountMatch] = []

    for m in AMOUNT_PATTERN.finditer(text):
        verb, symbol, unit = m.group("verb"), m.group("symbol"), m.group("unit")
        number, cn_number = m.group("number"), m.group("cn_number")
        small_unit = bool(unit) and unit[0] in UNIT_DIVISORS

        if cued and m.start() < cued[-1].end:
            # already read as the tenths of the previous amount
            continue

        if number is not None:
            value = _to_float(number)
            number_start, number_end = m.span("number")
        else:
            # Chinese numerals are everywhere in ordinary words ("一顿");
            # only trust them next to a currency marker.
            if not (symbol or unit):
                continue
            if cn_number == "十" and unit == "分":
                # 十分 is the adverb "very"
                continue
            converted = chinese_to_number(cn_number)
            value = float(converted) if converted is not None else None
            number_start, number_end = m.span("cn_number")

        if value is None:
            continue

        end = m.end()
        fraction = 0.0
        if unit:
            lead = unit[0]
            if lead in UNIT_DIVISORS:
                value = value / UNIT_DIVISORS[lead]
            elif lead in ("块", "元"):
                fraction, end = _fraction_after(text, end)
                value += fraction

        if not math.isfinite(value):
            continue

        if small_unit and not (symbol or verb) and cued and cued[-1].end == m.start():
            # "三块二毛五分": the cents continue the amount right before them
            previous = cued[-1]
            cued[-1] = AmountMatch(
                value=previous.value + value,
                start=previous.start,
                end=end,
                cue=previous.cue,
            )
            continue

        if cn_number is not None and small_unit and not (symbol or verb or unit.endswith("钱")):
            # "五分" alone is usually a score or "very", not money
            continue

        if symbol or unit:
            span_start = m.start("verb") if verb else (m.start("symbol") if symbol else number_start)
            cue = "symbol" if symbol else "unit"
            match = AmountMatch(value=value, start=span_start, end=end, cue=cue)
            if not (symbol or verb or fraction) and _is_measure_word(text, unit, end):
                # "一块去" means "together"
                if cn_number is None:
                    measure_words.append(match)
            else:
                cued.append(match)
        elif verb:
            # "支付了5月的房租" names a month, not a price
            if NON_MONETARY_SUFFIX.match(text, number_end) is None:
                verb_only.append(AmountMatch(value=value, start=m.start("verb"), end=end, cue="verb"))
        elif _is_bare_price(text, number_start, number_end):
            bare.append(AmountMatch(value=value, start=number_start, end=number_end, cue="bare"))

    if cued:
        return cued[0]
    if verb_only:
        return verb_only[0]
    if measure_words:
        return measure_words[0]
    if len(bare) == 1:
        return bare[0]
    return None
