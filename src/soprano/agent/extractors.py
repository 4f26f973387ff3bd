"""Turn spoken numbers and identifiers into field values.

``None`` means "nothing usable was said"; callers re-prompt instead of
treating it as zero or empty.
"""

import re
from typing import Optional, Union

Number = Union[int, float]

_DIRECT_NUMBER_RE = re.compile(r"\d+(?:,\d{2,3})*(?:\.\d+)?")
_WORD_RE = re.compile(r"[a-z]+")
_UPI_FULL_RE = re.compile(r"^[a-z0-9._-]+@[a-z0-9.-]+$", re.IGNORECASE)
_UPI_EMBEDDED_RE = re.compile(r"[a-z0-9._-]+@[a-z0-9.-]+", re.IGNORECASE)
_SPOKEN_AT_RE = re.compile(r"\s+at\s+")
_SPOKEN_DOT_RE = re.compile(r"\s+dot\s+")
_FILLER_RE = re.compile(r"\b(the|is|it's|its)\b")

WORD_TO_NUMBER = {
    "zero": 0,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
    "hundred": 100,
    "thousand": 1000,
    "lakh": 100000,
    "lakhs": 100000,
    "lac": 100000,
    "crore": 10000000,
    "crores": 10000000,
}

SKIP_WORDS = ("skip", "leave it", "leave blank", "don't want", "nothing")
GO_BACK_WORDS = ("go back", "previous", "change previous", "undo")
CANCEL_WORDS = ("cancel", "stop", "quit", "exit", "abort", "nevermind", "never mind")


def _as_number(value: float) -> Number:
    return int(value) if float(value).is_integer() else value


def parse_numeric_value(text: str) -> Optional[Number]:
    """Extract a number from speech.

    >>> parse_numeric_value("2,500 rupees")
    2500
    >>> parse_numeric_value("two thousand five hundred")
    2500
    """
    lower_text = text.lower().strip()

    direct = _DIRECT_NUMBER_RE.search(lower_text)
    if direct:
        return _as_number(float(direct.group(0).replace(",", "")))

    total = 0
    current = 0
    found = False

    for word in _WORD_RE.findall(lower_text.replace("-", " ")):
        num = WORD_TO_NUMBER.get(word)
        if num is None:
            continue
        found = True
        if num >= 1000:
            # thousand, lakh and crore close the group built so far
            total += (current or 1) * num
            current = 0
        elif num == 100:
            current = (current or 1) * 100
        else:
            current += num

    if not found:
        return None
    return total + current


def parse_upi_id(text: str) -> Optional[str]:
    """Extract a UPI id such as ``arvind@paytm`` from "arvind at paytm"."""
    lower_text = text.lower().strip()

    upi_id = _SPOKEN_AT_RE.sub("@", f" {lower_text} ".replace(" @ ", "@")).strip()
    upi_id = _SPOKEN_DOT_RE.sub(".", upi_id)
    upi_id = _FILLER_RE.sub("", upi_id).strip()

    if "@" in upi_id and _UPI_FULL_RE.match(upi_id):
        return upi_id

    embedded = _UPI_EMBEDDED_RE.search(text)
    if embedded:
        return embedded.group(0).lower()

    return None


def _contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    lower_text = text.lower().strip()
    return any(re.search(rf"\b{re.escape(phrase)}\b", lower_text) for phrase in phrases)


def is_skip_intent(text: str) -> bool:
    return _contains_any(text, SKIP_WORDS)


def is_go_back_intent(text: str) -> bool:
    return _contains_any(text, GO_BACK_WORDS)


def is_cancel_intent(text: str) -> bool:
    return _contains_any(text, CANCEL_WORDS)
