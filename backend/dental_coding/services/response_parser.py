"""Parser for the detection LLM response.

Turns LLM text into sanitized RawSuggestion candidates. Malformed output
is reported as a ParseFailure value; nothing raises past this boundary.
"""

from dataclasses import dataclass, field
import json
import logging
import re
from typing import Any

from dental_coding.schemas.base import Confidence, ParseFailureReason

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


@dataclass
class RawSuggestion:
    """A candidate code as proposed by the LLM (untrusted)."""

    code: str
    description: str = ""
    tooth_numbers: list[int] = field(default_factory=list)
    surfaces: str | None = None
    canals: int | None = None
    quantity: int = 1
    reasoning: str = ""
    is_companion: bool = False
    # Set only when re-feeding an already validated suggestion
    confidence: Confidence | None = None


@dataclass
class ParsedSuggestions:
    """Successful parse; an empty list means nothing was detected."""

    suggestions: list[RawSuggestion]


@dataclass
class ParseFailure:
    """Unusable LLM output."""

    reason: ParseFailureReason
    raw_text: str = ""


def is_valid_fdi(number: int) -> bool:
    """FDI tooth number: permanent 11-48 (positions 1-8), primary 51-85 (1-5)."""
    quadrant, position = divmod(number, 10)
    if 1 <= quadrant <= 4:
        return 1 <= position <= 8
    if 5 <= quadrant <= 8:
        return 1 <= position <= 5
    return False


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def sanitize_tooth_numbers(value: Any) -> list[int]:
    """Valid FDI numbers in first-seen order, duplicates removed."""
    if not isinstance(value, list):
        return []
    teeth: list[int] = []
    for item in value:
        number = _to_int(item)
        if number is not None and is_valid_fdi(number) and number not in teeth:
            teeth.append(number)
    return teeth


def sanitize_surfaces(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    letters = "".join(ch for ch in value.upper() if ch.isalpha())
    return letters or None


def _positive_int(value: Any) -> int | None:
    number = _to_int(value)
    return number if number is not None and number >= 1 else None


def _sanitize_item(item: Any) -> RawSuggestion | None:
    if not isinstance(item, dict):
        return None

    code = item.get("code")
    if not isinstance(code, str) or not code.strip():
        return None

    description = item.get("description")
    reasoning = item.get("reasoning")
    return RawSuggestion(
        code=code.strip().upper(),
        description=description if isinstance(description, str) else "",
        tooth_numbers=sanitize_tooth_numbers(item.get("toothNumbers", item.get("tooth_numbers"))),
        surfaces=sanitize_surfaces(item.get("surfaces")),
        canals=_positive_int(item.get("canals")),
        quantity=_positive_int(item.get("quantity")) or 1,
        reasoning=reasoning if isinstance(reasoning, str) else "",
        is_companion=item.get("isCompanion", item.get("is_companion")) is True,
    )


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if any."""
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text.strip()


def parse_llm_response(text: str | None) -> ParsedSuggestions | ParseFailure:
    """Parse LLM text into raw candidates.

    Returns:
        ParsedSuggestions on a JSON array (possibly empty), otherwise a
        ParseFailure tagged empty / invalid_json / not_an_array.
    """
    if not text or not text.strip():
        return ParseFailure(reason=ParseFailureReason.EMPTY, raw_text=text or "")

    body = strip_code_fences(text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse LLM response as JSON: {e}")
        return ParseFailure(reason=ParseFailureReason.INVALID_JSON, raw_text=text)

    if not isinstance(data, list):
        logger.warning(f"LLM response is {type(data).__name__}, expected a JSON array")
        return ParseFailure(reason=ParseFailureReason.NOT_AN_ARRAY, raw_text=text)

    suggestions = []
    for item in data:
        suggestion = _sanitize_item(item)
        if suggestion is None:
            logger.debug(f"Skipping malformed LLM suggestion: {item!r}")
            continue
        suggestions.append(suggestion)

    return ParsedSuggestions(suggestions=suggestions)
