"""Confirmation sentence for a treatment-chat run (Call #2).

Best effort: any failure of the summary call falls back to a templated
sentence built from the suggestion count. It never fails the request.
"""

import logging
import re
from typing import Sequence

from dental_coding.core.config import settings
from dental_coding.services.llm_client import GeminiClient
from dental_coding.services.prompt_builder import build_summary_prompt

logger = logging.getLogger(__name__)

NOTHING_DETECTED_NL = "Ik kon geen specifieke verrichtingen herkennen. Kun je het iets anders formuleren?"
NOTHING_DETECTED_EN = "I could not detect any specific procedures. Could you rephrase?"

_DUTCH_HINT_RE = re.compile(
    r"(vulling|kroon|extractie|endo|comp|tand|element|paro|controle|brug)",
    re.IGNORECASE,
)


def fallback_summary(count: int) -> str:
    return f"{count} verrichting(en) gedetecteerd."


def no_suggestions_message(message: str) -> str:
    """Explain that nothing was detected, in Dutch when the text looks Dutch."""
    if re.search(r"[a-z]", message.lower()) and _DUTCH_HINT_RE.search(message):
        return NOTHING_DETECTED_NL
    return NOTHING_DETECTED_EN


async def compose_summary(
    message: str,
    suggestions: Sequence[object],
    llm: GeminiClient | None,
) -> str:
    """One or two sentence confirmation of the detected procedures.

    Args:
        message: Clinician's text.
        suggestions: Final suggestions (``nza_code``, ``description``,
            ``tooth_numbers`` attributes).
        llm: Client for the summary call; None skips the call.
    """
    if not suggestions:
        return no_suggestions_message(message)

    if llm is None or not settings.summary_enabled:
        return fallback_summary(len(suggestions))

    prompt = build_summary_prompt(message, suggestions)
    try:
        text = await llm.generate(
            prompt,
            temperature=settings.summary_temperature,
            max_output_tokens=settings.summary_max_tokens,
            timeout=settings.summary_timeout_seconds,
        )
    except Exception as e:
        logger.warning(f"Summary call failed, using fallback: {e}")
        return fallback_summary(len(suggestions))

    return text.strip() or fallback_summary(len(suggestions))
