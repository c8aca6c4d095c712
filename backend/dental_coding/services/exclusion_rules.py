"""Mutually exclusive code pairs.

When both codes of a pair are present, companion-flagged occurrences of
the excluded code are removed. An excluded code the clinician asked for
explicitly (a main suggestion) always stays.
"""

from dataclasses import dataclass
import logging

from dental_coding.services.treatment_validator import ValidatedSuggestion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionPair:
    """``kept`` and ``excluded`` cannot be billed together."""

    kept: str
    excluded: str
    message: str


EXCLUSION_PAIRS: tuple[ExclusionPair, ...] = (
    ExclusionPair(
        kept="A15",
        excluded="A10",
        message="A15 (oppervlakteverdoving) niet combineren met A10 in zelfde regio",
    ),
)


def apply_exclusions(suggestions: list[ValidatedSuggestion]) -> list[ValidatedSuggestion]:
    """Drop companion-flagged codes excluded by a code that is present."""
    result = list(suggestions)
    for pair in EXCLUSION_PAIRS:
        codes = {s.code for s in result}
        if pair.kept not in codes or pair.excluded not in codes:
            continue
        before = len(result)
        result = [s for s in result if not (s.code == pair.excluded and s.is_companion)]
        if len(result) < before:
            logger.info(f"Removed companion {pair.excluded}: {pair.message}")
    return result
