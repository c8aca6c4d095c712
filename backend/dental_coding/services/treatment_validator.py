"""Treatment Validator - rule-based correction of LLM code suggestions.

The LLM understands the clinician's language; this module decides the
code. Wherever counted evidence exists (surfaces, canals, minutes) the
authoritative code or quantity is re-derived from fixed KNMT 2026 tables
and any disagreement is recorded as a correction note:

    comp 36 MOD, LLM says V92   -> V93  "Code gecorrigeerd: V92 → V93 (3 vlakken)"
    wkb 36, LLM says E13        -> E16  (lower molar default, 3 canals)
    gebitsreiniging 20 min      -> M03 x4

Candidates whose final code is not in the catalog are dropped here.
"""

from dataclasses import dataclass, field, replace
import logging
import math
from typing import Iterable

from dental_coding.core.audit import log_correction, log_dropped_code
from dental_coding.schemas.base import Confidence
from dental_coding.services.catalog import CodeCatalog
from dental_coding.services.response_parser import RawSuggestion
from dental_coding.services.shorthand import (
    count_surfaces,
    extract_canal_count,
    extract_minutes,
    text_surface_count,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Code families (KNMT 2026)
# ============================================================================

COMPOSITE_SURFACE_MAP: dict[int, str] = {1: "V91", 2: "V92", 3: "V93", 4: "V94", 5: "V94", 6: "V94"}
AMALGAM_SURFACE_MAP: dict[int, str] = {1: "V71", 2: "V72", 3: "V73", 4: "V74", 5: "V74", 6: "V74"}
ENDO_CANAL_MAP: dict[int, str] = {1: "E13", 2: "E14", 3: "E16", 4: "E17", 5: "E17"}

COMPOSITE_CODES = frozenset(COMPOSITE_SURFACE_MAP.values())
AMALGAM_CODES = frozenset(AMALGAM_SURFACE_MAP.values())
GLASS_IONOMER_CODES = frozenset({"V81", "V82", "V83", "V84"})
FILLING_CODES = COMPOSITE_CODES | AMALGAM_CODES | GLASS_IONOMER_CODES
ENDO_CODES = frozenset(ENDO_CANAL_MAP.values())

CLEANING_CODE = "M03"
CLEANING_UNIT_MINUTES = 5

# Typical canal count per FDI tooth; last resort only
TOOTH_CANAL_DEFAULTS: dict[int, int] = {
    # Upper incisors and canines
    11: 1, 12: 1, 21: 1, 22: 1, 13: 1, 23: 1,
    # Upper premolars
    14: 2, 15: 1, 24: 2, 25: 1,
    # Upper molars
    16: 3, 17: 3, 18: 3, 26: 3, 27: 3, 28: 3,
    # Lower incisors, canines and premolars
    31: 1, 32: 1, 41: 1, 42: 1, 33: 1, 43: 1, 34: 1, 35: 1, 44: 1, 45: 1,
    # Lower molars
    36: 3, 37: 3, 38: 2, 46: 3, 47: 3, 48: 2,
}

MAX_SURFACES = 6
MAX_CANALS = 5


@dataclass
class ValidatedSuggestion:
    """A suggestion whose code is guaranteed to exist in the catalog."""

    code: str
    original_code: str
    description: str = ""
    tooth_numbers: list[int] = field(default_factory=list)
    quantity: int = 1
    reasoning: str = ""
    is_companion: bool = False
    confidence: Confidence = Confidence.MEDIUM
    corrected: bool = False
    corrections: list[str] = field(default_factory=list)
    # Counted evidence the code was derived from
    surfaces: str | None = None
    canals: int | None = None

    def to_raw(self) -> RawSuggestion:
        """Re-feed this suggestion through the rule stages.

        Carries the surface/canal evidence and the confidence verdict so
        a second pass reaches the same code and confidence.
        """
        return RawSuggestion(
            code=self.code,
            description=self.description,
            tooth_numbers=list(self.tooth_numbers),
            surfaces=self.surfaces,
            canals=self.canals,
            quantity=self.quantity,
            reasoning=self.reasoning,
            is_companion=self.is_companion,
            confidence=self.confidence,
        )


def dedupe_key(code: str, tooth_numbers: Iterable[int]) -> str:
    """Merge key: code plus numerically sorted tooth set."""
    teeth = sorted(set(tooth_numbers))
    tooth_key = ",".join(str(t) for t in teeth) if teeth else "no-tooth"
    return f"{code}:{tooth_key}"


def deduplicate(suggestions: Iterable[ValidatedSuggestion]) -> list[ValidatedSuggestion]:
    """Keep the first suggestion per dedupe key."""
    seen: set[str] = set()
    result = []
    for s in suggestions:
        key = dedupe_key(s.code, s.tooth_numbers)
        if key in seen:
            continue
        seen.add(key)
        result.append(s)
    return result


# ============================================================================
# Per-family normalization
# ============================================================================


def _surface_note(old: str, new: str, count: int) -> str:
    unit = "vlak" if count == 1 else "vlakken"
    return f"Code gecorrigeerd: {old} → {new} ({count} {unit})"


def _canal_note(old: str, new: str, count: int) -> str:
    unit = "kanaal" if count == 1 else "kanalen"
    return f"Code gecorrigeerd: {old} → {new} ({count} {unit})"


def normalize_filling(raw: RawSuggestion, text_count: int | None) -> tuple[str, str | None]:
    """Re-derive a composite/amalgam code from the surface count.

    The LLM's own ``surfaces`` field wins over the count found in the text.

    Returns:
        (code, correction note or None)
    """
    surface_map = AMALGAM_SURFACE_MAP if raw.code in AMALGAM_CODES else COMPOSITE_SURFACE_MAP
    count = count_surfaces(raw.surfaces) if raw.surfaces else text_count
    if not count or not 1 <= count <= MAX_SURFACES:
        return raw.code, None

    correct = surface_map[count]
    if correct == raw.code:
        return raw.code, None
    return correct, _surface_note(raw.code, correct, count)


def resolve_canal_count(raw: RawSuggestion, text_count: int | None) -> int | None:
    """Explicit LLM count, else text count, else the first tooth's default."""
    if raw.canals:
        return raw.canals
    if text_count:
        return text_count
    if raw.tooth_numbers:
        return TOOTH_CANAL_DEFAULTS.get(raw.tooth_numbers[0])
    return None


def normalize_endo(raw: RawSuggestion, text_count: int | None) -> tuple[str, str | None]:
    """Re-derive an endodontic code from the canal count."""
    count = resolve_canal_count(raw, text_count)
    if not count or not 1 <= count <= MAX_CANALS:
        return raw.code, None

    correct = ENDO_CANAL_MAP[count]
    if correct == raw.code:
        return raw.code, None
    return correct, _canal_note(raw.code, correct, count)


def normalize_cleaning_quantity(quantity: int, minutes: int | None) -> tuple[int, str | None]:
    """Quantity for the cleaning code: one unit per started 5 minutes."""
    if not minutes or minutes < 1:
        return quantity, None

    correct = math.ceil(minutes / CLEANING_UNIT_MINUTES)
    if correct == quantity:
        return quantity, None
    return correct, (
        f"Aantal gecorrigeerd: {quantity} → {correct} "
        f"({minutes} min / {CLEANING_UNIT_MINUTES} min per eenheid)"
    )


# ============================================================================
# Validation
# ============================================================================


def validate(
    suggestions: Iterable[RawSuggestion],
    text: str,
    catalog: CodeCatalog,
    request_id: str | None = None,
    dropped: list[str] | None = None,
) -> list[ValidatedSuggestion]:
    """Validate and correct raw LLM suggestions.

    A candidate that already carries a confidence (re-fed through
    ``ValidatedSuggestion.to_raw``) keeps it unless a new correction applies.

    Args:
        suggestions: Raw candidates in LLM order.
        text: The clinician's original message.
        catalog: Code catalog (the final trust boundary).
        request_id: Run id for the audit trail.
        dropped: Optional list collecting codes absent from the catalog.

    Returns:
        Corrected, catalog-verified, de-duplicated suggestions.
    """
    surface_count = text_surface_count(text)
    canal_count = extract_canal_count(text)
    minutes = extract_minutes(text)

    results: list[ValidatedSuggestion] = []
    seen: set[str] = set()

    for raw in suggestions:
        code = raw.code.strip().upper()
        raw = replace(raw, code=code)
        quantity = max(raw.quantity, 1)
        corrections: list[str] = []

        if code in COMPOSITE_CODES or code in AMALGAM_CODES:
            code, note = normalize_filling(raw, surface_count)
            if note:
                corrections.append(note)

        if raw.code in ENDO_CODES:
            code, note = normalize_endo(raw, canal_count)
            if note:
                corrections.append(note)

        if raw.code == CLEANING_CODE:
            quantity, note = normalize_cleaning_quantity(quantity, minutes)
            if note:
                corrections.append(note)

        if code not in catalog:
            logger.info(f"Dropping unknown code {code} (proposed as {raw.code})")
            log_dropped_code(code, request_id=request_id)
            if dropped is not None:
                dropped.append(code)
            continue

        if corrections:
            confidence = Confidence.MEDIUM
        elif raw.confidence is not None:
            confidence = raw.confidence
        elif catalog.has_keyword_match(code, text):
            confidence = Confidence.HIGH
        else:
            confidence = Confidence.MEDIUM

        key = dedupe_key(code, raw.tooth_numbers)
        if key in seen:
            continue
        seen.add(key)

        if corrections:
            log_correction(code, raw.code, corrections, request_id=request_id)

        results.append(
            ValidatedSuggestion(
                code=code,
                original_code=raw.code,
                description=raw.description,
                tooth_numbers=list(raw.tooth_numbers),
                quantity=quantity,
                reasoning=raw.reasoning,
                is_companion=raw.is_companion,
                confidence=confidence,
                corrected=bool(corrections),
                corrections=corrections,
                surfaces=raw.surfaces,
                canals=raw.canals,
            )
        )

    return results
