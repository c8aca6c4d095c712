"""Companion codes conventionally billed alongside a main procedure.

Clinicians rarely write "loco" next to "comp 36 MOD"; the anesthesia is
implied. Each rule below names a trigger family and the companions it
requires. Companions are only added when no companion-flagged entry with
that code exists yet, and never twice.
"""

from dataclasses import dataclass
import logging
from typing import Callable

from dental_coding.schemas.base import Confidence
from dental_coding.services.catalog import CodeCatalog
from dental_coding.services.treatment_validator import (
    ENDO_CODES,
    FILLING_CODES,
    ValidatedSuggestion,
    dedupe_key,
)

logger = logging.getLogger(__name__)

ANESTHESIA_CODE = "A10"
XRAY_CODE = "X10"

EXTRACTION_CODES = frozenset({"H11", "H16", "H35", "H36", "H37", "H38", "H39"})
SURGICAL_CODES = frozenset({"H35", "H36", "H37", "H38", "H39", "H40", "H50"})

COMPANION_REASONING = "Automatisch toegevoegd als begeleidende code"


def is_crown_or_bridge(code: str) -> bool:
    return code.startswith("R")


@dataclass(frozen=True)
class CompanionRule:
    """Trigger family and the companion codes it requires."""

    label: str
    trigger: Callable[[str], bool]
    companions: tuple[str, ...]


COMPANION_RULES: tuple[CompanionRule, ...] = (
    CompanionRule("Verdoving bij vulling", lambda c: c in FILLING_CODES, (ANESTHESIA_CODE,)),
    CompanionRule("Verdoving + röntgen bij endo", lambda c: c in ENDO_CODES, (ANESTHESIA_CODE, XRAY_CODE)),
    CompanionRule("Verdoving bij extractie", lambda c: c in EXTRACTION_CODES, (ANESTHESIA_CODE,)),
    CompanionRule("Verdoving bij kroon/brug", is_crown_or_bridge, (ANESTHESIA_CODE,)),
    CompanionRule("Verdoving bij chirurgie", lambda c: c in SURGICAL_CODES, (ANESTHESIA_CODE,)),
)


def required_companions(code: str) -> list[str]:
    """Companion codes required by one main code, in rule order."""
    required: list[str] = []
    for rule in COMPANION_RULES:
        if rule.trigger(code):
            for companion in rule.companions:
                if companion not in required:
                    required.append(companion)
    return required


def derive_companions(
    suggestions: list[ValidatedSuggestion],
    catalog: CodeCatalog,
) -> list[ValidatedSuggestion]:
    """Companion suggestions missing from ``suggestions``.

    Only main (non-companion) suggestions trigger rules. A companion is
    skipped if a companion-flagged entry with that code already exists,
    if its dedupe key is already taken, or if the catalog lacks it.
    """
    existing_companions = {s.code for s in suggestions if s.is_companion}
    taken = {dedupe_key(s.code, s.tooth_numbers) for s in suggestions}

    missing: list[str] = []
    for main in suggestions:
        if main.is_companion:
            continue
        for code in required_companions(main.code):
            if code not in existing_companions and code not in missing:
                missing.append(code)

    added: list[ValidatedSuggestion] = []
    for code in missing:
        key = dedupe_key(code, [])
        if key in taken:
            continue
        entry = catalog.get(code)
        if entry is None:
            logger.warning(f"Companion code {code} not in catalog, skipping")
            continue
        taken.add(key)
        added.append(
            ValidatedSuggestion(
                code=code,
                original_code=code,
                description=entry.description,
                tooth_numbers=[],
                quantity=1,
                reasoning=COMPANION_REASONING,
                is_companion=True,
                confidence=Confidence.HIGH,
            )
        )

    return added


def add_companions(
    suggestions: list[ValidatedSuggestion],
    catalog: CodeCatalog,
) -> list[ValidatedSuggestion]:
    """``suggestions`` followed by any missing companions."""
    return [*suggestions, *derive_companions(suggestions, catalog)]
