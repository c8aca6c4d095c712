"""Shorthand extractors for dental clinical notes.

Pure functions that pull counted evidence out of clinician shorthand:

    "comp 36 MOD"          -> surfaces "MOD" (3 surfaces)
    "comp 26 4v"           -> 4 surfaces
    "wkb 16 4k"            -> 4 canals
    "gebitsreiniging 20 min" -> 20 minutes

Every extractor returns None when nothing matches; none of them raise.
"""

import re

# Mesial, Occlusal/incisal, Distal, Buccal, Vestibular, Lingual, Palatal
SURFACE_LETTERS = frozenset("MODBVLP")

_SURFACE_TOKEN_RE = re.compile(r"\b([MODBVLP]{2,6})\b")
_SURFACE_COUNT_SHORT_RE = re.compile(r"\b(\d)v\b", re.IGNORECASE)
_SURFACE_COUNT_WORD_RE = re.compile(r"(\d)\s*vlak(?:ken)?", re.IGNORECASE)
_CANAL_COUNT_SHORT_RE = re.compile(r"\b(\d)k\b", re.IGNORECASE)
_CANAL_COUNT_WORD_RE = re.compile(r"(\d)\s*(?:kanalen|kanaal)", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*min", re.IGNORECASE)


def extract_surfaces(text: str | None) -> str | None:
    """Find a whole-word token of 2-6 surface letters.

    Dutch words such as "op" or "bv" also spell surface letters, so the
    longest token wins; the first one on a tie.

    >>> extract_surfaces("comp op 36 mod")
    'MOD'
    """
    if not text:
        return None
    tokens = _SURFACE_TOKEN_RE.findall(text.upper())
    return max(tokens, key=len) if tokens else None


def count_surfaces(surfaces: str | None) -> int:
    """Count distinct surface letters; repeats and order do not matter.

    "MOM" is 2, "MOD" is 3. Empty or None is 0.
    """
    if not surfaces:
        return 0
    return len({ch for ch in surfaces.upper() if ch in SURFACE_LETTERS})


def extract_surface_count(text: str | None) -> int | None:
    """Explicit surface count: "2v", "3 vlakken", "1 vlak"."""
    if not text:
        return None
    match = _SURFACE_COUNT_SHORT_RE.search(text) or _SURFACE_COUNT_WORD_RE.search(text)
    return int(match.group(1)) if match else None


def extract_canal_count(text: str | None) -> int | None:
    """Explicit canal count: "3k", "2 kanalen", "1 kanaal"."""
    if not text:
        return None
    match = _CANAL_COUNT_SHORT_RE.search(text) or _CANAL_COUNT_WORD_RE.search(text)
    return int(match.group(1)) if match else None


def extract_minutes(text: str | None) -> int | None:
    """Treatment duration in minutes: "20 min", "15min", "30 minuten"."""
    if not text:
        return None
    match = _MINUTES_RE.search(text)
    return int(match.group(1)) if match else None


def text_surface_count(text: str | None) -> int | None:
    """Surface count evidenced by free text.

    A surface-letter token wins over an explicit count.
    """
    surfaces = extract_surfaces(text)
    if surfaces:
        return count_surfaces(surfaces)
    return extract_surface_count(text)
