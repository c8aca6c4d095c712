"""NZa Code Catalog.

Read-only reference data for the coding pipeline: every billable dental
procedure code with its description, maximum tariff, category and the
keywords/examples/companions used to build prompts and score confidence.

The catalog is loaded once per process (bundled JSON fixture or the
``nza_codes`` table) and never mutated afterwards. All lookups are pure
reads, so one instance is shared across concurrent requests.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
import json
import logging
from pathlib import Path
import threading
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dental_coding.core.config import settings
from dental_coding.core.exceptions import ConfigurationError
from dental_coding.models.nza_code import NzaCode
from dental_coding.schemas.base import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A single NZa tariff code."""

    code: str
    description: str
    tariff: Decimal
    category: Category
    requires_tooth: bool = False
    requires_surface: bool = False
    keywords: frozenset[str] = field(default_factory=frozenset)
    examples: tuple[str, ...] = ()
    companions: tuple[str, ...] = ()
    explanation: str = ""  # "toelichting" from the tariff book
    is_active: bool = True


class CodeCatalog:
    """Immutable catalog of NZa codes keyed by code."""

    def __init__(self, entries: Iterable[CatalogEntry]) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries:
            if not entry.is_active:
                continue
            if entry.code in self._entries:
                logger.warning(f"Duplicate catalog code {entry.code}, keeping first")
                continue
            self._entries[entry.code] = entry

        self._by_category: dict[Category, tuple[CatalogEntry, ...]] = {}
        for category in Category:
            self._by_category[category] = tuple(
                e for e in self._entries.values() if e.category == category
            )

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def get(self, code: str) -> CatalogEntry | None:
        """Look up an entry by code (case-insensitive)."""
        return self._entries.get(code.strip().upper())

    def by_category(self, category: Category) -> tuple[CatalogEntry, ...]:
        """All entries of one category."""
        return self._by_category.get(category, ())

    def entries_for(self, categories: Iterable[Category]) -> list[CatalogEntry]:
        """Entries of the given categories, in Category enum order."""
        wanted = set(categories)
        result: list[CatalogEntry] = []
        for category in Category:
            if category in wanted:
                result.extend(self._by_category[category])
        return result

    def search(
        self,
        query: str = "",
        category: Category | None = None,
        limit: int = 50,
    ) -> list[CatalogEntry]:
        """Search by code prefix, description or keyword.

        Exact code matches rank first, then code prefix matches, then
        description/keyword hits.
        """
        q = query.strip().lower()
        candidates = self.by_category(category) if category else tuple(self._entries.values())

        if not q:
            return list(candidates[:limit])

        exact: list[CatalogEntry] = []
        prefix: list[CatalogEntry] = []
        other: list[CatalogEntry] = []
        for entry in candidates:
            code = entry.code.lower()
            if code == q:
                exact.append(entry)
            elif code.startswith(q):
                prefix.append(entry)
            elif q in entry.description.lower() or any(q in kw for kw in entry.keywords):
                other.append(entry)

        return (exact + prefix + other)[:limit]

    def has_keyword_match(self, code: str, text: str) -> bool:
        """Whether any catalog keyword of ``code`` appears in ``text``."""
        entry = self.get(code)
        if entry is None or not entry.keywords:
            return False
        lowered = text.lower()
        return any(kw in lowered for kw in entry.keywords)

    def get_stats(self) -> dict:
        """Get statistics about the catalog."""
        by_category: dict[str, int] = {}
        for entry in self._entries.values():
            cat = entry.category.value
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_codes": len(self._entries),
            "total_keywords": sum(len(e.keywords) for e in self._entries.values()),
            "by_category": by_category,
        }


# ============================================================================
# Loading
# ============================================================================


def _to_decimal(value: object, code: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"Invalid tariff for catalog code {code}: {value!r}") from e


def _entry_from_dict(item: dict) -> CatalogEntry:
    code = str(item["code"]).strip().upper()
    return CatalogEntry(
        code=code,
        description=item.get("description", ""),
        tariff=_to_decimal(item.get("tariff", "0"), code),
        category=Category(item["category"]),
        requires_tooth=bool(item.get("requires_tooth", False)),
        requires_surface=bool(item.get("requires_surface", False)),
        keywords=frozenset(kw.lower() for kw in item.get("keywords", [])),
        examples=tuple(item.get("examples", [])),
        companions=tuple(c.upper() for c in item.get("companions", [])),
        explanation=item.get("toelichting") or "",
        is_active=bool(item.get("is_active", True)),
    )


def load_catalog_from_fixture(path: Path | None = None) -> CodeCatalog:
    """Load the catalog from a JSON fixture.

    Raises:
        ConfigurationError: If the file is missing, malformed or empty.
    """
    fixture = Path(path) if path else settings.catalog_path
    if not fixture.exists():
        raise ConfigurationError(f"NZa catalog fixture not found: {fixture}")

    try:
        with open(fixture, encoding="utf-8") as f:
            data = json.load(f)
        items = data["codes"] if isinstance(data, dict) else data
        catalog = CodeCatalog(_entry_from_dict(item) for item in items)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Failed to load NZa catalog from {fixture}: {e}") from e

    if len(catalog) == 0:
        raise ConfigurationError(f"NZa catalog at {fixture} is empty")

    logger.info(f"Loaded {len(catalog)} NZa codes from {fixture.name}")
    return catalog


async def load_catalog_from_db(session: AsyncSession) -> CodeCatalog:
    """Load active codes from the ``nza_codes`` table.

    Raises:
        ConfigurationError: If the table holds no active codes.
    """
    result = await session.execute(select(NzaCode).where(NzaCode.is_active.is_(True)))
    rows = result.scalars().all()

    entries = []
    for row in rows:
        try:
            category = Category(row.category)
        except ValueError:
            logger.warning(f"Skipping NZa code {row.code} with unknown category {row.category}")
            continue
        entries.append(
            CatalogEntry(
                code=row.code.strip().upper(),
                description=row.description_nl,
                tariff=Decimal(row.max_tariff),
                category=category,
                requires_tooth=row.requires_tooth,
                requires_surface=row.requires_surface,
                keywords=frozenset(kw.lower() for kw in (row.keywords or [])),
                examples=tuple(row.examples or []),
                companions=tuple(c.upper() for c in (row.companions or [])),
                explanation=row.toelichting or "",
            )
        )

    catalog = CodeCatalog(entries)
    if len(catalog) == 0:
        raise ConfigurationError("No active NZa codes found in the database")

    logger.info(f"Loaded {len(catalog)} NZa codes from database")
    return catalog


# ============================================================================
# Singleton
# ============================================================================

_catalog: CodeCatalog | None = None
_catalog_lock = threading.Lock()


def get_code_catalog() -> CodeCatalog:
    """Get the process-wide catalog, loading the fixture on first use."""
    global _catalog
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                _catalog = load_catalog_from_fixture()
    return _catalog


def set_code_catalog(catalog: CodeCatalog) -> None:
    """Install a catalog loaded elsewhere (database source, tests)."""
    global _catalog
    with _catalog_lock:
        _catalog = catalog


def reset_code_catalog() -> None:
    """Reset the singleton instance (for testing)."""
    global _catalog
    with _catalog_lock:
        _catalog = None
