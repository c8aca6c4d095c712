"""NZa code catalog endpoints (read-only)."""

from fastapi import APIRouter, HTTPException, Query

from dental_coding.core.exceptions import ConfigurationError
from dental_coding.schemas import Category, NzaCodeOut
from dental_coding.services.catalog import CatalogEntry, CodeCatalog, get_code_catalog

router = APIRouter(prefix="/nza-codes", tags=["NZa Codes"])


def _catalog() -> CodeCatalog:
    try:
        return get_code_catalog()
    except ConfigurationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


def _to_out(entry: CatalogEntry) -> NzaCodeOut:
    return NzaCodeOut(
        code=entry.code,
        description=entry.description,
        tariff=entry.tariff,
        category=entry.category,
        requires_tooth=entry.requires_tooth,
        requires_surface=entry.requires_surface,
        keywords=sorted(entry.keywords),
        companions=list(entry.companions),
        explanation=entry.explanation,
    )


@router.get(
    "",
    response_model=list[NzaCodeOut],
    summary="Search NZa codes",
)
async def list_codes(
    q: str = Query("", description="Code prefix, description or keyword"),
    category: Category | None = Query(None, description="Restrict to one category"),
    limit: int = Query(50, ge=1, le=500),
) -> list[NzaCodeOut]:
    """Search the catalog."""
    return [_to_out(e) for e in _catalog().search(q, category=category, limit=limit)]


@router.get(
    "/stats",
    summary="Catalog statistics",
)
async def catalog_stats() -> dict:
    """Number of codes and keywords, per category."""
    return _catalog().get_stats()


@router.get(
    "/{code}",
    response_model=NzaCodeOut,
    summary="Get one NZa code",
)
async def get_code(code: str) -> NzaCodeOut:
    """Look up a single code."""
    entry = _catalog().get(code)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"NZa code {code.upper()} not found")
    return _to_out(entry)
