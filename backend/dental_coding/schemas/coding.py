"""Request/response models for the treatment coding endpoints."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from dental_coding.schemas.base import Category, Confidence


class HistoryTurn(BaseModel):
    """One earlier chat turn, most-recent-last in the history list."""

    role: str = Field(..., description="'user' for the clinician, anything else for the assistant")
    content: str = Field(default="", description="Turn text")


class ChatContext(BaseModel):
    """UI state passed through to the prompt."""

    model_config = ConfigDict(populate_by_name=True)

    selected_teeth: list[int] = Field(
        default_factory=list,
        alias="selectedTeeth",
        description="FDI tooth numbers pre-selected in the odontogram",
    )


class TreatmentChatRequest(BaseModel):
    """Request for code suggestions from clinician shorthand."""

    message: str = Field(
        default="",
        max_length=5000,
        description="Clinician free text, e.g. 'comp 36 MOD'",
    )
    history: list[HistoryTurn] = Field(
        default_factory=list,
        description="Earlier chat turns, most recent last",
    )
    context: ChatContext | None = Field(default=None, description="Optional UI context")


class SuggestionOut(BaseModel):
    """A validated code suggestion enriched with catalog data."""

    id: str = Field(..., description="Opaque per-item identifier")
    nza_code: str = Field(..., description="NZa tariff code")
    original_code: str = Field(..., description="Code as proposed before correction")
    description: str = Field(..., description="Catalog description")
    tooth_numbers: list[int] = Field(default_factory=list, description="FDI tooth numbers")
    unit_price: Decimal = Field(..., description="Catalog tariff per unit")
    quantity: int = Field(..., ge=1, description="Number of units")
    reasoning: str = Field(default="", description="Why this code was suggested")
    confidence: Confidence = Field(..., description="Suggestion confidence")
    is_companion: bool = Field(default=False, description="Auto-added companion code")
    corrected: bool = Field(default=False, description="Whether the rule engine changed it")
    corrections: list[str] = Field(default_factory=list, description="Change notes")


class TreatmentChatResponse(BaseModel):
    """Response from the treatment chat."""

    response: str = Field(..., description="Short confirmation or explanation")
    suggestions: list[SuggestionOut] = Field(default_factory=list)


class RawSuggestionIn(BaseModel):
    """A raw candidate supplied by the caller instead of the LLM."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    description: str = ""
    tooth_numbers: list[int] = Field(default_factory=list, alias="toothNumbers")
    surfaces: str | None = None
    canals: int | None = None
    quantity: int = Field(default=1, ge=1)
    reasoning: str = ""
    is_companion: bool = Field(default=False, alias="isCompanion")


class ValidateSuggestionsRequest(BaseModel):
    """Run the deterministic stages on caller-supplied candidates."""

    text: str = Field(..., min_length=1, max_length=5000, description="Original clinician text")
    suggestions: list[RawSuggestionIn] = Field(default_factory=list)


class ValidateSuggestionsResponse(BaseModel):
    """Result of deterministic validation."""

    suggestions: list[SuggestionOut] = Field(default_factory=list)
    dropped_codes: list[str] = Field(default_factory=list, description="Codes absent from the catalog")


class ClassifyRequest(BaseModel):
    """Request to classify free text."""

    text: str = Field(..., min_length=1, max_length=5000)


class ShorthandFacts(BaseModel):
    """Counted evidence extracted from shorthand."""

    surfaces: str | None = None
    surface_count: int | None = None
    canal_count: int | None = None
    minutes: int | None = None


class ClassifyResponse(BaseModel):
    """Relevant categories and extracted shorthand facts."""

    categories: list[Category]
    widened: bool = Field(..., description="True when no specific category matched")
    shorthand: ShorthandFacts


class NzaCodeOut(BaseModel):
    """A catalog entry as exposed by the API."""

    code: str
    description: str
    tariff: Decimal
    category: Category
    requires_tooth: bool
    requires_surface: bool
    keywords: list[str] = Field(default_factory=list)
    companions: list[str] = Field(default_factory=list)
    explanation: str = ""
