"""Treatment Chat API Endpoints.

Provides AI-assisted NZa coding of clinician shorthand:
- Treatment chat: LLM detection plus rule-based correction
- Validate suggestions: the deterministic stages only, no LLM
- Classify: category pre-filter and extracted shorthand facts
"""

import logging

from fastapi import APIRouter, HTTPException

from dental_coding.core.exceptions import CodingError
from dental_coding.schemas import (
    ClassifyRequest,
    ClassifyResponse,
    ShorthandFacts,
    TreatmentChatRequest,
    TreatmentChatResponse,
    ValidateSuggestionsRequest,
    ValidateSuggestionsResponse,
)
from dental_coding.services.category_classifier import classify_with_flag
from dental_coding.services.response_parser import RawSuggestion, sanitize_surfaces, sanitize_tooth_numbers
from dental_coding.services.shorthand import (
    extract_canal_count,
    extract_minutes,
    extract_surfaces,
    text_surface_count,
)
from dental_coding.services.treatment_chat import get_treatment_chat_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["Treatment Chat"])


@router.post(
    "/treatment-chat",
    response_model=TreatmentChatResponse,
    summary="Suggest NZa codes for clinician shorthand",
    description="Detect procedures with the LLM, then correct, complete and de-duplicate the codes.",
)
async def treatment_chat(request: TreatmentChatRequest) -> TreatmentChatResponse:
    """Suggest NZa codes for a clinician message.

    Unparseable LLM output returns an empty suggestion list with an
    explanatory message rather than an error.

    Raises:
        HTTPException 400: Message too short.
        HTTPException 503: Catalog or API key not configured.
        HTTPException 502: LLM service failed.
    """
    pipeline = get_treatment_chat_pipeline()
    selected_teeth = request.context.selected_teeth if request.context else None

    try:
        result = await pipeline.run(request.message, request.history, selected_teeth)
    except CodingError as e:
        logger.warning(f"Treatment chat failed ({e.status_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return TreatmentChatResponse(response=result.response, suggestions=result.suggestions)


@router.post(
    "/validate-suggestions",
    response_model=ValidateSuggestionsResponse,
    summary="Validate caller-supplied code suggestions",
    description="Run correction, companion, exclusion and dedup rules without calling the LLM.",
)
async def validate_suggestions(request: ValidateSuggestionsRequest) -> ValidateSuggestionsResponse:
    """Apply the rule engine to raw suggestions."""
    pipeline = get_treatment_chat_pipeline()
    raw = [
        RawSuggestion(
            code=s.code.strip().upper(),
            description=s.description,
            tooth_numbers=sanitize_tooth_numbers(s.tooth_numbers),
            surfaces=sanitize_surfaces(s.surfaces),
            canals=s.canals if s.canals and s.canals > 0 else None,
            quantity=s.quantity,
            reasoning=s.reasoning,
            is_companion=s.is_companion,
        )
        for s in request.suggestions
        if s.code.strip()
    ]

    try:
        suggestions, dropped = pipeline.validate_only(request.text, raw)
    except CodingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return ValidateSuggestionsResponse(suggestions=suggestions, dropped_codes=dropped)


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    summary="Classify clinician text",
    description="Return the relevant NZa categories and the counted shorthand facts.",
)
async def classify_text(request: ClassifyRequest) -> ClassifyResponse:
    """Category pre-filter plus extracted surfaces, canals and minutes."""
    categories, widened = classify_with_flag(request.text)
    return ClassifyResponse(
        categories=sorted(categories, key=lambda c: c.value),
        widened=widened,
        shorthand=ShorthandFacts(
            surfaces=extract_surfaces(request.text),
            surface_count=text_surface_count(request.text),
            canal_count=extract_canal_count(request.text),
            minutes=extract_minutes(request.text),
        ),
    )
