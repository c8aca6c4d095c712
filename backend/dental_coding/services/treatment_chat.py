"""Treatment Chat Pipeline.

Orchestrates one coding request end to end:

    Classify -> Prompt -> Call #1 (LLM) -> Parse -> Validate -> Companions
    -> Exclusions -> Dedup -> Enrich -> Call #2 (summary)

Every stage except the two LLM calls is a pure function over the
immutable catalog. Unusable LLM output (timeout, invalid JSON, not an
array) degrades to an empty suggestion list with an explanatory message;
only input, configuration and upstream errors fail the request.
"""

from dataclasses import dataclass, field
import logging
import threading
from typing import Iterable, Sequence
import uuid

from dental_coding.core.audit import log_suggestion_run
from dental_coding.core.config import settings
from dental_coding.core.exceptions import ConfigurationError, InputError, LLMTimeoutError
from dental_coding.schemas.base import Category, ParseFailureReason
from dental_coding.schemas.coding import SuggestionOut
from dental_coding.services.catalog import CodeCatalog, get_code_catalog
from dental_coding.services.category_classifier import classifier_text, classify
from dental_coding.services.companion_rules import add_companions
from dental_coding.services.exclusion_rules import apply_exclusions
from dental_coding.services.llm_client import GeminiClient, get_llm_client
from dental_coding.services.prompt_builder import (
    build_chat_prompt,
    build_codebook_section,
    build_codes_reference,
)
from dental_coding.services.response_parser import ParseFailure, RawSuggestion, parse_llm_response
from dental_coding.services.summary import compose_summary
from dental_coding.services.treatment_validator import ValidatedSuggestion, deduplicate, validate

logger = logging.getLogger(__name__)

MIN_MESSAGE_CHARS = 2

PARSE_ERROR_MESSAGE = "Er ging iets mis bij het verwerken van de AI-respons."
NOTHING_PARSED_MESSAGE = "Geen verrichtingen gedetecteerd."

_DEGRADED_MESSAGES: dict[ParseFailureReason, str] = {
    ParseFailureReason.EMPTY: NOTHING_PARSED_MESSAGE,
    ParseFailureReason.INVALID_JSON: PARSE_ERROR_MESSAGE,
    ParseFailureReason.NOT_AN_ARRAY: NOTHING_PARSED_MESSAGE,
}


@dataclass
class TreatmentChatResult:
    """Outcome of one pipeline run."""

    response: str
    suggestions: list[SuggestionOut] = field(default_factory=list)
    categories: set[Category] = field(default_factory=set)
    degraded: bool = False
    request_id: str = ""


def check_message(message: str | None) -> str:
    """Reject absent or too-short input before any stage runs."""
    if not message or len("".join(message.split())) < MIN_MESSAGE_CHARS:
        raise InputError("Bericht is te kort")
    return message


def run_rule_stages(
    raw: Iterable[RawSuggestion],
    text: str,
    catalog: CodeCatalog,
    request_id: str | None = None,
    dropped: list[str] | None = None,
) -> list[ValidatedSuggestion]:
    """Validate -> Companions -> Exclusions -> Dedup."""
    validated = validate(raw, text, catalog, request_id=request_id, dropped=dropped)
    with_companions = add_companions(validated, catalog)
    return deduplicate(apply_exclusions(with_companions))


def enrich(suggestions: Sequence[ValidatedSuggestion], catalog: CodeCatalog) -> list[SuggestionOut]:
    """Attach catalog description, unit price and an opaque id."""
    enriched = []
    for s in suggestions:
        entry = catalog.get(s.code)
        if entry is None:
            continue
        enriched.append(
            SuggestionOut(
                id=f"tc-{uuid.uuid4().hex[:12]}",
                nza_code=s.code,
                original_code=s.original_code,
                description=entry.description,
                tooth_numbers=s.tooth_numbers,
                unit_price=entry.tariff,
                quantity=s.quantity,
                reasoning=s.reasoning,
                confidence=s.confidence,
                is_companion=s.is_companion,
                corrected=s.corrected,
                corrections=s.corrections,
            )
        )
    return enriched


class TreatmentChatPipeline:
    """Turns clinician shorthand into validated NZa code suggestions."""

    def __init__(
        self,
        catalog: CodeCatalog | None = None,
        llm: GeminiClient | None = None,
    ) -> None:
        self._catalog = catalog
        self._llm = llm

    @property
    def catalog(self) -> CodeCatalog:
        return self._catalog if self._catalog is not None else get_code_catalog()

    @property
    def llm(self) -> GeminiClient:
        return self._llm if self._llm is not None else get_llm_client()

    def build_prompt(
        self,
        message: str,
        history: Sequence[object] = (),
        selected_teeth: Sequence[int] | None = None,
    ) -> tuple[str, set[Category]]:
        """Detection prompt and the categories it covers."""
        categories = classify(classifier_text(message, history))
        catalog = self.catalog
        prompt = build_chat_prompt(
            message,
            history,
            build_codebook_section(catalog, categories),
            build_codes_reference(catalog),
            selected_teeth,
        )
        return prompt, categories

    async def run(
        self,
        message: str,
        history: Sequence[object] = (),
        selected_teeth: Sequence[int] | None = None,
    ) -> TreatmentChatResult:
        """Run the full pipeline for one clinician message.

        Raises:
            InputError: Message absent or shorter than two characters.
            ConfigurationError: Catalog or API key unavailable.
            UpstreamError: LLM returned a non-success status.
        """
        check_message(message)
        request_id = uuid.uuid4().hex[:12]

        catalog = self.catalog
        llm = self.llm
        if not llm.is_configured:
            raise ConfigurationError("Gemini API key not configured")

        prompt, categories = self.build_prompt(message, history, selected_teeth)
        logger.debug(
            f"[{request_id}] Categories: {sorted(c.value for c in categories)}, "
            f"prompt {len(prompt)} chars"
        )

        try:
            text = await llm.generate(
                prompt,
                temperature=settings.detection_temperature,
                max_output_tokens=settings.detection_max_tokens,
                json_response=True,
                timeout=settings.llm_timeout_seconds,
            )
        except LLMTimeoutError:
            logger.warning(f"[{request_id}] Detection call timed out, returning no suggestions")
            log_suggestion_run(request_id, [], degraded=True, reason="timeout")
            return TreatmentChatResult(
                response=PARSE_ERROR_MESSAGE,
                categories=categories,
                degraded=True,
                request_id=request_id,
            )

        parsed = parse_llm_response(text)
        if isinstance(parsed, ParseFailure):
            logger.warning(f"[{request_id}] Unusable LLM response ({parsed.reason.value})")
            log_suggestion_run(request_id, [], degraded=True, reason=parsed.reason.value)
            return TreatmentChatResult(
                response=_DEGRADED_MESSAGES[parsed.reason],
                categories=categories,
                degraded=True,
                request_id=request_id,
            )

        final = run_rule_stages(parsed.suggestions, message, catalog, request_id=request_id)
        suggestions = enrich(final, catalog)
        response = await compose_summary(message, suggestions, llm)

        log_suggestion_run(request_id, [s.nza_code for s in suggestions])
        logger.info(
            f"[{request_id}] {len(parsed.suggestions)} raw -> {len(suggestions)} suggestions"
        )
        return TreatmentChatResult(
            response=response,
            suggestions=suggestions,
            categories=categories,
            request_id=request_id,
        )

    def validate_only(
        self,
        text: str,
        raw: Iterable[RawSuggestion],
    ) -> tuple[list[SuggestionOut], list[str]]:
        """Deterministic stages only, for caller-supplied candidates.

        Returns:
            (enriched suggestions, codes dropped as unknown)
        """
        check_message(text)
        dropped: list[str] = []
        final = run_rule_stages(raw, text, self.catalog, dropped=dropped)
        return enrich(final, self.catalog), dropped


# ============================================================================
# Singleton
# ============================================================================

_pipeline: TreatmentChatPipeline | None = None
_pipeline_lock = threading.Lock()


def get_treatment_chat_pipeline() -> TreatmentChatPipeline:
    """Get the singleton pipeline instance."""
    global _pipeline
    if _pipeline is None:
        with _pipeline_lock:
            if _pipeline is None:
                _pipeline = TreatmentChatPipeline()
    return _pipeline


def reset_treatment_chat_pipeline() -> None:
    """Reset the singleton instance (for testing)."""
    global _pipeline
    with _pipeline_lock:
        _pipeline = None
