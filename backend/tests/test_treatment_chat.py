"""Tests for the treatment chat pipeline and summary composer."""

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from conftest import make_llm
from dental_coding.core.exceptions import ConfigurationError, InputError, UpstreamError
from dental_coding.schemas.base import Category, Confidence
from dental_coding.services.llm_client import GeminiClient
from dental_coding.services.summary import (
    NOTHING_DETECTED_EN,
    NOTHING_DETECTED_NL,
    compose_summary,
    fallback_summary,
    no_suggestions_message,
)
from dental_coding.services.treatment_chat import (
    NOTHING_PARSED_MESSAGE,
    PARSE_ERROR_MESSAGE,
    TreatmentChatPipeline,
    check_message,
    get_treatment_chat_pipeline,
    reset_treatment_chat_pipeline,
)


def _llm_json(items: list[dict]) -> str:
    return json.dumps(items)


COMP_36_MOD = _llm_json([{
    "code": "V92",
    "description": "Tweevlaksvulling composiet",
    "toothNumbers": [36],
    "surfaces": None,
    "canals": None,
    "quantity": 1,
    "reasoning": "comp 36 MOD",
    "isCompanion": False,
}])


# ============================================================================
# Input checks
# ============================================================================


class TestInput:
    """Input is rejected before any stage runs."""

    @pytest.mark.parametrize("message", ["", "   ", "a", " a \n", None])
    def test_too_short(self, message):
        with pytest.raises(InputError):
            check_message(message)

    def test_two_characters_ok(self):
        assert check_message(" x1 ") == " x1 "

    @pytest.mark.asyncio
    async def test_run_rejects_before_llm(self, catalog):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("LLM must not be called")

        pipeline = TreatmentChatPipeline(
            catalog=catalog,
            llm=GeminiClient(api_key="k", transport=httpx.MockTransport(handler)),
        )
        with pytest.raises(InputError):
            await pipeline.run("a")

    @pytest.mark.asyncio
    async def test_missing_api_key(self, catalog):
        pipeline = TreatmentChatPipeline(catalog=catalog, llm=GeminiClient(api_key=""))
        with pytest.raises(ConfigurationError):
            await pipeline.run("comp 36 MOD")


# ============================================================================
# Happy path
# ============================================================================


class TestPipelineRun:
    """End-to-end with a mocked LLM."""

    @pytest.mark.asyncio
    async def test_filling_scenario(self, pipeline_factory):
        pipeline = pipeline_factory(COMP_36_MOD, summary="Composietvulling 36 MOD genoteerd.")
        result = await pipeline.run("comp 36 MOD")

        assert not result.degraded
        assert result.response == "Composietvulling 36 MOD genoteerd."
        assert [(s.nza_code, s.tooth_numbers, s.is_companion) for s in result.suggestions] == [
            ("V93", [36], False),
            ("A10", [], True),
        ]
        v93 = result.suggestions[0]
        assert v93.original_code == "V92"
        assert v93.corrected
        assert v93.confidence == Confidence.MEDIUM
        assert v93.unit_price == Decimal("93.77")
        assert v93.description == "Drievlaksvulling composiet"
        assert v93.id.startswith("tc-")
        assert result.suggestions[0].id != result.suggestions[1].id

    @pytest.mark.asyncio
    async def test_endo_scenario(self, pipeline_factory):
        detection = _llm_json([{"code": "E13", "toothNumbers": [36], "reasoning": "wkb 36"}])
        result = await pipeline_factory(detection).run("wkb 36")
        assert [s.nza_code for s in result.suggestions] == ["E16", "A10", "X10"]

    @pytest.mark.asyncio
    async def test_cleaning_scenario(self, pipeline_factory):
        detection = _llm_json([{"code": "M03", "quantity": 1}])
        result = await pipeline_factory(detection).run("gebitsreiniging 20 min")
        assert len(result.suggestions) == 1
        assert result.suggestions[0].quantity == 4
        assert result.suggestions[0].corrections == [
            "Aantal gecorrigeerd: 1 → 4 (20 min / 5 min per eenheid)"
        ]

    @pytest.mark.asyncio
    async def test_unknown_codes_dropped(self, pipeline_factory):
        detection = _llm_json([{"code": "Q99"}, {"code": "C002"}])
        result = await pipeline_factory(detection).run("controle")
        assert [s.nza_code for s in result.suggestions] == ["C002"]

    @pytest.mark.asyncio
    async def test_categories_reported(self, pipeline_factory):
        result = await pipeline_factory(COMP_36_MOD).run("comp 36 MOD")
        assert result.categories == {Category.VULLING, Category.VERDOVING, Category.CONSULTATIE}

    @pytest.mark.asyncio
    async def test_empty_array_uses_nothing_detected_message(self, pipeline_factory):
        result = await pipeline_factory("[]").run("controle vandaag")
        assert result.suggestions == []
        assert not result.degraded
        assert result.response == NOTHING_DETECTED_NL


# ============================================================================
# Degraded paths
# ============================================================================


class TestPipelineDegradation:
    """Unusable LLM output never fails the request."""

    @pytest.mark.asyncio
    async def test_malformed_response(self, pipeline_factory):
        result = await pipeline_factory("Ik denk een vulling, V93?").run("comp 36 MOD")
        assert result.degraded
        assert result.suggestions == []
        assert result.response == PARSE_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_not_an_array(self, pipeline_factory):
        result = await pipeline_factory('{"code": "V93"}').run("comp 36 MOD")
        assert result.degraded
        assert result.response == NOTHING_PARSED_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_candidate_text(self, pipeline_factory):
        result = await pipeline_factory("").run("comp 36 MOD")
        assert result.degraded
        assert result.response == NOTHING_PARSED_MESSAGE

    @pytest.mark.asyncio
    async def test_timeout_degrades(self, pipeline_factory):
        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        result = await pipeline_factory(timeout).run("comp 36 MOD")
        assert result.degraded
        assert result.suggestions == []

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, pipeline_factory):
        pipeline = pipeline_factory(lambda request: httpx.Response(503, text="overloaded"))
        with pytest.raises(UpstreamError):
            await pipeline.run("comp 36 MOD")

    @pytest.mark.asyncio
    async def test_summary_failure_falls_back(self, catalog):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["generationConfig"].get("responseMimeType"):
                return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": COMP_36_MOD}]}}]})
            return httpx.Response(500, text="summary down")

        llm = GeminiClient(api_key="k", transport=httpx.MockTransport(handler))
        result = await TreatmentChatPipeline(catalog=catalog, llm=llm).run("comp 36 MOD")
        assert len(result.suggestions) == 2
        assert result.response == "2 verrichting(en) gedetecteerd."

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, catalog):
        started = asyncio.Event()

        class SlowClient(GeminiClient):
            async def generate(self, prompt, **kwargs):
                started.set()
                await asyncio.sleep(10)
                return "[]"

        pipeline = TreatmentChatPipeline(catalog=catalog, llm=SlowClient(api_key="k"))
        task = asyncio.create_task(pipeline.run("comp 36 MOD"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


# ============================================================================
# Prompt assembly through the pipeline
# ============================================================================


class TestPipelinePrompt:
    """Detection prompt content."""

    def test_prompt_includes_history_and_selected_teeth(self, pipeline_factory):
        pipeline = pipeline_factory("[]")
        history = [{"role": "user", "content": "comp 36 MOD"}, {"role": "assistant", "content": "V93 op 36"}]
        prompt, categories = pipeline.build_prompt("hetzelfde voor 37", history, [37])

        assert "TANDARTS: comp 36 MOD" in prompt
        assert "ASSISTENT: V93 op 36" in prompt
        assert "GESELECTEERDE ELEMENTEN: 37" in prompt
        assert "CODE: V93 — Drievlaksvulling composiet (€93.77, per element, per vlak)" in prompt
        assert Category.VULLING in categories

    def test_prompt_without_history(self, pipeline_factory):
        prompt, _ = pipeline_factory("[]").build_prompt("wkb 36")
        assert "(geen eerdere berichten)" in prompt
        assert "GESELECTEERDE ELEMENTEN" not in prompt
        assert "Begeleidende codes: A10, X10" in prompt

    def test_only_last_six_turns(self, pipeline_factory):
        history = [{"role": "user", "content": f"bericht-{i}"} for i in range(8)]
        prompt, _ = pipeline_factory("[]").build_prompt("comp 36 MOD", history)
        assert "bericht-1\n" not in prompt
        assert "TANDARTS: bericht-2" in prompt
        assert "TANDARTS: bericht-7" in prompt


# ============================================================================
# Deterministic-only validation
# ============================================================================


class TestValidateOnly:
    """Rule stages without the LLM."""

    def test_reports_dropped(self, pipeline_factory):
        from dental_coding.services.response_parser import RawSuggestion

        pipeline = pipeline_factory("[]")
        suggestions, dropped = pipeline.validate_only(
            "comp 36 MOD",
            [RawSuggestion(code="V92", tooth_numbers=[36]), RawSuggestion(code="ZZ1")],
        )
        assert [s.nza_code for s in suggestions] == ["V93", "A10"]
        assert dropped == ["ZZ1"]


class TestPipelineSingleton:
    """Singleton accessors."""

    def setup_method(self):
        """Reset singleton before each test."""
        reset_treatment_chat_pipeline()

    def test_singleton_pattern(self):
        assert get_treatment_chat_pipeline() is get_treatment_chat_pipeline()


# ============================================================================
# Summary composer
# ============================================================================


class TestSummary:
    """Confirmation sentence and fallbacks."""

    def test_nothing_detected_dutch(self):
        assert no_suggestions_message("vulling ergens") == NOTHING_DETECTED_NL

    def test_nothing_detected_english(self):
        assert no_suggestions_message("did some work today") == NOTHING_DETECTED_EN

    def test_fallback(self):
        assert fallback_summary(3) == "3 verrichting(en) gedetecteerd."

    @pytest.mark.asyncio
    async def test_no_client_uses_fallback(self):
        class S:
            nza_code = "C002"
            description = "Controle"
            tooth_numbers: list[int] = []

        assert await compose_summary("controle", [S()], None) == "1 verrichting(en) gedetecteerd."

    @pytest.mark.asyncio
    async def test_blank_summary_uses_fallback(self):
        class S:
            nza_code = "C002"
            description = "Controle"
            tooth_numbers: list[int] = []

        llm = make_llm("[]", summary="   ")
        assert await compose_summary("controle", [S()], llm) == "1 verrichting(en) gedetecteerd."
