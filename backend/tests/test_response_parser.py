"""Tests for the LLM response parser."""

import json

from dental_coding.schemas.base import ParseFailureReason
from dental_coding.services.response_parser import (
    ParsedSuggestions,
    ParseFailure,
    is_valid_fdi,
    parse_llm_response,
    strip_code_fences,
)


def _parse_one(item: dict):
    result = parse_llm_response(json.dumps([item]))
    assert isinstance(result, ParsedSuggestions)
    assert len(result.suggestions) == 1
    return result.suggestions[0]


# ============================================================================
# Failures
# ============================================================================


class TestParseFailures:
    """Malformed output becomes a tagged failure, never an exception."""

    def test_empty_text(self):
        result = parse_llm_response("")
        assert isinstance(result, ParseFailure)
        assert result.reason == ParseFailureReason.EMPTY

    def test_none(self):
        assert parse_llm_response(None).reason == ParseFailureReason.EMPTY

    def test_not_json(self):
        result = parse_llm_response("Ik zie een composietvulling op 36.")
        assert isinstance(result, ParseFailure)
        assert result.reason == ParseFailureReason.INVALID_JSON

    def test_object_instead_of_array(self):
        result = parse_llm_response('{"code": "V93"}')
        assert isinstance(result, ParseFailure)
        assert result.reason == ParseFailureReason.NOT_AN_ARRAY

    def test_truncated_json(self):
        result = parse_llm_response('[{"code": "V93", "toothNumbers": [36')
        assert result.reason == ParseFailureReason.INVALID_JSON


# ============================================================================
# Successful parses
# ============================================================================


class TestParseSuccess:
    """Well-formed arrays."""

    def test_empty_array_means_nothing_detected(self):
        result = parse_llm_response("[]")
        assert isinstance(result, ParsedSuggestions)
        assert result.suggestions == []

    def test_full_item(self):
        s = _parse_one({
            "code": "V93",
            "description": "Drievlaksvulling composiet",
            "toothNumbers": [36],
            "surfaces": "MOD",
            "canals": None,
            "quantity": 1,
            "reasoning": "comp 36 MOD",
            "isCompanion": False,
        })
        assert s.code == "V93"
        assert s.tooth_numbers == [36]
        assert s.surfaces == "MOD"
        assert s.canals is None
        assert s.quantity == 1
        assert not s.is_companion

    def test_code_fence_stripped(self):
        text = '```json\n[{"code": "a10", "isCompanion": true}]\n```'
        result = parse_llm_response(text)
        assert isinstance(result, ParsedSuggestions)
        assert result.suggestions[0].code == "A10"
        assert result.suggestions[0].is_companion

    def test_strip_code_fences_without_fence(self):
        assert strip_code_fences("  []  ") == "[]"


# ============================================================================
# Sanitization
# ============================================================================


class TestSanitization:
    """Every field is bounded before a RawSuggestion is built."""

    def test_items_without_code_skipped(self):
        result = parse_llm_response(json.dumps([{"description": "x"}, {"code": "  "}, "V93", {"code": "V92"}]))
        assert [s.code for s in result.suggestions] == ["V92"]

    def test_tooth_numbers_filtered_and_deduplicated(self):
        s = _parse_one({"code": "H11", "toothNumbers": [36, "46", 36, 19, 99, 55, 56, True, 3.0]})
        assert s.tooth_numbers == [36, 46, 55]

    def test_tooth_numbers_not_a_list(self):
        assert _parse_one({"code": "H11", "toothNumbers": "36"}).tooth_numbers == []

    def test_surfaces_cleaned(self):
        assert _parse_one({"code": "V92", "surfaces": "m-o"}).surfaces == "MO"
        assert _parse_one({"code": "V92", "surfaces": ""}).surfaces is None
        assert _parse_one({"code": "V92", "surfaces": 2}).surfaces is None

    def test_canals_positive_int(self):
        assert _parse_one({"code": "E16", "canals": 3}).canals == 3
        assert _parse_one({"code": "E16", "canals": 0}).canals is None
        assert _parse_one({"code": "E16", "canals": "drie"}).canals is None

    def test_quantity_defaults_to_one(self):
        assert _parse_one({"code": "M03"}).quantity == 1
        assert _parse_one({"code": "M03", "quantity": 0}).quantity == 1
        assert _parse_one({"code": "M03", "quantity": "4"}).quantity == 4
        assert _parse_one({"code": "M03", "quantity": -2}).quantity == 1

    def test_non_ascii_digits_rejected(self):
        """Superscripts and circled digits are not numbers."""
        assert _parse_one({"code": "V91", "quantity": "²"}).quantity == 1
        assert _parse_one({"code": "V91", "quantity": "①"}).quantity == 1
        assert _parse_one({"code": "H11", "toothNumbers": ["³6", 46]}).tooth_numbers == [46]
        assert _parse_one({"code": "E16", "canals": "²"}).canals is None

    def test_strings_default_empty(self):
        s = _parse_one({"code": "C002", "description": None, "reasoning": 5})
        assert s.description == ""
        assert s.reasoning == ""

    def test_is_companion_requires_true(self):
        assert not _parse_one({"code": "A10", "isCompanion": "yes"}).is_companion


class TestFdiValidation:
    """FDI tooth number ranges."""

    def test_permanent(self):
        assert is_valid_fdi(11)
        assert is_valid_fdi(48)
        assert not is_valid_fdi(19)
        assert not is_valid_fdi(10)

    def test_primary(self):
        assert is_valid_fdi(51)
        assert is_valid_fdi(85)
        assert not is_valid_fdi(56)
        assert not is_valid_fdi(86)

    def test_out_of_range(self):
        assert not is_valid_fdi(5)
        assert not is_valid_fdi(91)
