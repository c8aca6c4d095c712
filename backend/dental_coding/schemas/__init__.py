"""Pydantic schemas and enums for the dental procedure coding assistant."""

from dental_coding.schemas.base import Category, Confidence, ParseFailureReason
from dental_coding.schemas.coding import (
    ChatContext,
    ClassifyRequest,
    ClassifyResponse,
    HistoryTurn,
    NzaCodeOut,
    RawSuggestionIn,
    ShorthandFacts,
    SuggestionOut,
    TreatmentChatRequest,
    TreatmentChatResponse,
    ValidateSuggestionsRequest,
    ValidateSuggestionsResponse,
)

__all__ = [
    "Category",
    "Confidence",
    "ParseFailureReason",
    "ChatContext",
    "ClassifyRequest",
    "ClassifyResponse",
    "HistoryTurn",
    "NzaCodeOut",
    "RawSuggestionIn",
    "ShorthandFacts",
    "SuggestionOut",
    "TreatmentChatRequest",
    "TreatmentChatResponse",
    "ValidateSuggestionsRequest",
    "ValidateSuggestionsResponse",
]
