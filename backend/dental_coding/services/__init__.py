"""Services for the dental procedure coding assistant.

One module per pipeline stage:
- catalog: NZa code catalog (fixture or database)
- category_classifier: trigger-table category pre-filter
- shorthand: surface/canal/minute extractors
- prompt_builder: detection and summary prompts
- llm_client: Gemini REST client
- response_parser: LLM text -> raw candidates
- treatment_validator: rule-based code correction and dedup
- companion_rules / exclusion_rules: implied and incompatible codes
- summary: confirmation sentence
- treatment_chat: the orchestrating pipeline
"""

from dental_coding.services.catalog import (
    CatalogEntry,
    CodeCatalog,
    get_code_catalog,
    reset_code_catalog,
    set_code_catalog,
)
from dental_coding.services.llm_client import GeminiClient, get_llm_client, reset_llm_client
from dental_coding.services.treatment_chat import (
    TreatmentChatPipeline,
    TreatmentChatResult,
    get_treatment_chat_pipeline,
    reset_treatment_chat_pipeline,
)

__all__ = [
    "CatalogEntry",
    "CodeCatalog",
    "get_code_catalog",
    "reset_code_catalog",
    "set_code_catalog",
    "GeminiClient",
    "get_llm_client",
    "reset_llm_client",
    "TreatmentChatPipeline",
    "TreatmentChatResult",
    "get_treatment_chat_pipeline",
    "reset_treatment_chat_pipeline",
]
