"""API routers for the dental procedure coding assistant."""

from dental_coding.api.nza_codes import router as nza_codes_router
from dental_coding.api.treatment_chat import router as treatment_chat_router

__all__ = [
    "nza_codes_router",
    "treatment_chat_router",
]
