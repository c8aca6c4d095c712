"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Callable
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from dental_coding.main import app
from dental_coding.services.catalog import CodeCatalog, load_catalog_from_fixture, reset_code_catalog
from dental_coding.services.llm_client import GeminiClient, reset_llm_client
from dental_coding.services.treatment_chat import TreatmentChatPipeline, reset_treatment_chat_pipeline


def gemini_envelope(text: str) -> dict:
    """Wrap text the way generateContent returns it."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_llm(
    detection: str | Callable[[httpx.Request], httpx.Response],
    summary: str = "Composietvulling op 36 vastgelegd.",
) -> GeminiClient:
    """Gemini client backed by httpx.MockTransport.

    JSON-mode requests (detection) get ``detection``; plain requests
    (summary) get ``summary``. ``detection`` may also be a handler.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["generationConfig"].get("responseMimeType") == "application/json":
            if callable(detection):
                return detection(request)
            return httpx.Response(200, json=gemini_envelope(detection))
        return httpx.Response(200, json=gemini_envelope(summary))

    return GeminiClient(api_key="test-key", transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset service singletons around every test."""
    reset_code_catalog()
    reset_llm_client()
    reset_treatment_chat_pipeline()
    yield
    reset_code_catalog()
    reset_llm_client()
    reset_treatment_chat_pipeline()


@pytest.fixture(scope="session")
def catalog() -> CodeCatalog:
    """The bundled NZa catalog."""
    return load_catalog_from_fixture()


@pytest.fixture
def pipeline_factory(catalog: CodeCatalog) -> Callable[..., TreatmentChatPipeline]:
    """Build a pipeline around a mocked LLM response."""

    def factory(detection, summary: str = "Composietvulling op 36 vastgelegd.") -> TreatmentChatPipeline:
        return TreatmentChatPipeline(catalog=catalog, llm=make_llm(detection, summary))

    return factory


@pytest.fixture
def mock_db_session() -> MagicMock:
    """Create a mock database session.

    Returns a mock AsyncSession that can be used in place of a real database.
    """
    session = MagicMock()
    session.execute = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
