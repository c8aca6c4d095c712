"""Gemini LLM client.

Thin async wrapper around the Gemini ``generateContent`` REST endpoint.
One request, one response: no retries. Failures are mapped onto the
pipeline's exception hierarchy:

    missing API key          -> ConfigurationError
    timeout                  -> LLMTimeoutError
    non-2xx / transport error -> UpstreamError

Usage:
    client = get_llm_client()
    text = await client.generate(prompt, temperature=0.0, max_output_tokens=4096)
"""

import logging
import threading
from typing import Any

import httpx

from dental_coding.core.config import settings
from dental_coding.core.exceptions import ConfigurationError, LLMTimeoutError, UpstreamError

logger = logging.getLogger(__name__)


class GeminiClient:
    """Async client for Gemini text generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Gemini API key (defaults to settings).
            model: Model name, e.g. "gemini-2.0-flash".
            base_url: Models endpoint root.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        """Text of the first candidate part, or "" when absent."""
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return ""
        return text if isinstance(text, str) else ""

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.0,
        max_output_tokens: int = 4096,
        top_p: float | None = None,
        json_response: bool = False,
        timeout: float | None = None,
    ) -> str:
        """Send one prompt and return the generated text.

        Args:
            prompt: Full prompt text.
            temperature: Sampling temperature.
            max_output_tokens: Generation length cap.
            top_p: Nucleus sampling (defaults to settings.llm_top_p).
            json_response: Ask for ``application/json`` output.
            timeout: Per-call timeout override in seconds.

        Returns:
            Generated text, "" if the response carried no candidate text.

        Raises:
            ConfigurationError: No API key configured.
            LLMTimeoutError: The call timed out.
            UpstreamError: Non-success status or transport failure.
        """
        if not self.api_key:
            raise ConfigurationError("Gemini API key not configured")

        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "topP": top_p if top_p is not None else settings.llm_top_p,
            "maxOutputTokens": max_output_tokens,
        }
        if json_response:
            generation_config["responseMimeType"] = "application/json"

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        client = await self._get_client()
        try:
            response = await client.post(
                self._endpoint(),
                params={"key": self.api_key},
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Gemini call timed out after {timeout or self.timeout}s")
            raise LLMTimeoutError("LLM call timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Gemini transport error: {e}")
            raise UpstreamError(f"LLM service unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Gemini API error {response.status_code}: {response.text[:500]}")
            raise UpstreamError("AI analysis failed", upstream_status=response.status_code)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Gemini returned a non-JSON envelope")
            return ""

        return self._extract_text(data)


# ============================================================================
# Singleton
# ============================================================================

_llm_client: GeminiClient | None = None
_llm_lock = threading.Lock()


def get_llm_client() -> GeminiClient:
    """Get the singleton Gemini client instance."""
    global _llm_client
    if _llm_client is None:
        with _llm_lock:
            if _llm_client is None:
                _llm_client = GeminiClient()
    return _llm_client


def reset_llm_client() -> None:
    """Reset the singleton instance (for testing)."""
    global _llm_client
    with _llm_lock:
        _llm_client = None
