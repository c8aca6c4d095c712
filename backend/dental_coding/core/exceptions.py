"""Exception hierarchy for the procedure coding pipeline.

Only InputError, ConfigurationError and UpstreamError are request-level
failures. Everything else degrades to a smaller but valid result.
"""


class CodingError(Exception):
    """Base error for the coding pipeline."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InputError(CodingError):
    """Caller input rejected before any stage runs."""

    status_code = 400


class ConfigurationError(CodingError):
    """Catalog or LLM credentials are not available."""

    status_code = 503


class UpstreamError(CodingError):
    """LLM service returned a non-success status or could not be reached."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(message)


class LLMTimeoutError(UpstreamError):
    """LLM call exceeded its timeout.

    The pipeline treats this like an unparseable response.
    """
