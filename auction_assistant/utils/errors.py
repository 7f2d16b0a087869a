"""
Error hierarchy and upstream error classification.

Services never let provider exceptions escape: every failure is folded into an
``AnalysisError`` record carrying a machine-readable code and a ``retryable``
flag, so callers (the pipeline, the CLI) can decide whether to try again.
"""

from typing import Any, Optional

import anthropic
import httpx

from auction_assistant.models.schemas import AnalysisError

# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""
    pass


class ConfigurationError(AppError):
    """Raised when a service cannot be constructed from the current settings."""
    pass


class ImageLoadError(AppError):
    """Raised when an image cannot be read from disk or downloaded."""
    pass


class ResponseParseError(AppError):
    """Raised when a model reply cannot be turned into structured data."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class UnknownElementError(AppError, ValueError):
    """Raised when asked to regenerate a post element that does not exist."""

    def __init__(self, element: Any):
        super().__init__(f"Unknown element: {element}")
        self.element = element


# =============================================================================
# Error Codes
# =============================================================================

API_ERROR_CODE = "ANTHROPIC_API_ERROR"
CONNECTION_ERROR_CODE = "ANTHROPIC_CONNECTION_ERROR"
IMAGE_FETCH_ERROR_CODE = "IMAGE_FETCH_ERROR"
ANALYSIS_ERROR_CODE = "ANALYSIS_ERROR"
GENERATION_ERROR_CODE = "GENERATION_ERROR"
UNKNOWN_ERROR_CODE = "UNKNOWN_ERROR"


def is_retryable_status(status: Optional[int]) -> bool:
    """Rate limits and server-side failures are worth retrying."""
    if status is None:
        return False
    return status == 429 or status >= 500


def _api_error_type(error: anthropic.APIStatusError) -> Optional[str]:
    body = error.body
    if isinstance(body, dict):
        inner = body.get("error")
        if isinstance(inner, dict) and inner.get("type"):
            return str(inner["type"])
        if body.get("type") and body.get("type") != "error":
            return str(body["type"])
    return None


# =============================================================================
# Error Classifier
# =============================================================================

def classify_error(
    error: object,
    fallback_code: str = ANALYSIS_ERROR_CODE,
    unknown_message: str = "An unknown error occurred",
) -> AnalysisError:
    """
    Convert an arbitrary failure into an ``AnalysisError`` record.

    Args:
        error: The caught exception (or any other raised object).
        fallback_code: Code used for ordinary exceptions, e.g. ``GENERATION_ERROR``.
        unknown_message: Message used when ``error`` is not an exception at all.

    Returns:
        AnalysisError with code, message, retryable flag and optional details.
    """
    if isinstance(error, anthropic.APIStatusError):
        error_type = _api_error_type(error)
        return AnalysisError(
            code=error_type or API_ERROR_CODE,
            message=error.message,
            retryable=is_retryable_status(error.status_code),
            details={"status": error.status_code, "type": error_type},
        )

    if isinstance(error, anthropic.APIConnectionError):
        return AnalysisError(
            code=CONNECTION_ERROR_CODE,
            message=str(error),
            retryable=True,
            details={"timeout": isinstance(error, anthropic.APITimeoutError)},
        )

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return AnalysisError(
            code=IMAGE_FETCH_ERROR_CODE,
            message=str(error),
            retryable=is_retryable_status(status),
            details={"status": status, "url": str(error.request.url)},
        )

    if isinstance(error, httpx.TransportError):
        return AnalysisError(
            code=IMAGE_FETCH_ERROR_CODE,
            message=str(error) or error.__class__.__name__,
            retryable=True,
        )

    if isinstance(error, Exception):
        return AnalysisError(
            code=fallback_code,
            message=str(error),
            retryable=False,
        )

    return AnalysisError(
        code=UNKNOWN_ERROR_CODE,
        message=unknown_message,
        retryable=False,
    )


__all__ = [
    "AppError",
    "ConfigurationError",
    "ImageLoadError",
    "ResponseParseError",
    "UnknownElementError",
    "classify_error",
    "is_retryable_status",
    "API_ERROR_CODE",
    "CONNECTION_ERROR_CODE",
    "IMAGE_FETCH_ERROR_CODE",
    "ANALYSIS_ERROR_CODE",
    "GENERATION_ERROR_CODE",
    "UNKNOWN_ERROR_CODE",
]
