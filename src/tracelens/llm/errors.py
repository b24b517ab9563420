"""Exception types raised by the provider SDKs."""

from __future__ import annotations

import httpx
import openai
from google.genai.errors import APIError as GeminiAPIError
from google.genai.errors import ServerError as GeminiServerError
from openai import APIError as OpenAIAPIError

# Exceptions that indicate recoverable API/network errors (translated to ProviderError)
# Programming errors like TypeError, KeyError, AttributeError should propagate
LLM_RECOVERABLE_ERRORS: tuple[type[Exception], ...] = (
    OpenAIAPIError,
    GeminiAPIError,
    httpx.RequestError,
    httpx.HTTPStatusError,
    TimeoutError,
)

# Failures that may succeed when the same request is sent again
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    GeminiServerError,
    httpx.TransportError,
    TimeoutError,
)

RATE_LIMIT_STATUS = 429


def is_transient_error(error: BaseException) -> bool:
    """True for timeouts, connection failures, rate limits and server-side errors."""
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    if isinstance(error, GeminiAPIError):
        return error.code == RATE_LIMIT_STATUS
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == RATE_LIMIT_STATUS or status >= 500
    return False
