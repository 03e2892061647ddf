"""
Extraction error taxonomy

Model-call failures are mapped onto a small set of exception types so that
retry decisions and orchestrator error handling never depend on SDK
specifics.
"""

import asyncio
from typing import List, Optional

import openai


class ExtractionError(Exception):
    """Base class for extraction failures"""

    retryable: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ExtractionError):
    """Provider rejected the call for rate or quota reasons (HTTP 429)"""

    retryable = True


class ExtractionTimeoutError(ExtractionError):
    """The call did not complete within its adaptive timeout"""

    retryable = True


class ServerError(ExtractionError):
    """Provider-side failure (HTTP 5xx or connection error)"""

    retryable = True


class AuthError(ExtractionError):
    """Credentials rejected; never retried"""


class InvalidRequestError(ExtractionError):
    """Request rejected as malformed (HTTP 4xx other than auth / rate limit); never retried"""


class MalformedResponseError(ExtractionError):
    """Model reply contained no parseable structured content"""


class ExtractionFailedError(ExtractionError):
    """Terminal orchestrator-level failure"""

    def __init__(self, message: str, retryable: bool = False, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.retryable = retryable
        self.issues = list(issues or [])


RETRYABLE_MESSAGE_PATTERNS = (
    'rate_limit_exceeded',
    'server_error',
    'timeout',
    'connection_error',
)


def classify_error(error: BaseException) -> ExtractionError:
    """
    Map an arbitrary exception from a model call onto the taxonomy

    Args:
        error: Exception raised by the client call

    Returns:
        An ExtractionError subclass instance (the input itself if it already is one)
    """
    if isinstance(error, ExtractionError):
        return error

    message = str(error) or error.__class__.__name__

    if isinstance(error, (asyncio.TimeoutError, openai.APITimeoutError)):
        return ExtractionTimeoutError(f"Model call timed out: {message}")
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthError(message, status_code=getattr(error, 'status_code', None))
    if isinstance(error, openai.RateLimitError):
        return RateLimitedError(message, status_code=429)
    if isinstance(error, openai.APIConnectionError):
        return ServerError(f"Connection error: {message}")

    status = getattr(error, 'status_code', None) or getattr(error, 'status', None)
    code = str(getattr(error, 'code', '') or '').lower()
    lowered = message.lower()

    if status in (401, 403) or 'invalid_api_key' in code or 'invalid_api_key' in lowered:
        return AuthError(message, status_code=status)
    if status == 429:
        return RateLimitedError(message, status_code=status)
    if isinstance(status, int) and status >= 500:
        return ServerError(message, status_code=status)
    if isinstance(status, int) and 400 <= status < 500:
        return InvalidRequestError(message, status_code=status)
    if 'rate_limit_exceeded' in code or 'rate_limit_exceeded' in lowered:
        return RateLimitedError(message, status_code=status)
    if 'timeout' in code or 'timeout' in lowered:
        return ExtractionTimeoutError(message, status_code=status)
    if any(pattern in code or pattern in lowered for pattern in RETRYABLE_MESSAGE_PATTERNS):
        return ServerError(message, status_code=status)

    return InvalidRequestError(message, status_code=status)
