"""
Model-call layer: OpenAI service, retry/timeout policies, error taxonomy, prompts
"""

from .errors import (
    ExtractionError,
    RateLimitedError,
    ExtractionTimeoutError,
    ServerError,
    AuthError,
    InvalidRequestError,
    MalformedResponseError,
    ExtractionFailedError,
    classify_error,
)
from .retry import RetryPolicy, TimeoutPolicy, retry_with_policy
from .openai_service import ExtractionClient, OpenAIExtractionService, OutputSchema, payload_size
from .prompt_manager import PromptManager, get_prompt_manager

__all__ = [
    'ExtractionError',
    'RateLimitedError',
    'ExtractionTimeoutError',
    'ServerError',
    'AuthError',
    'InvalidRequestError',
    'MalformedResponseError',
    'ExtractionFailedError',
    'classify_error',
    'RetryPolicy',
    'TimeoutPolicy',
    'retry_with_policy',
    'ExtractionClient',
    'OpenAIExtractionService',
    'OutputSchema',
    'payload_size',
    'PromptManager',
    'get_prompt_manager',
]
