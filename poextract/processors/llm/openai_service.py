"""
OpenAI Extraction Service

Structured-output model calls for purchase-order extraction. Each call
forces a single function tool so the reply arrives as JSON arguments,
is wrapped in an adaptive timeout, and is retried per RetryPolicy.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from openai import AsyncOpenAI

from ...jobs.rate_limiter import CostTracker, RateLimiter
from ...models import ModelReply, TokenUsage
from ..chunking.base import estimate_tokens
from .retry import RetryPolicy, TimeoutPolicy, retry_with_policy

logger = logging.getLogger(__name__)

Message = Dict[str, str]


@dataclass(frozen=True)
class OutputSchema:
    """Named JSON schema the model must fill"""

    name: str
    description: str
    parameters: Dict[str, Any]

    def as_tool(self) -> Dict[str, Any]:
        return {
            'type': 'function',
            'function': {
                'name': self.name,
                'description': self.description,
                'parameters': self.parameters,
            },
        }


class ExtractionClient(Protocol):
    """Anything that can turn messages plus an output schema into a ModelReply"""

    async def extract(self, messages: List[Message], schema: OutputSchema) -> ModelReply:
        ...


def payload_size(messages: List[Message]) -> int:
    """UTF-8 size of all message contents"""
    return sum(len(str(m.get('content') or '').encode('utf-8')) for m in messages)


class OpenAIExtractionService:
    """Structured extraction client backed by the OpenAI chat completions API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
        max_tokens: int = 16000,
        temperature: float = 0.0,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_policy: Optional[TimeoutPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cost_tracker: Optional[CostTracker] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        """
        Initialize the extraction service

        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY when omitted)
            model: Chat model to use (default: gpt-4o-mini)
            client: Pre-built AsyncOpenAI client
            max_tokens: Completion token cap per call
            temperature: Sampling temperature (default: 0 for deterministic extraction)
            retry_policy: Backoff policy for retryable failures
            timeout_policy: Adaptive per-call timeout
            rate_limiter: Optional shared rate limiter
            cost_tracker: Optional shared cost tracker
            sleep: Awaitable sleep used between retries
            rng: Jitter source used between retries
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_policy = timeout_policy or TimeoutPolicy()
        self.rate_limiter = rate_limiter
        self.cost_tracker = cost_tracker
        self._sleep = sleep
        self._rng = rng

    async def extract(self, messages: List[Message], schema: OutputSchema) -> ModelReply:
        """
        Request structured output for the given messages

        Args:
            messages: Role-tagged chat messages
            schema: Output schema, sent as a forced function tool

        Returns:
            ModelReply with the raw JSON content and token usage

        Raises:
            RateLimitedError, ExtractionTimeoutError, ServerError: after retries are exhausted
            AuthError, InvalidRequestError: immediately
        """
        size = payload_size(messages)
        timeout = self.timeout_policy.for_payload(size)
        estimated = estimate_tokens(size) + self.max_tokens // 4

        async def attempt():
            if self.rate_limiter:
                await self.rate_limiter.acquire(estimated)
            return await asyncio.wait_for(self._create(messages, schema), timeout=timeout)

        logger.info(f"🤖 Calling OpenAI API ({schema.name}, {size} bytes, timeout {timeout:.0f}s)...")
        response = await retry_with_policy(
            attempt,
            self.retry_policy,
            sleep=self._sleep,
            rng=self._rng,
            description=f"OpenAI {schema.name}",
        )

        reply = self._to_reply(response, schema)
        self._record_usage(reply)
        logger.info(f"✅ OpenAI {schema.name} completed ({reply.usage.total_tokens} tokens)")
        return reply

    async def _create(self, messages: List[Message], schema: OutputSchema):
        return await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=[schema.as_tool()],
            tool_choice={'type': 'function', 'function': {'name': schema.name}},
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def _to_reply(self, response: Any, schema: OutputSchema) -> ModelReply:
        choice = response.choices[0]
        message = choice.message

        content = None
        tool_calls = getattr(message, 'tool_calls', None)
        if isinstance(tool_calls, list) and tool_calls:
            content = tool_calls[0].function.arguments
        if not isinstance(content, str) or not content.strip():
            content = message.content if isinstance(message.content, str) else ''

        response_model = getattr(response, 'model', None)
        finish_reason = getattr(choice, 'finish_reason', None)
        if finish_reason == 'length':
            logger.warning(f"⚠️ OpenAI {schema.name} reply was cut off at max_tokens")

        return ModelReply(
            content=content,
            usage=TokenUsage.from_response(getattr(response, 'usage', None)),
            model=response_model if isinstance(response_model, str) else self.model,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            schema_name=schema.name,
        )

    def _record_usage(self, reply: ModelReply) -> None:
        if self.rate_limiter:
            self.rate_limiter.record_usage(reply.usage.total_tokens)
        if self.cost_tracker:
            self.cost_tracker.record(reply.model or self.model,
                                     reply.usage.prompt_tokens, reply.usage.completion_tokens)
