"""
Rate Limiter

Client-side pacing and token/cost accounting for model calls shared by
every document processed in one process.
Supports:
- Requests-per-minute and tokens-per-minute sliding windows
- Per-model token and cost totals
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration"""
    requests_per_minute: int = 20
    tokens_per_minute: int = 40000
    # Extra wait added once a window is full
    window_buffer: float = 1.0


class RateLimiter:
    """
    Sliding-window rate limiter for model calls.

    Usage:
        limiter = RateLimiter(RateLimitConfig(requests_per_minute=20))

        # Wait until a request of this size fits the current window
        await limiter.acquire(estimated_tokens=1200)

        # Record the real usage once the call returns
        limiter.record_usage(tokens=1480)
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._requests: Deque[float] = deque()
        self._tokens: Deque[Tuple[float, int]] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self, estimated_tokens: int = 1000) -> None:
        """
        Block until a request with the given token estimate fits both windows.

        Args:
            estimated_tokens: Expected prompt + completion tokens
        """
        async with self._lock:
            while True:
                wait_time = self._wait_time(estimated_tokens)
                if wait_time <= 0:
                    break
                logger.info(f"⏱️ Rate limit reached, waiting {wait_time:.1f}s")
                await self._sleep(wait_time)
            self._requests.append(self._clock())

    def can_make_request(self, estimated_tokens: int = 1000) -> bool:
        return self._wait_time(estimated_tokens) <= 0

    def record_usage(self, tokens: int) -> None:
        """
        Record tokens consumed by a completed request.

        Args:
            tokens: Total tokens reported by the provider
        """
        if tokens > 0:
            self._tokens.append((self._clock(), tokens))

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while self._requests and self._requests[0] <= cutoff:
            self._requests.popleft()
        while self._tokens and self._tokens[0][0] <= cutoff:
            self._tokens.popleft()

    def _wait_time(self, estimated_tokens: int) -> float:
        now = self._clock()
        self._prune(now)

        waits = []
        if len(self._requests) >= self.config.requests_per_minute:
            waits.append(WINDOW_SECONDS - (now - self._requests[0]))

        used = sum(tokens for _, tokens in self._tokens)
        # A single request larger than the whole budget only waits for an empty window
        if self._tokens and used + estimated_tokens > self.config.tokens_per_minute:
            waits.append(WINDOW_SECONDS - (now - self._tokens[0][0]))

        if not waits:
            return 0.0
        return max(waits) + self.config.window_buffer

    def get_status(self) -> Dict[str, Any]:
        """Current window usage against the configured limits"""
        self._prune(self._clock())
        return {
            'requests_last_minute': len(self._requests),
            'tokens_last_minute': sum(tokens for _, tokens in self._tokens),
            'limits': {
                'requests_per_minute': self.config.requests_per_minute,
                'tokens_per_minute': self.config.tokens_per_minute,
            },
        }


class CostTracker:
    """
    Tracks model API costs.

    Provides cost estimation and reporting for different models.
    """

    # Cost per 1M tokens
    MODEL_COSTS = {
        'gpt-4o': {'input': 2.5, 'output': 10.0},
        'gpt-4o-mini': {'input': 0.15, 'output': 0.6},
        'gpt-4.1': {'input': 2.0, 'output': 8.0},
        'gpt-4.1-mini': {'input': 0.4, 'output': 1.6},
        'gpt-4-turbo': {'input': 10.0, 'output': 30.0},
    }

    def __init__(self):
        self._costs: Dict[str, float] = defaultdict(float)
        self._tokens: Dict[str, Dict[str, int]] = defaultdict(lambda: {'input': 0, 'output': 0})
        self._requests: Dict[str, int] = defaultdict(int)

    def estimate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """
        Estimate cost for a request.

        Args:
            model: Model name
            input_tokens: Number of prompt tokens
            output_tokens: Number of completion tokens

        Returns:
            Estimated cost in USD (0 for unknown models)
        """
        costs = self.MODEL_COSTS.get(model, {'input': 0, 'output': 0})
        return (input_tokens / 1_000_000) * costs['input'] + (output_tokens / 1_000_000) * costs['output']

    def record(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Record usage for one request and return its cost"""
        cost = self.estimate_cost(model, input_tokens, output_tokens)
        self._costs[model] += cost
        self._tokens[model]['input'] += input_tokens
        self._tokens[model]['output'] += output_tokens
        self._requests[model] += 1
        return cost

    def get_summary(self) -> Dict[str, Any]:
        return {
            'total_cost': sum(self._costs.values()),
            'requests': sum(self._requests.values()),
            'by_model': {
                model: {
                    'cost': cost,
                    'requests': self._requests[model],
                    'tokens': dict(self._tokens[model]),
                }
                for model, cost in self._costs.items()
            },
        }

    def reset(self) -> None:
        """Reset all tracking"""
        self._costs.clear()
        self._tokens.clear()
        self._requests.clear()
