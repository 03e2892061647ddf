from .rate_limiter import RateLimiter, RateLimitConfig, CostTracker

__all__ = ['RateLimiter', 'RateLimitConfig', 'CostTracker']
