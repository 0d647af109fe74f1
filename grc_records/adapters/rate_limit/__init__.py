"""Rate limiting adapters.

Outbound calls to rate-limited third-party APIs go through a limiter
instance owned by the component issuing them. The abstraction keeps the
door open for a shared store (e.g., Redis) when running several workers.
"""

from grc_records.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from grc_records.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
]
