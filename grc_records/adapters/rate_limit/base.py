"""Rate limiter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the call may proceed.
        limit: Max admitted calls per window.
        remaining: Calls still admissible in the current window after this one.
        retry_after_seconds: Suggested wait before the next attempt when refused.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: float | None


class AbstractRateLimiter(ABC):
    """Interface for outbound-call rate limiters."""

    @abstractmethod
    def consume(self) -> RateLimitDecision:
        """Run the admission check and record the call when admitted."""
        raise NotImplementedError

    @abstractmethod
    def remaining(self) -> int:
        """Return how many calls would still be admitted, without recording one."""
        raise NotImplementedError

    def is_allowed(self) -> bool:
        """Admit and record a call, returning False when over the limit."""
        return self.consume().allowed
