"""
Token bucket rate limiting for detail workers.

Each worker owns one bucket, so no locking is needed.
"""
import time
import logging
from typing import Callable, Optional

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class TokenBucket:
    """Simple token bucket: `capacity` tokens, refilled at one token per `interval` seconds"""

    def __init__(
        self,
        interval: float,
        capacity: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            interval: Seconds between admissions once the burst is used up
            capacity: Burst size (tokens available immediately)
            clock: Monotonic time source
        """
        self.interval = max(0.0, interval)
        self.capacity = max(1.0, capacity)
        self.refill_rate = 1.0 / self.interval if self.interval > 0 else float("inf")
        self.tokens = self.capacity
        self._clock = clock
        self.last_refill = clock()
        self.acquired = 0

    def _refill(self):
        """Refill tokens based on time elapsed"""
        now = self._clock()
        elapsed = now - self.last_refill
        if self.refill_rate == float("inf"):
            self.tokens = self.capacity
        else:
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: float = 1.0) -> bool:
        """Try to consume tokens. Returns True if successful."""
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def wait_time(self, tokens: float = 1.0) -> float:
        """Calculate wait time needed to consume tokens"""
        self._refill()
        if self.tokens >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.refill_rate

    async def acquire(self, token: Optional[CancellationToken] = None):
        """
        Wait until one request is admitted.

        Raises:
            OperationCancelled: if the token fires while waiting
        """
        token = token or CancellationToken()
        while not self.consume(1.0):
            wait = self.wait_time(1.0)
            logger.debug(f"[rate_limiter] Waiting {wait:.2f}s for token bucket")
            await token.sleep(wait)
        self.acquired += 1
