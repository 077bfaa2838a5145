"""
Throttle for aggregate requests sent to a node
"""
import asyncio
import time

from config.settings import RPC_BURST, RPC_REQUESTS_PER_SECOND


class TokenBucketRateLimiter:
    """
    Token bucket shared by every chunk dispatch of a client.
    Up to `burst` requests go out at once, after that one every 1/rate seconds.
    """

    def __init__(self, rate: float, burst: int = 1):
        if rate <= 0 or burst < 1:
            raise ValueError(f"Invalid rate limit: rate={rate}, burst={burst}")
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls) -> "TokenBucketRateLimiter":
        return cls(RPC_REQUESTS_PER_SECOND, RPC_BURST)

    def _reserve(self, now: float) -> float:
        """Take a token and return how long the caller has to wait for it"""
        self.tokens = min(self.burst, self.tokens + max(now - self.last_update, 0) * self.rate)
        self.last_update = now
        deficit = 1 - self.tokens
        # Negative balance queues later callers behind earlier ones
        self.tokens -= 1
        return deficit / self.rate if deficit > 0 else 0.0

    async def acquire(self):
        """Wait until a token is available"""
        async with self._lock:
            wait_time = self._reserve(time.monotonic())

        if wait_time > 0:
            await asyncio.sleep(wait_time)
