"""Token bucket rate limiter for reasoning collaborator calls."""

import asyncio
import threading
import time
from typing import Optional

from loguru import logger


class TokenBucket:
    """
    Token bucket algorithm implementation for rate limiting.

    Tokens refill continuously at a fixed rate. Requests consume tokens.

    Attributes:
        capacity: Maximum number of tokens the bucket can hold
        refill_rate: Tokens added per second
        tokens: Current number of tokens available
        last_refill: Monotonic timestamp of last token refill
    """

    def __init__(self, capacity: int, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.monotonic()
        self.lock = threading.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def available(self, tokens: int = 1) -> bool:
        with self.lock:
            self._refill()
            return self.tokens >= tokens

    def consume(self, tokens: int = 1) -> bool:
        """Take tokens if available (thread-safe)."""
        with self.lock:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False

    def wait_time(self, tokens: int = 1) -> float:
        """Seconds until ``tokens`` will be available."""
        with self.lock:
            self._refill()
            missing = tokens - self.tokens
            if missing <= 0:
                return 0.0
            return missing / self.refill_rate if self.refill_rate > 0 else float("inf")


class RateLimiter:
    """
    Requests-per-minute and tokens-per-minute limiter.

    Both buckets must have capacity before either is consumed, so a
    request that fails the TPM check does not burn an RPM slot.

    Usage:
        limiter = RateLimiter(max_rpm=15, max_tpm=1_000_000)
        if await limiter.acquire(token_count=400, timeout=2.0):
            ...
    """

    def __init__(self, max_rpm: int = 15, max_tpm: int = 1_000_000):
        self.rpm_bucket = TokenBucket(capacity=max_rpm, refill_rate=max_rpm / 60.0)
        self.tpm_bucket = TokenBucket(capacity=max_tpm, refill_rate=max_tpm / 60.0)
        logger.bind(component="RateLimiter").debug(
            f"RateLimiter initialized: {max_rpm} RPM, {max_tpm:,} TPM"
        )

    def can_proceed(self, token_count: int) -> bool:
        """
        Consume one request and ``token_count`` tokens if both are available.

        Returns:
            True if request can proceed, False if rate limited
        """
        if not self.rpm_bucket.available(1):
            logger.warning("RPM limit reached, request throttled")
            return False
        if not self.tpm_bucket.available(token_count):
            logger.warning(f"TPM limit reached, request throttled (need {token_count})")
            return False

        self.rpm_bucket.consume(1)
        self.tpm_bucket.consume(token_count)
        return True

    async def acquire(self, token_count: int = 1, timeout: Optional[float] = None) -> bool:
        """
        Wait (without blocking the event loop) until the request may proceed.

        Args:
            token_count: Tokens the request will consume
            timeout: Give up after this many seconds; None waits indefinitely

        Returns:
            True once acquired, False if the timeout elapsed first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.can_proceed(token_count):
            delay = max(self.rpm_bucket.wait_time(1), self.tpm_bucket.wait_time(token_count), 0.05)
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                delay = min(delay, remaining)
            await asyncio.sleep(delay)
        return True
