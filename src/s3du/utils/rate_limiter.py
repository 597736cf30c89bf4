"""Token bucket throttle for AWS API calls."""

import time
from threading import Lock
from typing import Callable, Optional


class RateLimiter:
    """Token bucket rate limiter shared by every request a sizer makes.

    A rate of zero or less disables throttling.
    """

    def __init__(
        self,
        rate: float,
        capacity: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            rate: Maximum requests per second, <= 0 for unlimited.
            capacity: Maximum burst size. Defaults to rate.
            clock: Monotonic time source.
            sleep: Function used to wait for tokens.
        """
        self.rate = rate
        self.capacity = capacity if capacity is not None else max(int(rate), 1)
        self.tokens = float(self.capacity)
        self._clock = clock
        self._sleep = sleep
        self.last_update = clock()
        self.lock = Lock()

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_update
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_update = now

    def acquire(self, tokens: int = 1) -> None:
        """Take tokens for one request, blocking until they are available.

        Args:
            tokens: Number of tokens to acquire.
        """
        if self.unlimited:
            return

        with self.lock:
            while True:
                self._refill()

                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return

                self._sleep((tokens - self.tokens) / self.rate)

