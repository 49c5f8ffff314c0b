"""Blocking rate limiter for outbound API calls."""

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


class Limiter(ABC):
    """Anything that can hand out permission for one outbound call."""

    @abstractmethod
    def take(self) -> float:
        """Block until the next call may proceed and return the slot time."""
        pass


class RateLimiter(Limiter):
    """Spaces calls evenly so that at most ``rate`` of them start per ``per`` seconds.

    Callers block in arrival order until their slot comes up.
    """

    def __init__(
        self,
        rate: int,
        per: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            rate: Calls allowed per period
            per: Period length in seconds
            clock: Monotonic time source
            sleep: Function used to block the calling thread
        """
        if rate <= 0:
            raise ValueError("rate must be positive")

        self.rate = rate
        self.interval = per / rate
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: float | None = None

    def take(self) -> float:
        with self._lock:
            now = self._clock()
            if self._last is None:
                self._last = now
                return now

            slot = max(now, self._last + self.interval)
            wait = slot - now
            if wait > 0:
                logger.debug("Rate limit reached, waiting", wait_seconds=round(wait, 3))
                self._sleep(wait)
            self._last = slot
            return slot
