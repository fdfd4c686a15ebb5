# sarif_issues/throttle.py

"""
Pacing policies for tracker mutations.

The reconciler calls `wait()` before every create/update/comment/close.
`FixedDelay` keeps at least `delay` seconds between consecutive calls;
`NoDelay` is used in dry runs and tests.
"""

import abc
import time
from typing import Callable


class RateLimiter(abc.ABC):
    @abc.abstractmethod
    def wait(self) -> None:
        """Return once the next mutating call may go out."""


class NoDelay(RateLimiter):
    def wait(self) -> None:
        return None


class FixedDelay(RateLimiter):
    """
    :param delay: Minimum seconds between two calls to `wait()` returning
    :param sleep: Injected for tests (defaults to time.sleep)
    :param clock: Monotonic clock (defaults to time.monotonic)
    """

    def __init__(
        self,
        delay: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delay = max(0.0, float(delay))
        self._sleep = sleep
        self._clock = clock
        self._last = None

    def wait(self) -> None:
        now = self._clock()
        if self._last is not None:
            remaining = self.delay - (now - self._last)
            if remaining > 0:
                self._sleep(remaining)
                now = self._clock()
        self._last = now
