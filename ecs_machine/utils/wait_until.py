import time
from typing import Callable


class WaitUntilTimeoutError(TimeoutError):
    def __init__(self, timeout: float, elapsed: float):
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(f"condition not met after {elapsed:.1f}s (timeout={timeout}s)")


def wait_until(predicate: Callable[[], bool], timeout: float, retry_interval: float = 3) -> float:
    """Poll ``predicate`` until it returns True; returns the elapsed seconds.

    The predicate is always evaluated at least once, even with a zero timeout.
    """
    start = time.monotonic()
    while True:
        if predicate():
            return time.monotonic() - start
        elapsed = time.monotonic() - start
        if elapsed >= timeout:
            raise WaitUntilTimeoutError(timeout, elapsed)
        time.sleep(min(retry_interval, max(timeout - elapsed, 0)))
