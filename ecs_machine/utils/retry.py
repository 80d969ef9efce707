import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from loguru import logger

from ..errors import RetryExhaustedError, TransientRemoteError

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 20


@dataclass(frozen=True)
class RetryPolicy:
    # total attempts = 1 + max_retries
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = 5.0
    jitter: float = 2.0

    def next_delay(self) -> float:
        return self.base_delay + random.uniform(0, self.jitter)


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientRemoteError)


def with_retry(operation: str, fn: Callable[[], T], policy: RetryPolicy = RetryPolicy(),
               retry_if: Callable[[BaseException], bool] = is_transient) -> T:
    """Call ``fn`` until it succeeds, retrying errors accepted by ``retry_if``.

    Errors rejected by ``retry_if`` propagate immediately. Running out of
    attempts raises RetryExhaustedError naming ``operation``.
    """
    attempts = 0
    while True:
        attempts += 1
        try:
            return fn()
        except Exception as exc:
            if not retry_if(exc):
                raise
            if attempts > policy.max_retries:
                raise RetryExhaustedError(operation, attempts, exc) from exc
            delay = policy.next_delay()
            logger.warning(f"Failed to {operation} (attempt {attempts}), retry in {delay:.1f}s: {exc}")
            time.sleep(delay)
