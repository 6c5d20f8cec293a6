from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 2
    min_delay_ms: int = 1000
    max_delay_ms: int = 1000
    jitter: float = 0.0


def _sleep_backoff(delay: int, jitter: float, max_delay: int) -> int:
    jitter_factor = 1.0 + random.uniform(-jitter, jitter)
    sleep_ms = min(max_delay, int(delay * jitter_factor))
    time.sleep(sleep_ms / 1000.0)
    return min(max_delay, delay * 2)


def with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    operation: str = "call",
) -> T:
    last_exc: Exception | None = None
    delay = policy.min_delay_ms

    for attempt in range(1, policy.attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            last_exc = exc
            if attempt == policy.attempts:
                break
            logger.warning(
                "retries.attempt_failed operation=%s attempt=%d/%d error=%s",
                operation, attempt, policy.attempts, exc,
            )
            delay = _sleep_backoff(delay, policy.jitter, policy.max_delay_ms)

    raise last_exc if last_exc else RuntimeError("retry failed")
