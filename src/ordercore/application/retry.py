"""Bounded retry with exponential backoff and full jitter.

Only exceptions flagged ``retryable`` (concurrency conflicts) are retried;
business-rule and validation errors bubble up on the first attempt.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from ordercore.domain.exceptions import ConcurrencyConflictError, DomainException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    backoff_initial: float = 0.05
    backoff_factor: float = 2.0
    backoff_max: float = 1.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int, rng: random.Random | None = None) -> float:
        """Sleep before retry number *attempt* (1-based)."""
        ceiling = min(
            self.backoff_max,
            self.backoff_initial * (self.backoff_factor ** (attempt - 1)),
        )
        if not self.jitter:
            return ceiling
        return (rng or random).uniform(0, ceiling)


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation*, retrying retryable DomainExceptions per *policy*.

    Raises ConcurrencyConflictError once the attempts are exhausted.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except DomainException as exc:
            if not exc.retryable:
                raise
            if attempt == policy.max_attempts:
                logger.warning(
                    "%s: giving up after %d attempts (%s)", description, attempt, exc
                )
                raise ConcurrencyConflictError(
                    f"{description} failed after {attempt} attempts due to "
                    f"concurrent updates; please retry"
                ) from exc
            pause = policy.delay(attempt)
            logger.info(
                "%s: attempt %d hit %s, retrying in %.3fs",
                description, attempt, exc.code, pause,
            )
            sleep(pause)
    raise AssertionError("unreachable")
