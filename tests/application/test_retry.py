"""Tests for the bounded retry helper."""

import random

import pytest

from ordercore.application.retry import RetryPolicy, run_with_retry
from ordercore.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateOrderNumberError,
    InsufficientStockError,
)
from tests.fakes import RecordingSleep


class _Flaky:
    """Raises the queued exceptions in order, then returns 'done'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


class TestRetryPolicy:

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_exponential_delays_are_capped(self):
        policy = RetryPolicy(backoff_initial=0.1, backoff_factor=3.0, backoff_max=0.5, jitter=False)
        assert [policy.delay(n) for n in (1, 2, 3)] == pytest.approx([0.1, 0.3, 0.5])

    def test_jitter_stays_below_ceiling(self):
        policy = RetryPolicy(backoff_initial=0.2, jitter=True)
        rng = random.Random(42)
        assert all(0 <= policy.delay(2, rng) <= 0.4 for _ in range(50))


class TestRunWithRetry:

    def test_success_first_time(self):
        operation = _Flaky()
        assert run_with_retry(operation, RetryPolicy(), "op", sleep=RecordingSleep()) == "done"
        assert operation.calls == 1

    def test_conflicts_are_retried(self):
        operation = _Flaky(ConcurrencyConflictError("x"), ConcurrencyConflictError("y"))
        sleep = RecordingSleep()
        assert run_with_retry(operation, RetryPolicy(jitter=False), "op", sleep=sleep) == "done"
        assert operation.calls == 3
        assert len(sleep.calls) == 2

    def test_business_errors_are_not_retried(self):
        operation = _Flaky(InsufficientStockError("out"))
        with pytest.raises(InsufficientStockError):
            run_with_retry(operation, RetryPolicy(), "op", sleep=RecordingSleep())
        assert operation.calls == 1

    def test_duplicate_order_number_is_left_to_the_caller(self):
        operation = _Flaky(DuplicateOrderNumberError("taken"))
        with pytest.raises(DuplicateOrderNumberError):
            run_with_retry(operation, RetryPolicy(), "op", sleep=RecordingSleep())
        assert operation.calls == 1

    def test_exhaustion_raises_conflict(self):
        operation = _Flaky(*[ConcurrencyConflictError(str(i)) for i in range(3)])
        with pytest.raises(ConcurrencyConflictError, match="after 3 attempts") as exc_info:
            run_with_retry(operation, RetryPolicy(max_attempts=3), "Place order", sleep=RecordingSleep())
        assert operation.calls == 3
        assert isinstance(exc_info.value.__cause__, ConcurrencyConflictError)
