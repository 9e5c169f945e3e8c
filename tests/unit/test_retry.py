"""Tests for retry and timeout handling."""
import time

import pytest

from stepflow.errors import AdapterError, AdapterReason, StepTimeoutError
from stepflow.runtime import RetryingCaller, call_with_timeout
from stepflow.workflows import RetryPolicy


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def flaky(failures, reason=AdapterReason.SERVER_ERROR, result="ok"):
    """Callable failing ``failures`` times before returning ``result``."""
    calls = []

    def func():
        calls.append(1)
        if len(calls) <= failures:
            raise AdapterError(reason, f"failure {len(calls)}")
        return result

    func.calls = calls
    return func


class TestRetryPolicy:
    """Backoff schedule."""

    def test_exponential_delays(self):
        policy = RetryPolicy(backoff_seconds=0.5, backoff_multiplier=2.0, max_backoff_seconds=3)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4, 5)] == [0.5, 1.0, 2.0, 3, 3]

    def test_aliases(self):
        policy = RetryPolicy.model_validate({"maxRetries": 4, "backoffMultiplier": 3})
        assert policy.max_retries == 4
        assert policy.backoff_multiplier == 3


class TestRetryingCaller:
    """Retrying transient adapter failures."""

    def test_success_first_time(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(), sleep=clock.sleep, clock=clock)

        assert caller.run(lambda: 42) == 42
        assert caller.attempts == 1
        assert clock.sleeps == []

    def test_transient_then_success(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=3, backoff_seconds=0.1), sleep=clock.sleep, clock=clock)
        func = flaky(2)

        assert caller.run(func) == "ok"
        assert caller.attempts == 3
        assert clock.sleeps == [0.1, 0.2]

    def test_budget_exhausted(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=2), sleep=clock.sleep, clock=clock)
        func = flaky(10, reason=AdapterReason.RATE_LIMITED)

        with pytest.raises(AdapterError) as exc_info:
            caller.run(func)

        assert len(func.calls) == 3
        assert exc_info.value.context["attempts"] == 3
        assert exc_info.value.reason == AdapterReason.RATE_LIMITED

    def test_permanent_not_retried(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=5), sleep=clock.sleep, clock=clock)
        func = flaky(1, reason=AdapterReason.CLIENT_ERROR)

        with pytest.raises(AdapterError):
            caller.run(func)
        assert len(func.calls) == 1
        assert clock.sleeps == []

    def test_transient_override(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=5), sleep=clock.sleep, clock=clock)

        def func():
            raise AdapterError(AdapterReason.SERVER_ERROR, "do not retry", transient=False)

        with pytest.raises(AdapterError):
            caller.run(func)
        assert caller.attempts == 1

    def test_non_adapter_errors_propagate(self):
        caller = RetryingCaller(RetryPolicy(max_retries=5))

        def func():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            caller.run(func)
        assert caller.attempts == 1

    def test_no_retry_past_deadline(self):
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=5, backoff_seconds=10), sleep=clock.sleep, clock=clock)
        func = flaky(10)

        with pytest.raises(AdapterError):
            caller.run(func, deadline=5.0)
        assert len(func.calls) == 1

    def test_deadline_already_passed(self):
        clock = FakeClock()
        clock.now = 10.0
        caller = RetryingCaller(RetryPolicy(), sleep=clock.sleep, clock=clock)

        with pytest.raises(StepTimeoutError):
            caller.run(lambda: "never", deadline=5.0)
        assert caller.attempts == 0

    def test_in_flight_wait_is_real_time(self):
        # A frozen clock never reaches the deadline, but the wait on the
        # running call is still the remaining budget in real seconds
        clock = FakeClock()
        caller = RetryingCaller(RetryPolicy(max_retries=0), sleep=clock.sleep, clock=clock)

        started = time.monotonic()
        with pytest.raises(StepTimeoutError) as exc_info:
            caller.run(lambda: time.sleep(1), deadline=0.05)

        assert time.monotonic() - started < 0.9
        assert exc_info.value.context["timeout_seconds"] == 0.05
        assert caller.attempts == 1

    def test_on_retry_callback(self):
        clock = FakeClock()
        seen = []
        caller = RetryingCaller(RetryPolicy(max_retries=1, backoff_seconds=0.25), sleep=clock.sleep, clock=clock)

        caller.run(flaky(1), on_retry=lambda attempt, delay, error: seen.append((attempt, delay, error.reason)))
        assert seen == [(1, 0.25, AdapterReason.SERVER_ERROR)]


class TestCallWithTimeout:
    """Engine-enforced timeouts."""

    def test_no_timeout(self):
        assert call_with_timeout(lambda: "done", None) == "done"

    def test_finishes_in_time(self):
        assert call_with_timeout(lambda: "done", 5) == "done"

    def test_exception_reraised(self):
        def boom():
            raise AdapterError(AdapterReason.NETWORK, "reset")

        with pytest.raises(AdapterError):
            call_with_timeout(boom, 5)

    def test_times_out(self):
        with pytest.raises(StepTimeoutError) as exc_info:
            call_with_timeout(lambda: time.sleep(1), 0.05)

        error = exc_info.value
        assert error.reason == AdapterReason.TIMEOUT
        assert error.transient is False

    def test_no_time_left(self):
        with pytest.raises(StepTimeoutError):
            call_with_timeout(lambda: "x", 0)

    def test_engine_timeout_not_retried(self):
        caller = RetryingCaller(RetryPolicy(max_retries=5, backoff_seconds=0))

        with pytest.raises(StepTimeoutError) as exc_info:
            caller.run(lambda: time.sleep(1), deadline=time.monotonic() + 0.05)

        assert caller.attempts == 1
        assert exc_info.value.context["attempts"] == 1
