"""
Retry and timeout helpers for adapter invocations.

Transient AdapterErrors are retried with exponential backoff until the
policy's budget or the step deadline runs out. Engine-enforced timeouts
(StepTimeoutError) are never retried.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from ..errors import AdapterError, StepTimeoutError
from ..workflows.models import RetryPolicy


logger = logging.getLogger(__name__)


def call_with_timeout(func: Callable[[], Any], timeout_seconds: Optional[float]) -> Any:
    """
    Run ``func`` in a daemon thread and wait at most ``timeout_seconds``.

    Python threads cannot be killed: on timeout the call keeps running in the
    background and its eventual result is discarded.

    Raises:
        StepTimeoutError: If the call did not finish in time
    """
    if timeout_seconds is None:
        return func()
    if timeout_seconds <= 0:
        raise StepTimeoutError("No time left before the deadline", timeout_seconds=timeout_seconds)

    result_holder = [None]
    exception_holder = [None]

    def target():
        try:
            result_holder[0] = func()
        except BaseException as e:  # re-raised in the calling thread
            exception_holder[0] = e

    thread = threading.Thread(target=target, name="stepflow-call", daemon=True)
    thread.start()
    thread.join(timeout=timeout_seconds)

    if thread.is_alive():
        raise StepTimeoutError(
            f"Call did not finish within {timeout_seconds:.3f}s",
            timeout_seconds=round(timeout_seconds, 3),
        )
    if exception_holder[0] is not None:
        raise exception_holder[0]
    return result_holder[0]


class RetryingCaller:
    """
    Invoke a callable under a RetryPolicy and an optional absolute deadline.

    ``attempts`` counts the invocations made by the last call to run(), so
    it is available to the caller whether run() returned or raised.

    ``clock`` decides whether the deadline has passed before each attempt and
    whether a backoff still fits. The wait on an in-flight call is always in
    real seconds (``remaining`` is handed to call_with_timeout), so a
    substitute clock must advance at the rate of real time for that wait to
    line up with the deadline.

    Usage:
        caller = RetryingCaller(RetryPolicy(max_retries=3))
        result = caller.run(lambda: adapter.execute(kind, op, inputs), deadline=deadline)
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy
        self._sleep = sleep
        self._clock = clock
        self.attempts = 0

    def run(
        self,
        func: Callable[[], Any],
        deadline: Optional[float] = None,
        on_retry: Optional[Callable[[int, float, AdapterError], None]] = None,
    ) -> Any:
        """
        Raises:
            AdapterError: The last failure once retries are exhausted or the
                failure is permanent
            StepTimeoutError: If the deadline passes
        """
        self.attempts = 0
        while True:
            remaining = None if deadline is None else deadline - self._clock()
            if remaining is not None and remaining <= 0:
                raise StepTimeoutError(
                    "Step deadline exceeded before attempt could start",
                    attempts=self.attempts,
                )

            self.attempts += 1
            try:
                return call_with_timeout(func, remaining)
            except StepTimeoutError as e:
                raise e.add_context(attempts=self.attempts)
            except AdapterError as e:
                e.add_context(attempts=self.attempts)
                if not e.transient or self.attempts > self.policy.max_retries:
                    raise
                delay = self.policy.delay_for(self.attempts)
                if deadline is not None and self._clock() + delay >= deadline:
                    logger.debug("No time left to retry after %s", e)
                    raise
                if on_retry is not None:
                    on_retry(self.attempts, delay, e)
                self._sleep(delay)


__all__ = ["call_with_timeout", "RetryingCaller"]
