"""
Result Store - per-run record of step states and outputs.

The store is the only shared mutable state in a run. It enforces:
- the step state machine (illegal transitions raise)
- write-once outputs, published together with the Succeeded transition
- blocking reads: wait_for() returns only once the step is terminal

Every transition gets a logical tick from a single counter, so "B started
after A finished" is checkable without trusting wall clocks.
"""

from __future__ import annotations

import copy
import threading
import time
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from ..errors import ResolutionError, ResolutionReason, StepError, StepTimeoutError
from ..workflows.models import StepState


_ALLOWED: Dict[StepState, Tuple[StepState, ...]] = {
    StepState.PENDING: (StepState.RUNNING, StepState.SKIPPED, StepState.FAILED),
    StepState.RUNNING: (StepState.SUCCEEDED, StepState.FAILED),
    StepState.SUCCEEDED: (),
    StepState.FAILED: (),
    StepState.SKIPPED: (),
}


class IllegalTransitionError(RuntimeError):
    """A step was moved along an edge the state machine does not have."""

    def __init__(self, step_id: str, current: StepState, target: StepState):
        self.step_id = step_id
        self.current = current
        self.target = target
        super().__init__(f"Step '{step_id}' cannot move from {current.value} to {target.value}")


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Plain, independently mutable copy of a value read from the store."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return copy.deepcopy(value)


class StepRecord:
    """Mutable bookkeeping for one step; only touched under the store lock."""

    __slots__ = (
        "state", "outputs", "error", "skipped_because", "root_cause",
        "started_at", "finished_at", "started_tick", "finished_tick",
    )

    def __init__(self) -> None:
        self.state = StepState.PENDING
        self.outputs: Optional[Mapping[str, Any]] = None
        self.error: Optional[BaseException] = None
        self.skipped_because: Optional[str] = None
        self.root_cause: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.started_tick: Optional[int] = None
        self.finished_tick: Optional[int] = None


class ResultStore:
    """
    Thread-safe store created for a single run.

    Usage:
        store = ResultStore(["countries", "zone"])
        store.mark_running("countries")
        store.record_success("countries", {"items": [...]})
        outputs = store.wait_for("countries")   # read-only snapshot
    """

    def __init__(self, step_ids: Iterable[str]):
        self._cond = threading.Condition()
        self._records: Dict[str, StepRecord] = {sid: StepRecord() for sid in step_ids}
        self._tick = 0

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._records

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _transition(self, step_id: str, target: StepState) -> StepRecord:
        # Caller holds the lock
        record = self._records[step_id]
        if target not in _ALLOWED[record.state]:
            raise IllegalTransitionError(step_id, record.state, target)
        record.state = target
        self._tick += 1
        now = datetime.now(timezone.utc)
        if target == StepState.RUNNING:
            record.started_at, record.started_tick = now, self._tick
        else:
            record.finished_at, record.finished_tick = now, self._tick
        return record

    def mark_running(self, step_id: str) -> int:
        with self._cond:
            return self._transition(step_id, StepState.RUNNING).started_tick

    def record_success(self, step_id: str, outputs: Mapping[str, Any]) -> int:
        """
        Publish outputs and mark the step Succeeded. Outputs are written once.
        """
        frozen = _freeze(copy.deepcopy(dict(outputs)))
        with self._cond:
            record = self._transition(step_id, StepState.SUCCEEDED)
            record.outputs = frozen
            self._cond.notify_all()
            return record.finished_tick

    def record_failure(self, step_id: str, error: BaseException) -> int:
        with self._cond:
            record = self._transition(step_id, StepState.FAILED)
            record.error = error
            self._cond.notify_all()
            return record.finished_tick

    def record_skipped(self, step_id: str, because: str, root_cause: Optional[str] = None) -> int:
        with self._cond:
            record = self._transition(step_id, StepState.SKIPPED)
            record.skipped_because = because
            record.root_cause = root_cause or because
            self._cond.notify_all()
            return record.finished_tick

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def state(self, step_id: str) -> StepState:
        with self._cond:
            return self._records[step_id].state

    def states(self) -> Dict[str, StepState]:
        with self._cond:
            return {sid: r.state for sid, r in self._records.items()}

    def root_cause(self, step_id: str) -> Optional[str]:
        """The failed step at the origin of ``step_id``'s failure or skip, if any."""
        with self._cond:
            record = self._records[step_id]
            if record.state == StepState.FAILED:
                return step_id
            return record.root_cause

    def record(self, step_id: str) -> StepRecord:
        """The step's bookkeeping; intended for report building once the run is over."""
        return self._records[step_id]

    def wait_for(self, step_id: str, timeout: Optional[float] = None) -> Mapping[str, Any]:
        """
        Block until ``step_id`` is terminal and return its outputs.

        Raises:
            ResolutionError: DEPENDENCY_FAILED if the step failed or was skipped
            StepTimeoutError: If ``timeout`` elapses first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            record = self._records[step_id]
            while not record.state.is_terminal:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise StepTimeoutError(
                        f"Timed out waiting for step '{step_id}'",
                        timeout_seconds=timeout,
                        upstream_step=step_id,
                    )
                self._cond.wait(remaining)

            if record.state == StepState.SUCCEEDED:
                return record.outputs

            cause = record.root_cause if record.state == StepState.SKIPPED else step_id
            detail = record.error.reason.value if isinstance(record.error, StepError) else record.state.value
            raise ResolutionError(
                ResolutionReason.DEPENDENCY_FAILED,
                f"Step '{step_id}' is {record.state.value} ({detail})",
                upstream_step=step_id,
                root_cause=cause,
            )

    def all_terminal(self) -> bool:
        with self._cond:
            return all(r.state.is_terminal for r in self._records.values())


__all__ = ["ResultStore", "StepRecord", "IllegalTransitionError", "thaw"]
