"""
Workflow Executor - runs a validated workflow against an API adapter.

Execution flow per step:
1. Wait until every dependency is terminal
2. If any dependency Failed or was Skipped -> Skipped (never Running)
3. If the run deadline has passed -> Failed(Timeout) without dispatch
4. Otherwise: resolve inputs -> invoke adapter (with retries) ->
   extract outputs -> publish once -> Succeeded

Independent steps run concurrently on a bounded thread pool. A single
failing branch never stops unrelated branches; the report always covers
every step of the spec.
"""

from __future__ import annotations

import copy
import heapq
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ..config import Settings, get_settings
from ..errors import ResolutionError, ResolutionReason, StepError, StepTimeoutError
from ..observability import get_logger, with_trace_context
from ..transforms.registry import TransformRegistry, default_registry
from ..workflows.models import (
    ErrorDetail,
    ExecutionReport,
    RetryPolicy,
    RunStatus,
    StepReport,
    StepSpec,
    StepState,
    WorkflowSpec,
)
from ..workflows.paths import PathError, extract
from ..workflows.plugins import PluginCatalog
from ..workflows.validator import ValidatedWorkflow, validate_spec
from ..adapters.base import ApiAdapter
from .resolver import InputResolver
from .retry import RetryingCaller
from .store import ResultStore


logger = get_logger(__name__)


@dataclass
class StepOutcome:
    """What a worker learned while running one step."""
    resolved_inputs: Optional[Dict[str, Any]] = None
    result: Any = None
    outputs: Optional[Dict[str, Any]] = None
    attempts: int = 0


def extract_outputs(step: StepSpec, result: Any) -> Dict[str, Any]:
    """
    Pull each declared output out of an adapter response.

    Raises:
        ResolutionError: OUTPUT_NOT_IN_RESPONSE for the first missing path
    """
    outputs: Dict[str, Any] = {}
    for name, path in step.outputs.items():
        try:
            outputs[name] = extract(result, path)
        except PathError as e:
            raise ResolutionError(
                ResolutionReason.OUTPUT_NOT_IN_RESPONSE,
                f"output '{name}' not found in response of '{step.operation}': {e}",
                path=path,
                output=name,
            ) from e
    return outputs


class WorkflowExecutor:
    """
    Executes workflows. Holds configuration only; every run gets its own
    Result Store and resolver, so one executor can serve concurrent runs.

    Usage:
        executor = WorkflowExecutor(ReplayAdapter({...}))
        report = executor.run(spec)
        if not report.is_success():
            ...
    """

    def __init__(
        self,
        adapter: ApiAdapter,
        transforms: Optional[TransformRegistry] = None,
        plugins: Optional[PluginCatalog] = None,
        settings: Optional[Settings] = None,
        max_workers: Optional[int] = None,
        run_deadline_s: Optional[float] = None,
        default_retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            adapter: Backend adapter
            transforms: Transform registry (built-ins if omitted)
            plugins: Registered plugin codes; specs may add their own
            settings: Settings (global settings if omitted)
            max_workers: Pool size override
            run_deadline_s: Overall deadline override
            default_retry: Retry policy for steps without one
            sleep: Backoff sleep function (injectable for tests)
            clock: Monotonic clock in seconds (injectable for tests). It places
                deadlines and is read between attempts; an in-flight call is
                still bounded by a real-time wait of the remaining budget
        """
        settings = settings or get_settings()
        self.adapter = adapter
        self.transforms = transforms if transforms is not None else default_registry()
        self.plugins = plugins or PluginCatalog()
        self.max_workers = max_workers or settings.max_workers
        self.run_deadline_s = run_deadline_s if run_deadline_s is not None else settings.run_deadline_s
        self.default_step_timeout_s = settings.default_step_timeout_s
        self.default_retry = default_retry or RetryPolicy(
            max_retries=settings.default_max_retries,
            backoff_seconds=settings.retry_backoff_seconds,
            backoff_multiplier=settings.retry_backoff_multiplier,
            max_backoff_seconds=settings.retry_max_backoff_seconds,
        )
        self._sleep = sleep
        self._clock = clock

    def validate(self, spec: WorkflowSpec) -> ValidatedWorkflow:
        """Validate ``spec`` against this executor's transforms and plugins."""
        return validate_spec(spec, transforms=self.transforms, plugins=self.plugins)

    def run(self, workflow: Union[ValidatedWorkflow, WorkflowSpec], run_id: Optional[str] = None) -> ExecutionReport:
        """
        Run a workflow to completion or deadline.

        Raises:
            SpecValidationError: If given an unvalidated spec that is invalid;
                no adapter call is made in that case
        """
        if isinstance(workflow, WorkflowSpec):
            workflow = self.validate(workflow)

        run = _Run(self, workflow, run_id or uuid.uuid4().hex[:12])
        return run.execute()


class _Run:
    """State of one execution. Not shared between runs."""

    def __init__(self, executor: WorkflowExecutor, workflow: ValidatedWorkflow, run_id: str):
        self.executor = executor
        self.workflow = workflow
        self.graph = workflow.graph
        self.run_id = run_id
        self.log = get_logger(__name__, run_id=run_id)

        self.store = ResultStore(workflow.order)
        self.resolver = InputResolver(self.store, executor.transforms, workflow.plugins)
        self.outcomes: Dict[str, StepOutcome] = {}

        self._clock = executor._clock
        self.started_mono = self._clock()
        self.deadline: Optional[float] = None
        if executor.run_deadline_s is not None:
            self.deadline = self.started_mono + executor.run_deadline_s

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def execute(self) -> ExecutionReport:
        started_at = datetime.now(timezone.utc)
        self.log.info(
            "Starting workflow %s (%d steps, %d workers)",
            self.workflow.name, len(self.workflow.order), self.executor.max_workers,
        )

        waiting: Dict[str, Set[str]] = {
            sid: set(self.graph.dependencies[sid]) for sid in self.workflow.order
        }
        ready: List[tuple] = []
        for sid, deps in waiting.items():
            if not deps:
                heapq.heappush(ready, (self.graph.declaration_index(sid), sid))

        in_flight: Dict[Future, str] = {}

        with ThreadPoolExecutor(max_workers=self.executor.max_workers, thread_name_prefix="stepflow") as pool:
            try:
                while ready or in_flight:
                    # Dispatch or settle everything that is ready, first-declared first
                    while ready:
                        _, sid = heapq.heappop(ready)
                        if self._settle_without_running(sid):
                            self._unlock(sid, waiting, ready)
                        else:
                            future = pool.submit(self._execute_step, self.workflow.step(sid))
                            in_flight[future] = sid

                    if not in_flight:
                        break

                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    for future in sorted(done, key=lambda f: self.graph.declaration_index(in_flight[f])):
                        sid = in_flight.pop(future)
                        self.outcomes[sid] = future.result()
                        self._unlock(sid, waiting, ready)
            except KeyboardInterrupt:
                for future in in_flight:
                    future.cancel()
                self.log.warning("Run interrupted; %d step(s) in flight", len(in_flight))
                raise

        return self._build_report(started_at)

    def _unlock(self, sid: str, waiting: Dict[str, Set[str]], ready: List[tuple]) -> None:
        for child in self.graph.dependents[sid]:
            waiting[child].discard(sid)
            if not waiting[child]:
                heapq.heappush(ready, (self.graph.declaration_index(child), child))

    def _settle_without_running(self, sid: str) -> bool:
        """Skip or time out a ready step. Returns True if the step was settled."""
        blocked = [
            dep for dep in self.graph.dependencies[sid]
            if self.store.state(dep) in (StepState.FAILED, StepState.SKIPPED)
        ]
        if blocked:
            blocked.sort(key=self.graph.declaration_index)
            because = blocked[0]
            root = self.store.root_cause(because)
            self.store.record_skipped(sid, because=because, root_cause=root)
            self.log.info(
                "Skipping %s: dependency %s did not succeed (root cause %s)", sid, because, root,
                extra=with_trace_context(step_id=sid),
            )
            return True

        if self.deadline is not None and self._clock() >= self.deadline:
            error = StepTimeoutError(
                "Run deadline exceeded before the step was dispatched",
                timeout_seconds=self.executor.run_deadline_s,
            )
            self.store.record_failure(sid, error)
            self.log.warning("Step %s timed out before dispatch", sid, extra=with_trace_context(step_id=sid))
            return True

        return False

    # -------------------------------------------------------------------------
    # Step execution (worker threads)
    # -------------------------------------------------------------------------

    def _step_deadline(self, step: StepSpec, started: float) -> Optional[float]:
        timeout = step.timeout_seconds or self.executor.default_step_timeout_s
        candidates = [d for d in (self.deadline, started + timeout if timeout else None) if d is not None]
        return min(candidates) if candidates else None

    def _execute_step(self, step: StepSpec) -> StepOutcome:
        outcome = StepOutcome()
        extra = with_trace_context(step_id=step.id, operation=step.operation)
        self.store.mark_running(step.id)
        started = self._clock()
        self.log.info("Running step %s (%s %s)", step.id, step.kind.value, step.operation, extra=extra)

        caller = RetryingCaller(
            step.retry or self.executor.default_retry,
            sleep=self.executor._sleep,
            clock=self._clock,
        )

        def on_retry(attempt: int, delay: float, error: StepError) -> None:
            self.log.warning(
                "Step %s attempt %d failed (%s); retrying in %.2fs", step.id, attempt, error, delay,
                extra=extra,
            )

        try:
            outcome.resolved_inputs = self.resolver.resolve_inputs(step)
            sent = outcome.resolved_inputs
            try:
                outcome.result = caller.run(
                    lambda: self.executor.adapter.execute(step.kind, step.operation, copy.deepcopy(sent)),
                    deadline=self._step_deadline(step, started),
                    on_retry=on_retry,
                )
            finally:
                outcome.attempts = caller.attempts
            outcome.outputs = extract_outputs(step, outcome.result)
        except Exception as e:
            if isinstance(e, StepError) and outcome.attempts:
                e.add_context(attempts=outcome.attempts)
            self.store.record_failure(step.id, e)
            self.log.warning("Step %s failed: %s", step.id, e, extra=extra)
            return outcome

        self.store.record_success(step.id, outcome.outputs)
        self.log.info(
            "Step %s succeeded after %d attempt(s)", step.id, outcome.attempts, extra=extra,
        )
        return outcome

    # -------------------------------------------------------------------------
    # Report
    # -------------------------------------------------------------------------

    def _build_report(self, started_at: datetime) -> ExecutionReport:
        steps: Dict[str, StepReport] = {}
        for step in self.workflow.spec.steps:
            record = self.store.record(step.id)
            outcome = self.outcomes.get(step.id, StepOutcome())
            duration_ms = 0
            if record.started_at and record.finished_at:
                duration_ms = int((record.finished_at - record.started_at).total_seconds() * 1000)
            steps[step.id] = StepReport(
                step_id=step.id,
                operation=step.operation,
                kind=step.kind,
                state=record.state,
                resolved_inputs=outcome.resolved_inputs,
                result=outcome.result,
                outputs=outcome.outputs or {},
                error=ErrorDetail.from_exception(record.error) if record.error else None,
                attempts=outcome.attempts,
                skipped_because=record.skipped_because,
                root_cause=record.root_cause,
                started_at=record.started_at,
                finished_at=record.finished_at,
                started_tick=record.started_tick,
                finished_tick=record.finished_tick,
                duration_ms=duration_ms,
            )

        succeeded = all(s.state == StepState.SUCCEEDED for s in steps.values())
        finished_at = datetime.now(timezone.utc)
        report = ExecutionReport(
            workflow=self.workflow.name,
            run_id=self.run_id,
            status=RunStatus.SUCCEEDED if succeeded else RunStatus.FAILED,
            steps=steps,
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=int((finished_at - started_at).total_seconds() * 1000),
        )
        counts: Dict[str, int] = {}
        for s in steps.values():
            counts[s.state.value] = counts.get(s.state.value, 0) + 1
        self.log.info("Workflow %s finished: %s %s", self.workflow.name, report.status.value, counts)
        return report


def run_workflow(
    spec: Union[ValidatedWorkflow, WorkflowSpec],
    adapter: ApiAdapter,
    **kwargs: Any,
) -> ExecutionReport:
    """Convenience wrapper: build an executor and run ``spec`` once."""
    run_id = kwargs.pop("run_id", None)
    return WorkflowExecutor(adapter, **kwargs).run(spec, run_id=run_id)


__all__ = ["WorkflowExecutor", "StepOutcome", "extract_outputs", "run_workflow"]
