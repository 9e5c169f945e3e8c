"""
Runtime - per-run execution machinery.

- ResultStore: write-once outputs, blocking reads, step state machine
- InputResolver: binds value sources to concrete inputs
- RetryingCaller: retries transient adapter failures with backoff
- WorkflowExecutor: bounded worker pool scheduling steps as their
  dependencies settle
"""

from .store import IllegalTransitionError, ResultStore
from .resolver import InputResolver
from .retry import RetryingCaller, call_with_timeout
from .executor import StepOutcome, WorkflowExecutor, extract_outputs, run_workflow

__all__ = [
    "IllegalTransitionError",
    "ResultStore",
    "InputResolver",
    "RetryingCaller",
    "call_with_timeout",
    "StepOutcome",
    "WorkflowExecutor",
    "extract_outputs",
    "run_workflow",
]
