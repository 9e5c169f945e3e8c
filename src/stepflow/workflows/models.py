"""
Workflow Models - Pydantic models for workflow specs and execution reports.

Defines:
- StepSpec: single backend operation with its input sources and outputs
- WorkflowSpec: ordered sequence of steps (+ optional plugin catalog)
- RetryPolicy: per-step retry budget and backoff
- StepReport / ExecutionReport: outcome of a run

Structural checks that must accumulate every problem (duplicate ids, unknown
references, cycles) live in the validator, not in model validators.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..errors import AdapterError, StepError
from .plugins import PluginDefinition
from .values import ValueSource, placeholders


class OperationKind(str, Enum):
    """Kind of backend operation."""
    QUERY = "query"
    MUTATION = "mutation"


class RetryPolicy(BaseModel):
    """
    Retry budget for transient adapter failures.

    Delay before retry ``n`` (1-based) is
    ``min(backoff_seconds * backoff_multiplier ** (n - 1), max_backoff_seconds)``.
    """
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    max_retries: int = Field(2, ge=0, le=20)
    backoff_seconds: float = Field(0.5, ge=0)
    backoff_multiplier: float = Field(2.0, ge=1.0)
    max_backoff_seconds: float = Field(30.0, ge=0)

    def delay_for(self, retry_number: int) -> float:
        delay = self.backoff_seconds * (self.backoff_multiplier ** max(retry_number - 1, 0))
        return min(delay, self.max_backoff_seconds)


class StepSpec(BaseModel):
    """
    A single step in a workflow.

    Steps run once every step they depend on (explicitly through
    ``depends_on`` or implicitly through a placeholder) is terminal.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique step id within the workflow")
    operation: str = Field(..., min_length=1, description="Backend operation name")
    kind: OperationKind = Field(..., description="query or mutation")
    inputs: Dict[str, ValueSource] = Field(default_factory=dict)
    outputs: Dict[str, str] = Field(
        default_factory=dict,
        description="Output name -> extraction path into the adapter response",
    )
    depends_on: Tuple[str, ...] = Field((), alias="dependsOn")
    timeout_seconds: Optional[float] = Field(None, alias="timeout", gt=0)
    retry: Optional[RetryPolicy] = None
    description: Optional[str] = None

    @field_validator("depends_on")
    @classmethod
    def dedupe_dependencies(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """dependsOn is a set; keep first-seen order for stable reporting."""
        return tuple(dict.fromkeys(v))

    def placeholder_refs(self) -> List[str]:
        """Step ids referenced by placeholders anywhere in the inputs, first-seen order."""
        seen: Dict[str, None] = {}
        for source in self.inputs.values():
            for ph in placeholders(source):
                seen.setdefault(ph.step, None)
        return list(seen)

    def all_dependencies(self) -> List[str]:
        return list(dict.fromkeys([*self.depends_on, *self.placeholder_refs()]))


class WorkflowSpec(BaseModel):
    """
    Complete workflow spec.

    Immutable once constructed; a run never modifies it.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field("workflow", min_length=1)
    description: Optional[str] = None
    steps: Tuple[StepSpec, ...] = ()
    plugins: Dict[str, PluginDefinition] = Field(default_factory=dict)

    @property
    def step_ids(self) -> List[str]:
        return [s.id for s in self.steps]

    def get_step(self, step_id: str) -> Optional[StepSpec]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


# =============================================================================
# EXECUTION REPORT
# =============================================================================

class StepState(str, Enum):
    """Lifecycle of a step within one run."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepState.SUCCEEDED, StepState.FAILED, StepState.SKIPPED)


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ErrorDetail(BaseModel):
    """Serializable description of why a step failed."""
    model_config = ConfigDict(extra="forbid")

    type: str
    reason: str
    message: str
    transient: Optional[bool] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorDetail":
        if isinstance(exc, StepError):
            return cls(
                type=type(exc).__name__,
                reason=exc.reason.value,
                message=exc.message,
                transient=exc.transient if isinstance(exc, AdapterError) else None,
                context={key: _json_safe(value) for key, value in exc.context.items()},
            )
        return cls(type=type(exc).__name__, reason="internal_error", message=str(exc))


def _json_safe(value: Any) -> Any:
    """Keep JSON-native context as is; anything else is reported by repr()."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return _json_safe(value.value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return repr(value)


VOLATILE_STEP_FIELDS = ("started_at", "finished_at", "started_tick", "finished_tick", "duration_ms")
VOLATILE_RUN_FIELDS = ("run_id", "started_at", "finished_at", "duration_ms")


class StepReport(BaseModel):
    """Final outcome of one step."""
    model_config = ConfigDict(extra="forbid")

    step_id: str
    operation: str
    kind: OperationKind
    state: StepState
    resolved_inputs: Optional[Dict[str, Any]] = Field(
        None, description="Inputs actually sent to the adapter"
    )
    result: Any = Field(None, description="Raw adapter response")
    outputs: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[ErrorDetail] = None
    attempts: int = 0
    skipped_because: Optional[str] = Field(None, description="Direct dependency that failed or was skipped")
    root_cause: Optional[str] = Field(None, description="Step whose failure started the skip cascade")
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    started_tick: Optional[int] = None
    finished_tick: Optional[int] = None
    duration_ms: int = 0

    @property
    def is_success(self) -> bool:
        return self.state == StepState.SUCCEEDED


class ExecutionReport(BaseModel):
    """Complete result of a workflow run."""
    model_config = ConfigDict(extra="forbid")

    workflow: str
    run_id: str
    status: RunStatus
    steps: Dict[str, StepReport] = Field(default_factory=dict)
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int = 0

    def is_success(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    def get(self, step_id: str) -> Optional[StepReport]:
        return self.steps.get(step_id)

    def states(self) -> Dict[str, StepState]:
        return {sid: s.state for sid, s in self.steps.items()}

    def in_state(self, state: StepState) -> List[StepReport]:
        return [s for s in self.steps.values() if s.state == state]

    def failed_steps(self) -> List[StepReport]:
        return self.in_state(StepState.FAILED)

    def skipped_steps(self) -> List[StepReport]:
        return self.in_state(StepState.SKIPPED)

    def to_dict(self, deterministic: bool = False) -> Dict[str, Any]:
        """
        JSON-ready dict.

        With ``deterministic=True`` the run id, wall-clock timestamps,
        durations and logical ticks are dropped, so two runs of the same spec
        against a deterministic adapter serialize identically.
        """
        data = self.model_dump(mode="json")
        if deterministic:
            for key in VOLATILE_RUN_FIELDS:
                data.pop(key, None)
            for step in data["steps"].values():
                for key in VOLATILE_STEP_FIELDS:
                    step.pop(key, None)
        return data

    def to_json(self, deterministic: bool = False, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(deterministic=deterministic), indent=indent)


__all__ = [
    "OperationKind",
    "RetryPolicy",
    "StepSpec",
    "WorkflowSpec",
    "StepState",
    "RunStatus",
    "ErrorDetail",
    "StepReport",
    "ExecutionReport",
]
