"""
Error taxonomy for workflow validation and execution.

Two families:
- SpecValidationError / SpecLoadError: fatal, raised before any step runs.
- StepError and subclasses: fail only the owning step and are rendered
  into the execution report.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class StepflowError(Exception):
    """Base class for all stepflow errors."""
    pass


# =============================================================================
# SPEC-LEVEL ERRORS
# =============================================================================

class ProblemKind(str, Enum):
    """Kind of structural problem found in a workflow spec."""
    DUPLICATE_STEP = "duplicate_step"
    UNKNOWN_STEP = "unknown_step"
    UNKNOWN_OUTPUT = "unknown_output"
    UNKNOWN_TRANSFORM = "unknown_transform"
    TRANSFORM_ARITY = "transform_arity"
    UNKNOWN_PLUGIN = "unknown_plugin"
    PLUGIN_ARGUMENTS = "plugin_arguments"
    INVALID_PATH = "invalid_path"
    CYCLE = "cycle"


@dataclass(frozen=True)
class ValidationProblem:
    """A single problem found while validating a spec."""
    kind: ProblemKind
    message: str
    step_id: Optional[str] = None
    members: tuple = ()  # cycle membership, in traversal order

    def __str__(self) -> str:
        prefix = f"[{self.step_id}] " if self.step_id else ""
        return f"{prefix}{self.kind.value}: {self.message}"


class SpecValidationError(StepflowError):
    """Raised when a spec fails validation. Carries every problem found."""

    def __init__(self, problems: List[ValidationProblem]):
        self.problems = list(problems)
        lines = [f"Workflow spec is invalid ({len(self.problems)} problem(s)):"]
        lines.extend(f"  - {p}" for p in self.problems)
        super().__init__("\n".join(lines))

    def of_kind(self, kind: ProblemKind) -> List[ValidationProblem]:
        return [p for p in self.problems if p.kind == kind]

    @property
    def cycles(self) -> List[tuple]:
        return [p.members for p in self.problems if p.kind == ProblemKind.CYCLE]


class SpecLoadError(StepflowError):
    """Raised when a spec file cannot be read or decoded."""

    def __init__(self, message: str, source: str = "unknown"):
        self.source = source
        super().__init__(f"{message} (source: {source})")


# =============================================================================
# STEP-LEVEL ERRORS
# =============================================================================

class StepError(StepflowError):
    """
    An error that fails a single step.

    Context (which input, which transform, which upstream step) is attached
    while the error propagates out of the resolver so the report alone is
    enough to reconstruct the cause.
    """

    reason: Enum

    def __init__(self, reason: Enum, message: str, **context: Any):
        self.reason = reason
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def add_context(self, **context: Any) -> "StepError":
        """Attach context without overwriting what an inner frame already set."""
        for key, value in context.items():
            if value is not None and key not in self.context:
                self.context[key] = value
        return self

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.reason.value}): {self.message}"


class TransformationReason(str, Enum):
    INVALID_CURRENCY = "invalid_currency"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_PLUGIN_ARGUMENTS = "invalid_plugin_arguments"


class TransformationError(StepError):
    """Malformed input to a named transform."""

    def __init__(
        self,
        reason: TransformationReason,
        message: str,
        transform: Optional[str] = None,
        **context: Any,
    ):
        super().__init__(reason, message, transform=transform, **context)


class LookupReason(str, Enum):
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


class RecordLookupError(StepError, LookupError):
    """A lookup found zero or several matching records."""

    def __init__(self, reason: LookupReason, message: str, **context: Any):
        context.setdefault("transform", "lookup")
        super().__init__(reason, message, **context)


class ResolutionReason(str, Enum):
    MISSING_OUTPUT = "missing_output"
    DEPENDENCY_FAILED = "dependency_failed"
    OUTPUT_NOT_IN_RESPONSE = "output_not_in_response"


class ResolutionError(StepError):
    """A placeholder could not be bound, or an output could not be extracted."""

    def __init__(
        self,
        reason: ResolutionReason,
        message: str,
        upstream_step: Optional[str] = None,
        path: Optional[str] = None,
        **context: Any,
    ):
        super().__init__(reason, message, upstream_step=upstream_step, path=path, **context)


class AdapterReason(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    CLIENT_ERROR = "client_error"
    PROTOCOL = "protocol"
    UNKNOWN_OPERATION = "unknown_operation"


TRANSIENT_REASONS = frozenset({
    AdapterReason.TIMEOUT,
    AdapterReason.RATE_LIMITED,
    AdapterReason.SERVER_ERROR,
    AdapterReason.NETWORK,
})


class AdapterError(StepError):
    """
    Failure reported by an API adapter.

    ``transient`` defaults from the reason (timeouts, rate limits, 5xx and
    network failures are retried) but adapters may override it.
    """

    def __init__(
        self,
        reason: AdapterReason,
        message: str,
        transient: Optional[bool] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **context: Any,
    ):
        self.transient = reason in TRANSIENT_REASONS if transient is None else transient
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(reason, message, status_code=status_code, **context)


class StepTimeoutError(AdapterError):
    """A step exceeded its own timeout or the run deadline. Never retried."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **context: Any):
        super().__init__(
            AdapterReason.TIMEOUT,
            message,
            transient=False,
            timeout_seconds=timeout_seconds,
            **context,
        )


__all__ = [
    "StepflowError",
    "ProblemKind",
    "ValidationProblem",
    "SpecValidationError",
    "SpecLoadError",
    "StepError",
    "TransformationReason",
    "TransformationError",
    "LookupReason",
    "RecordLookupError",
    "ResolutionReason",
    "ResolutionError",
    "AdapterReason",
    "AdapterError",
    "StepTimeoutError",
    "TRANSIENT_REASONS",
]
