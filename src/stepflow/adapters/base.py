"""
API Adapter contract.

The engine talks to a backend only through ``execute``:

    execute(kind, operation_name, resolved_inputs) -> result

``result`` is an opaque structured value; declared outputs are extracted
from it by path. Failures are reported by raising AdapterError, whose
``transient`` flag decides whether the step is retried.

Adapters may be called from several worker threads at once.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Protocol, runtime_checkable

from ..errors import AdapterError, AdapterReason
from ..workflows.models import OperationKind


@runtime_checkable
class ApiAdapter(Protocol):
    """Protocol for backend adapters."""

    def execute(self, kind: OperationKind, operation: str, inputs: Mapping[str, Any]) -> Any:
        ...


class FunctionAdapter:
    """
    Adapter backed by plain Python callables, one per operation.

    Usage:
        adapter = FunctionAdapter({"countries": lambda inputs: {"items": [...]}})
    """

    def __init__(self, handlers: Dict[str, Callable[[Mapping[str, Any]], Any]]):
        self._handlers = dict(handlers)

    def execute(self, kind: OperationKind, operation: str, inputs: Mapping[str, Any]) -> Any:
        handler = self._handlers.get(operation)
        if handler is None:
            raise AdapterError(
                AdapterReason.UNKNOWN_OPERATION,
                f"No handler for operation '{operation}'",
                operation=operation,
            )
        return handler(inputs)


__all__ = ["ApiAdapter", "FunctionAdapter"]
