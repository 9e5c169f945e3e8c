"""
Replay Adapter - canned responses for dry runs and deterministic tests.

Responses are keyed by operation name. A response is returned as-is unless
it is one of these directives:

    {"$error": {"reason": "server_error", "message": "boom"}}   raise AdapterError
    {"$sequence": [r1, r2, ...]}                                 one per call, last repeats
    {"$delay": 0.2, "$response": r}                              sleep, then respond
    callable(inputs)                                             computed response

Every call is recorded (thread-safe) so tests can assert on what was sent.
"""

from __future__ import annotations

import copy
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..errors import AdapterError, AdapterReason
from ..workflows.models import OperationKind


@dataclass(frozen=True)
class ReplayCall:
    """One recorded adapter invocation."""
    kind: OperationKind
    operation: str
    inputs: Dict[str, Any]


class ReplayAdapter:
    """
    Deterministic in-memory adapter.

    Usage:
        adapter = ReplayAdapter({
            "countries": {"items": [{"id": "1", "code": "AU"}]},
            "createZone": {"$sequence": [{"$error": {"reason": "server_error"}}, {"id": "z1"}]},
        })
    """

    def __init__(self, responses: Mapping[str, Any], strict: bool = True):
        """
        Args:
            responses: Operation name -> response or directive
            strict: Unknown operations raise UNKNOWN_OPERATION; otherwise return None
        """
        self.responses = dict(responses)
        self.strict = strict
        self._lock = threading.Lock()
        self._calls: List[ReplayCall] = []
        self._counters: Dict[str, int] = {}

    @classmethod
    def from_file(cls, path: Union[str, Path], strict: bool = True) -> "ReplayAdapter":
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must map operation names to responses")
        return cls(data, strict=strict)

    # -------------------------------------------------------------------------
    # Call log
    # -------------------------------------------------------------------------

    @property
    def calls(self) -> List[ReplayCall]:
        with self._lock:
            return list(self._calls)

    def calls_for(self, operation: str) -> List[ReplayCall]:
        return [c for c in self.calls if c.operation == operation]

    def call_count(self, operation: Optional[str] = None) -> int:
        if operation is None:
            return len(self.calls)
        return len(self.calls_for(operation))

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    def execute(self, kind: OperationKind, operation: str, inputs: Mapping[str, Any]) -> Any:
        with self._lock:
            self._calls.append(ReplayCall(OperationKind(kind), operation, copy.deepcopy(dict(inputs))))
            index = self._counters.get(operation, 0)
            self._counters[operation] = index + 1

        if operation not in self.responses:
            if self.strict:
                raise AdapterError(
                    AdapterReason.UNKNOWN_OPERATION,
                    f"No canned response for operation '{operation}'",
                    operation=operation,
                )
            return None

        return self._respond(self.responses[operation], index, operation, inputs)

    def _respond(self, response: Any, index: int, operation: str, inputs: Mapping[str, Any]) -> Any:
        if callable(response):
            return response(dict(inputs))
        if not isinstance(response, dict):
            return copy.deepcopy(response)

        if "$sequence" in response:
            sequence = response["$sequence"]
            if not sequence:
                return None
            item = sequence[min(index, len(sequence) - 1)]
            return self._respond(item, index, operation, inputs)
        if "$delay" in response:
            time.sleep(float(response["$delay"]))
            return self._respond(response.get("$response"), index, operation, inputs)
        if "$error" in response:
            raise _error_from(response["$error"] or {}, operation)
        return copy.deepcopy(response)


def _error_from(spec: Mapping[str, Any], operation: str) -> AdapterError:
    try:
        reason = AdapterReason(spec.get("reason", AdapterReason.SERVER_ERROR.value))
    except ValueError:
        reason = AdapterReason.PROTOCOL
    return AdapterError(
        reason,
        spec.get("message", f"Scripted {reason.value} for '{operation}'"),
        transient=spec.get("transient"),
        status_code=spec.get("status_code"),
        operation=operation,
    )


__all__ = ["ReplayAdapter", "ReplayCall"]
