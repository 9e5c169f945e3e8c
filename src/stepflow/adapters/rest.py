"""
REST Adapter - operation name -> (method, path template).

Path placeholders like ``{zoneId}`` are filled from the resolved inputs and
removed from them. Remaining inputs travel as query parameters for queries
and as the JSON body for mutations.

Routes file (YAML or JSON):

    countries: GET /countries
    createZone: POST /zones
    addMembers: {method: POST, path: "/zones/{zoneId}/members"}
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union
from urllib.parse import quote

import yaml

from ..errors import AdapterError, AdapterReason
from ..workflows.models import OperationKind
from .http import HttpTransport


logger = logging.getLogger(__name__)

_PATH_PARAM = re.compile(r"\{([^{}]+)\}")

Route = Tuple[str, str]


def parse_route(value: Any) -> Route:
    """Parse ``"POST /zones"`` or ``{"method": ..., "path": ...}``."""
    if isinstance(value, str):
        parts = value.split(None, 1)
        if len(parts) != 2:
            raise ValueError(f"Route must look like 'METHOD /path', got {value!r}")
        method, path = parts
    elif isinstance(value, Mapping) and "path" in value:
        method, path = value.get("method", "GET"), value["path"]
    else:
        raise ValueError(f"Invalid route definition: {value!r}")
    return str(method).upper(), str(path).strip()


class RestAdapter:
    """
    Adapter for a JSON REST API.

    Usage:
        adapter = RestAdapter(
            HttpTransport("https://shop.example/api"),
            routes={"createZone": ("POST", "/zones")},
        )
    """

    def __init__(self, transport: HttpTransport, routes: Mapping[str, Any]):
        self.transport = transport
        self.routes: Dict[str, Route] = {
            name: route if isinstance(route, tuple) else parse_route(route)
            for name, route in routes.items()
        }

    @classmethod
    def from_routes_file(cls, transport: HttpTransport, path: Union[str, Path]) -> "RestAdapter":
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must map operation names to routes")
        return cls(transport, data)

    def execute(self, kind: OperationKind, operation: str, inputs: Mapping[str, Any]) -> Any:
        route = self.routes.get(operation)
        if route is None:
            raise AdapterError(
                AdapterReason.UNKNOWN_OPERATION,
                f"No REST route for operation '{operation}'",
                operation=operation,
            )
        method, template = route
        path, remaining = self._fill_path(operation, template, inputs)

        if OperationKind(kind) == OperationKind.QUERY:
            return self.transport.request_json(method, path, params=remaining or None, operation=operation)
        return self.transport.request_json(method, path, json=remaining, operation=operation)

    @staticmethod
    def _fill_path(operation: str, template: str, inputs: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        remaining = dict(inputs)
        names = _PATH_PARAM.findall(template)
        missing = [n for n in names if n not in remaining]
        if missing:
            raise AdapterError(
                AdapterReason.CLIENT_ERROR,
                f"Route for '{operation}' needs input(s) {missing} for its path",
                transient=False,
                operation=operation,
            )
        path = _PATH_PARAM.sub(lambda m: quote(str(remaining[m.group(1)]), safe=""), template)
        for name in names:
            remaining.pop(name, None)
        return path, remaining


__all__ = ["RestAdapter", "parse_route"]
