"""
GraphQL Adapter - one document per operation name.

Each step's ``operation`` names a GraphQL document; resolved inputs are sent
as ``variables``. The adapter returns the response's ``data`` object, so
output paths look like ``createZone.id``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..errors import AdapterError, AdapterReason
from ..workflows.models import OperationKind
from .http import HttpTransport


logger = logging.getLogger(__name__)

# Error codes some servers put in extensions that mean "try again"
TRANSIENT_EXTENSION_CODES = frozenset({"RATE_LIMITED", "THROTTLED", "SERVICE_UNAVAILABLE"})


class GraphQLAdapter:
    """
    Adapter for a single GraphQL endpoint.

    Usage:
        adapter = GraphQLAdapter(
            HttpTransport("https://shop.example/admin-api", bearer_token="..."),
            documents={"createZone": "mutation createZone($input: CreateZoneInput!) {...}"},
        )
    """

    def __init__(self, transport: HttpTransport, documents: Mapping[str, str]):
        self.transport = transport
        self.documents = dict(documents)

    @classmethod
    def from_documents_file(cls, transport: HttpTransport, path: Union[str, Path]) -> "GraphQLAdapter":
        """
        Load documents from a YAML/JSON mapping of operation name -> document,
        or from a directory of ``<operation>.graphql`` files.
        """
        path = Path(path)
        if path.is_dir():
            documents = {p.stem: p.read_text(encoding="utf-8") for p in sorted(path.glob("*.graphql"))}
        else:
            documents = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(documents, dict):
                raise ValueError(f"{path} must map operation names to GraphQL documents")
        return cls(transport, documents)

    def execute(self, kind: OperationKind, operation: str, inputs: Mapping[str, Any]) -> Any:
        document = self.documents.get(operation)
        if document is None:
            raise AdapterError(
                AdapterReason.UNKNOWN_OPERATION,
                f"No GraphQL document for operation '{operation}'",
                operation=operation,
            )

        payload = {"query": document, "variables": dict(inputs), "operationName": operation}
        logger.debug("GraphQL %s %s", OperationKind(kind).value, operation)
        body = self.transport.request_json("POST", "", json=payload, operation=operation)
        return _unwrap(body, operation)


def _unwrap(body: Any, operation: str) -> Any:
    if not isinstance(body, dict):
        raise AdapterError(
            AdapterReason.PROTOCOL,
            f"GraphQL response for '{operation}' is not an object",
            operation=operation,
        )

    errors = body.get("errors")
    if errors:
        messages = [_error_message(e) for e in errors] if isinstance(errors, list) else [str(errors)]
        codes = {
            str(e.get("extensions", {}).get("code", "")).upper()
            for e in (errors if isinstance(errors, list) else [])
            if isinstance(e, dict) and isinstance(e.get("extensions"), dict)
        }
        transient = bool(codes & TRANSIENT_EXTENSION_CODES)
        raise AdapterError(
            AdapterReason.RATE_LIMITED if transient else AdapterReason.PROTOCOL,
            f"GraphQL errors in '{operation}': {'; '.join(messages)}",
            transient=transient,
            operation=operation,
            graphql_errors=messages,
        )

    if "data" not in body:
        raise AdapterError(
            AdapterReason.PROTOCOL,
            f"GraphQL response for '{operation}' has no data",
            operation=operation,
        )
    return body["data"]


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error)


__all__ = ["GraphQLAdapter"]
