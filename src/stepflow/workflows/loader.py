"""
Spec Loader - Load workflow specs from JSON or YAML.

Supports:
- Top-level array of steps
- Object with ``name``, ``description``, ``plugins`` and ``steps``
- Inline dict / list definitions

Value source encodings inside ``inputs``:

    "Oceania"                                   literal
    {"from": "createZone", "path": "zoneId"}    placeholder
    {"transform": "slugify", "args": [...]}     transform
    {"plugin": "code", "arguments": {...}}      plugin configuration
    {"literal": {...}}                          literal, even with reserved keys

Plain objects and arrays that contain any of the above anywhere inside them
become object / list sources; otherwise they are literals.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import SpecLoadError
from .models import RetryPolicy, StepSpec, WorkflowSpec
from .values import (
    ListValue,
    LiteralValue,
    ObjectValue,
    Placeholder,
    PluginConfig,
    Transform,
    ValueSource,
)


logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")

_PLACEHOLDER_KEYS = frozenset({"from", "path"})
_TRANSFORM_KEYS = frozenset({"transform", "args"})
_PLUGIN_KEYS = frozenset({"plugin", "arguments"})
_LITERAL_KEYS = frozenset({"literal"})


# =============================================================================
# ENTRY POINTS
# =============================================================================

def load_spec_file(path: Union[str, Path]) -> WorkflowSpec:
    """
    Load a workflow spec from a ``.json``, ``.yaml`` or ``.yml`` file.

    Raises:
        SpecLoadError: If the file is missing, undecodable or structurally invalid
    """
    path = Path(path)
    if not path.exists():
        raise SpecLoadError(f"Spec file not found: {path}", source=str(path))

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SpecLoadError(f"Spec file is not valid UTF-8: {e}", source=str(path)) from e
    except OSError as e:
        raise SpecLoadError(f"Cannot read spec file: {e}", source=str(path)) from e

    fmt = "yaml" if path.suffix.lower() in YAML_SUFFIXES else "json"
    spec = load_spec_text(text, fmt=fmt, source=str(path))
    logger.debug("Loaded spec %r with %d step(s) from %s", spec.name, len(spec.steps), path)
    return spec


def load_spec_text(text: str, fmt: str = "json", source: str = "text") -> WorkflowSpec:
    """Decode JSON or YAML text into a WorkflowSpec."""
    if fmt == "yaml":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SpecLoadError(f"Invalid YAML: {e}", source=source) from e
    elif fmt == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SpecLoadError(f"Invalid JSON: {e}", source=source) from e
    else:
        raise SpecLoadError(f"Unsupported spec format '{fmt}'", source=source)
    return load_spec_from_data(data, source=source)


def load_spec_from_data(data: Any, source: str = "dict") -> WorkflowSpec:
    """
    Build a WorkflowSpec from already-decoded data.

    Raises:
        SpecLoadError: If the data does not describe a workflow
    """
    if isinstance(data, list):
        data = {"steps": data}
    if not isinstance(data, Mapping):
        raise SpecLoadError(
            f"Spec must be an array of steps or an object, got {type(data).__name__}",
            source=source,
        )

    unknown = sorted(set(data) - {"name", "description", "plugins", "steps"})
    if unknown:
        raise SpecLoadError(f"Unknown top-level field(s): {unknown}", source=source)

    raw_steps = data.get("steps")
    if raw_steps is None:
        raw_steps = []
    if not isinstance(raw_steps, list):
        raise SpecLoadError("'steps' must be an array", source=source)

    steps = [_parse_step(step_data, index=i, source=source) for i, step_data in enumerate(raw_steps)]

    payload: Dict[str, Any] = {"steps": steps}
    for key in ("name", "description", "plugins"):
        if data.get(key) is not None:
            payload[key] = data[key]
    try:
        return WorkflowSpec.model_validate(payload)
    except ValidationError as e:
        raise SpecLoadError(f"Invalid workflow: {_summarize(e)}", source=source) from e


# =============================================================================
# STEP AND VALUE DECODING
# =============================================================================

def _parse_step(data: Any, index: int, source: str) -> StepSpec:
    if not isinstance(data, Mapping):
        raise SpecLoadError(f"Step {index} must be an object, got {type(data).__name__}", source=source)

    label = data.get("id", f"#{index}")
    payload = dict(data)

    inputs = payload.get("inputs") or {}
    if not isinstance(inputs, Mapping):
        raise SpecLoadError(f"Step '{label}': 'inputs' must be an object", source=source)
    try:
        payload["inputs"] = {str(k): decode_source(v) for k, v in inputs.items()}
    except ValueError as e:
        raise SpecLoadError(f"Step '{label}': {e}", source=source) from e

    retry = payload.get("retry")
    if isinstance(retry, int) and not isinstance(retry, bool):
        payload["retry"] = {"maxRetries": retry}

    if payload.get("outputs") is None:
        payload.pop("outputs", None)

    try:
        return StepSpec.model_validate(payload)
    except ValidationError as e:
        raise SpecLoadError(f"Invalid step '{label}': {_summarize(e)}", source=source) from e


def decode_source(value: Any) -> ValueSource:
    """
    Decode one JSON value into a ValueSource.

    Raises:
        ValueError: If a reserved encoding is malformed
    """
    if isinstance(value, Mapping):
        keys = frozenset(value)
        if keys == _LITERAL_KEYS:
            return LiteralValue(value=value["literal"])
        if "from" in keys and keys <= _PLACEHOLDER_KEYS:
            return _decode_placeholder(value)
        if "transform" in keys and keys <= _TRANSFORM_KEYS:
            return _decode_transform(value)
        if "plugin" in keys and keys <= _PLUGIN_KEYS:
            return _decode_plugin(value)

        entries = {str(k): decode_source(v) for k, v in value.items()}
        if all(isinstance(v, LiteralValue) for v in entries.values()):
            return LiteralValue(value={k: v.value for k, v in entries.items()})
        return ObjectValue(entries=entries)

    if isinstance(value, list):
        items = tuple(decode_source(v) for v in value)
        if all(isinstance(v, LiteralValue) for v in items):
            return LiteralValue(value=[v.value for v in items])
        return ListValue(items=items)

    return LiteralValue(value=value)


def _decode_placeholder(value: Mapping[str, Any]) -> Placeholder:
    step, path = value.get("from"), value.get("path")
    if not isinstance(step, str) or not step:
        raise ValueError(f"placeholder 'from' must be a step id, got {step!r}")
    if not isinstance(path, str) or not path:
        raise ValueError(f"placeholder from '{step}' needs a 'path' naming an output")
    return Placeholder(step=step, path=path)


def _decode_transform(value: Mapping[str, Any]) -> Transform:
    name, args = value.get("transform"), value.get("args", [])
    if not isinstance(name, str) or not name:
        raise ValueError(f"transform name must be a string, got {name!r}")
    if not isinstance(args, list):
        raise ValueError(f"transform '{name}' args must be an array")
    return Transform(name=name, args=tuple(decode_source(a) for a in args))


def _decode_plugin(value: Mapping[str, Any]) -> PluginConfig:
    code, arguments = value.get("plugin"), value.get("arguments", {})
    if not isinstance(code, str) or not code:
        raise ValueError(f"plugin code must be a string, got {code!r}")
    if not isinstance(arguments, Mapping):
        raise ValueError(f"plugin '{code}' arguments must be an object")
    return PluginConfig(code=code, arguments={str(k): decode_source(v) for k, v in arguments.items()})


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {item.get('msg')}")
    return "; ".join(parts)


# =============================================================================
# SERIALIZATION
# =============================================================================

def encode_source(source: ValueSource) -> Any:
    """Inverse of decode_source()."""
    if isinstance(source, LiteralValue):
        if isinstance(source.value, (Mapping, list)) and _needs_escape(source.value):
            return {"literal": source.value}
        return source.value
    if isinstance(source, Placeholder):
        return {"from": source.step, "path": source.path}
    if isinstance(source, Transform):
        return {"transform": source.name, "args": [encode_source(a) for a in source.args]}
    if isinstance(source, PluginConfig):
        return {"plugin": source.code, "arguments": {k: encode_source(v) for k, v in source.arguments.items()}}
    if isinstance(source, ObjectValue):
        return {k: encode_source(v) for k, v in source.entries.items()}
    if isinstance(source, ListValue):
        return [encode_source(v) for v in source.items]
    raise TypeError(f"Not a value source: {type(source).__name__}")


def _needs_escape(value: Any) -> bool:
    try:
        return decode_source(value) != LiteralValue(value=value)
    except ValueError:
        return True


def _encode_retry(retry: Optional[RetryPolicy]) -> Optional[Dict[str, Any]]:
    if retry is None:
        return None
    return retry.model_dump(by_alias=True)


def spec_to_data(spec: WorkflowSpec) -> Dict[str, Any]:
    steps: List[Dict[str, Any]] = []
    for step in spec.steps:
        item: Dict[str, Any] = {
            "id": step.id,
            "operation": step.operation,
            "kind": step.kind.value,
            "inputs": {k: encode_source(v) for k, v in step.inputs.items()},
            "outputs": dict(step.outputs),
        }
        if step.depends_on:
            item["dependsOn"] = list(step.depends_on)
        if step.timeout_seconds is not None:
            item["timeout"] = step.timeout_seconds
        if step.retry is not None:
            item["retry"] = _encode_retry(step.retry)
        if step.description:
            item["description"] = step.description
        steps.append(item)

    data: Dict[str, Any] = {"name": spec.name}
    if spec.description:
        data["description"] = spec.description
    if spec.plugins:
        data["plugins"] = {
            code: definition.model_dump(exclude_none=True)
            for code, definition in spec.plugins.items()
        }
    data["steps"] = steps
    return data


def dump_spec(spec: WorkflowSpec, fmt: str = "json") -> str:
    """Serialize a spec back to JSON or YAML text that load_spec_text() accepts."""
    data = spec_to_data(spec)
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


__all__ = [
    "load_spec_file",
    "load_spec_text",
    "load_spec_from_data",
    "decode_source",
    "encode_source",
    "spec_to_data",
    "dump_spec",
]
