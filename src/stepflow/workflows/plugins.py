"""
Plugin Catalog - configurable operations keyed by code.

Backends often take "configurable operation" objects: a code string plus
named arguments (a shipping calculator, an eligibility checker, a promotion
action). Each code registered here carries its own pydantic argument schema.
Unknown codes are rejected at validation time; argument values are validated
when the step resolves its inputs.

Catalog entries can be registered from Python (a pydantic model) or declared
as data in the spec file:

    "plugins": {
        "default-shipping-calculator": {
            "arguments": {
                "rate": {"type": "integer", "required": true},
                "taxRate": {"type": "number", "default": 0}
            }
        }
    }
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from ..errors import TransformationError, TransformationReason


ArgumentType = Literal["string", "integer", "number", "boolean", "object", "array", "any"]

_PY_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": Dict[str, Any],
    "array": List[Any],
    "any": Any,
}


class ArgumentDefinition(BaseModel):
    """Declared argument of a plugin code."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ArgumentType = "string"
    required: bool = False
    default: Any = None
    enum: Optional[List[Any]] = None
    description: Optional[str] = None


class PluginDefinition(BaseModel):
    """Declared plugin code as it appears in a spec file."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    arguments: Dict[str, ArgumentDefinition] = Field(default_factory=dict)
    description: Optional[str] = None


class PluginCatalog:
    """
    Registry of plugin codes and their argument schemas.

    Usage:
        catalog = PluginCatalog()
        catalog.register("default-shipping-calculator", CalculatorArgs)
        value = catalog.build("default-shipping-calculator", {"rate": "1500"})
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, Type[BaseModel]] = {}

    def register(self, code: str, schema: Type[BaseModel]) -> None:
        """Register (or replace) the argument schema for ``code``."""
        if not code:
            raise ValueError("Plugin code must be a non-empty string")
        self._schemas[code] = schema

    def register_definition(self, code: str, definition: PluginDefinition | Mapping[str, Any]) -> None:
        if not isinstance(definition, PluginDefinition):
            definition = PluginDefinition.model_validate(definition)
        self.register(code, _schema_from_definition(code, definition))

    @classmethod
    def from_definitions(cls, definitions: Mapping[str, Any]) -> "PluginCatalog":
        catalog = cls()
        for code, definition in definitions.items():
            catalog.register_definition(code, definition)
        return catalog

    def merged(self, other: "PluginCatalog") -> "PluginCatalog":
        """New catalog with ``other``'s codes layered over this one."""
        catalog = PluginCatalog()
        catalog._schemas = {**self._schemas, **other._schemas}
        return catalog

    def __contains__(self, code: object) -> bool:
        return code in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    @property
    def codes(self) -> List[str]:
        return sorted(self._schemas)

    def schema(self, code: str) -> Type[BaseModel]:
        return self._schemas[code]

    def argument_names(self, code: str) -> Tuple[List[str], List[str]]:
        """Return (all argument names, required argument names) for ``code``."""
        schema = self._schemas[code]
        names, required = [], []
        for name, info in schema.model_fields.items():
            key = info.alias or name
            names.append(key)
            if info.is_required():
                required.append(key)
        return names, required

    def check_arguments(self, code: str, provided: List[str]) -> List[str]:
        """Static check of argument names. Returns problem messages."""
        names, required = self.argument_names(code)
        problems = []
        unknown = [n for n in provided if n not in names]
        if unknown:
            problems.append(f"unknown argument(s) {unknown} for plugin '{code}' (known: {names})")
        missing = [n for n in required if n not in provided]
        if missing:
            problems.append(f"missing required argument(s) {missing} for plugin '{code}'")
        return problems

    def build(self, code: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate resolved arguments and produce the wire value.

        Returns:
            {"code": code, "arguments": [{"name": ..., "value": ...}, ...]}

        Raises:
            TransformationError: If the code is unknown or the arguments are invalid
        """
        schema = self._schemas.get(code)
        if schema is None:
            raise TransformationError(
                TransformationReason.INVALID_PLUGIN_ARGUMENTS,
                f"Unknown plugin code '{code}'",
                transform=f"plugin:{code}",
            )
        try:
            model = schema.model_validate(dict(arguments))
        except ValidationError as e:
            raise TransformationError(
                TransformationReason.INVALID_PLUGIN_ARGUMENTS,
                f"Invalid arguments for plugin '{code}': {_summarize(e)}",
                transform=f"plugin:{code}",
            ) from e

        dumped = model.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {
            "code": code,
            "arguments": [{"name": name, "value": _encode(value)} for name, value in dumped.items()],
        }


def _encode(value: Any) -> str:
    # Configurable-operation arguments travel as strings
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {item.get('msg')}")
    return "; ".join(parts)


def _schema_from_definition(code: str, definition: PluginDefinition) -> Type[BaseModel]:
    # Declared names may not be valid identifiers; they live on as aliases
    fields: Dict[str, Any] = {}
    for index, (name, arg) in enumerate(definition.arguments.items()):
        py_type: Any = _PY_TYPES[arg.type]
        if arg.enum:
            py_type = Literal[tuple(arg.enum)]
        if arg.required:
            field = Field(..., alias=name, description=arg.description)
        else:
            py_type = Optional[py_type]
            field = Field(arg.default, alias=name, description=arg.description)
        fields[f"arg_{index}"] = (py_type, field)

    model_name = "".join(part.capitalize() for part in re.split(r"[^0-9a-zA-Z]+", code) if part)
    return create_model(
        f"{model_name or 'Plugin'}Arguments",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


__all__ = [
    "ArgumentDefinition",
    "PluginDefinition",
    "PluginCatalog",
]
