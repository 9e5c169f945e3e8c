"""
Value Sources - where a step input value comes from.

Tagged variant (discriminator: ``kind``):
- LiteralValue: passes through unchanged
- Placeholder: another step's recorded output (step id + path)
- Transform: named transformation over resolved argument sources
- ObjectValue / ListValue: composites with embedded sources
- PluginConfig: a configurable backend operation (code + named arguments)
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Iterator, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


_FROZEN = ConfigDict(frozen=True, extra="forbid")


class LiteralValue(BaseModel):
    """A constant value."""
    model_config = _FROZEN

    kind: Literal["literal"] = "literal"
    value: Any = None


class Placeholder(BaseModel):
    """
    Reference to a value recorded by another step.

    The first segment of ``path`` names one of the referenced step's
    declared outputs; further segments navigate inside that output.
    """
    model_config = _FROZEN

    kind: Literal["placeholder"] = "placeholder"
    step: str = Field(..., min_length=1, description="Referenced step id")
    path: str = Field(..., min_length=1, description="Output name, optionally followed by a path")


class Transform(BaseModel):
    """Named transformation applied to resolved arguments."""
    model_config = _FROZEN

    kind: Literal["transform"] = "transform"
    name: str = Field(..., min_length=1)
    args: Tuple["ValueSource", ...] = ()


class ObjectValue(BaseModel):
    """A mapping whose values are sources."""
    model_config = _FROZEN

    kind: Literal["object"] = "object"
    entries: Dict[str, "ValueSource"] = Field(default_factory=dict)


class ListValue(BaseModel):
    """A list whose items are sources."""
    model_config = _FROZEN

    kind: Literal["list"] = "list"
    items: Tuple["ValueSource", ...] = ()


class PluginConfig(BaseModel):
    """A configurable operation keyed by ``code``, validated by the plugin catalog."""
    model_config = _FROZEN

    kind: Literal["plugin"] = "plugin"
    code: str = Field(..., min_length=1)
    arguments: Dict[str, "ValueSource"] = Field(default_factory=dict)


ValueSource = Annotated[
    Union[LiteralValue, Placeholder, Transform, ObjectValue, ListValue, PluginConfig],
    Field(discriminator="kind"),
]

SOURCE_TYPES = (LiteralValue, Placeholder, Transform, ObjectValue, ListValue, PluginConfig)

for _model in (Transform, ObjectValue, ListValue, PluginConfig):
    _model.model_rebuild()


# =============================================================================
# CONSTRUCTION HELPERS
# =============================================================================

def is_source(value: Any) -> bool:
    return isinstance(value, SOURCE_TYPES)


def as_source(value: Any) -> ValueSource:
    """
    Wrap a Python value as a source.

    Sources pass through; dicts and lists containing sources become
    ObjectValue / ListValue; everything else is a literal.
    """
    if is_source(value):
        return value
    if isinstance(value, dict) and _contains_source(value):
        return ObjectValue(entries={str(k): as_source(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)) and _contains_source(value):
        return ListValue(items=tuple(as_source(v) for v in value))
    return LiteralValue(value=value)


def literal(value: Any) -> LiteralValue:
    return LiteralValue(value=value)


def ref(step: str, path: str) -> Placeholder:
    return Placeholder(step=step, path=path)


def transform(name: str, *args: Any) -> Transform:
    return Transform(name=name, args=tuple(as_source(a) for a in args))


def plugin(code: str, **arguments: Any) -> PluginConfig:
    return PluginConfig(code=code, arguments={k: as_source(v) for k, v in arguments.items()})


def _contains_source(value: Any) -> bool:
    if is_source(value):
        return True
    if isinstance(value, dict):
        return any(_contains_source(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_contains_source(v) for v in value)
    return False


# =============================================================================
# TRAVERSAL
# =============================================================================

def iter_sources(source: ValueSource) -> Iterator[ValueSource]:
    """Yield ``source`` and every source nested inside it, depth first."""
    yield source
    if isinstance(source, Transform):
        for arg in source.args:
            yield from iter_sources(arg)
    elif isinstance(source, ObjectValue):
        for child in source.entries.values():
            yield from iter_sources(child)
    elif isinstance(source, ListValue):
        for item in source.items:
            yield from iter_sources(item)
    elif isinstance(source, PluginConfig):
        for child in source.arguments.values():
            yield from iter_sources(child)


def placeholders(source: ValueSource) -> List[Placeholder]:
    return [s for s in iter_sources(source) if isinstance(s, Placeholder)]


__all__ = [
    "LiteralValue",
    "Placeholder",
    "Transform",
    "ObjectValue",
    "ListValue",
    "PluginConfig",
    "ValueSource",
    "SOURCE_TYPES",
    "is_source",
    "as_source",
    "literal",
    "ref",
    "transform",
    "plugin",
    "iter_sources",
    "placeholders",
]
