"""
Extraction paths into structured values.

Syntax: dotted keys with optional integer indices.

    createZone.id
    countries.items[0].code
    items[-1]
    $            (the whole value; the empty string means the same)
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Mapping, Sequence, Tuple, Union

Segment = Union[str, int]

ROOT = "$"

_INDEX_RE = re.compile(r"\[(-?\d+)\]")
_KEY_RE = re.compile(r"^([^.\[\]]+)((?:\[-?\d+\])*)$")
_MISSING = object()


class PathError(ValueError):
    """A path is malformed or does not exist in a value."""

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


@lru_cache(maxsize=1024)
def parse_path(path: str) -> Tuple[Segment, ...]:
    """
    Parse a path into key / index segments.

    Raises:
        PathError: If the path is malformed
    """
    if path is None:
        raise PathError("Path must be a string", path="None")
    path = path.strip()
    if path in ("", ROOT):
        return ()
    if path.startswith(ROOT + "."):
        path = path[len(ROOT) + 1:]

    segments: list[Segment] = []
    for part in path.split("."):
        match = _KEY_RE.match(part)
        if not match:
            raise PathError(f"Malformed path segment {part!r} in {path!r}", path=path)
        segments.append(match.group(1))
        segments.extend(int(i) for i in _INDEX_RE.findall(match.group(2)))
    return tuple(segments)


def head(path: str) -> str | None:
    """First key of a path (the output name for placeholder paths)."""
    segments = parse_path(path)
    if not segments or not isinstance(segments[0], str):
        return None
    return segments[0]


def format_path(segments: Sequence[Segment]) -> str:
    out = ""
    for seg in segments:
        if isinstance(seg, int):
            out += f"[{seg}]"
        else:
            out += f".{seg}" if out else seg
    return out or ROOT


def extract(value: Any, path: str) -> Any:
    """
    Walk ``path`` into ``value``.

    Raises:
        PathError: If any segment does not exist
    """
    current = value
    walked: list[Segment] = []
    for seg in parse_path(path):
        found = _step(current, seg)
        if found is _MISSING:
            where = format_path(walked) if walked else ROOT
            raise PathError(f"{format_path([seg])!r} not found at {where!r}", path=path)
        current = found
        walked.append(seg)
    return current


def exists(value: Any, path: str) -> bool:
    try:
        extract(value, path)
    except PathError:
        return False
    return True


def _step(current: Any, seg: Segment) -> Any:
    if isinstance(seg, int):
        if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                return current[seg]
            except IndexError:
                return _MISSING
        return _MISSING
    if isinstance(current, Mapping):
        return current.get(seg, _MISSING)
    return _MISSING


__all__ = ["PathError", "parse_path", "head", "format_path", "extract", "exists", "ROOT"]
