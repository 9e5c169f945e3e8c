"""
Field Matcher - offline helper for drafting specs from casual labels.

Maps human labels ("Shipping price", "zone name") to the closest backend
field names ("rate", "zoneName") by string similarity. It is an authoring
aid only: the engine never imports it, and its suggestions are meant to be
reviewed before they land in a spec.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_WORD = re.compile(r"[^a-z0-9]+")

DEFAULT_CUTOFF = 0.55


@dataclass(frozen=True)
class FieldMatch:
    field: str
    score: float


def normalize(text: str) -> str:
    """``"zoneName"`` / ``"Zone  name"`` / ``"zone_name"`` -> ``"zone name"``."""
    text = _CAMEL_BOUNDARY.sub(" ", text)
    return _NON_WORD.sub(" ", text.lower()).strip()


def similarity(label: str, field: str) -> float:
    """Blend of character similarity and word overlap, in [0, 1]."""
    a, b = normalize(label), normalize(field)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    chars = SequenceMatcher(None, a, b).ratio()
    words_a, words_b = set(a.split()), set(b.split())
    overlap = len(words_a & words_b) / len(words_a | words_b)
    return round(max(chars, overlap), 4)


def suggest_fields(
    label: str,
    fields: Iterable[str],
    limit: int = 3,
    cutoff: float = DEFAULT_CUTOFF,
) -> List[FieldMatch]:
    """Best candidate fields for ``label``, highest score first (ties by name)."""
    scored = [FieldMatch(f, similarity(label, f)) for f in dict.fromkeys(fields)]
    scored = [m for m in scored if m.score >= cutoff]
    scored.sort(key=lambda m: (-m.score, m.field))
    return scored[:limit]


def best_field(label: str, fields: Iterable[str], cutoff: float = DEFAULT_CUTOFF) -> Optional[str]:
    matches = suggest_fields(label, fields, limit=1, cutoff=cutoff)
    return matches[0].field if matches else None


def match_labels(
    labels: Sequence[str],
    fields: Sequence[str],
    cutoff: float = DEFAULT_CUTOFF,
) -> Dict[str, Optional[str]]:
    """
    Assign each label to a distinct field, greedily by score.

    Labels with no field above ``cutoff`` (or whose candidates were all
    taken by better-scoring labels) map to None.
    """
    candidates = sorted(
        ((similarity(label, f), label, f) for label in labels for f in dict.fromkeys(fields)),
        key=lambda t: (-t[0], t[1], t[2]),
    )
    assigned: Dict[str, Optional[str]] = {label: None for label in labels}
    used = set()
    for score, label, field in candidates:
        if score < cutoff or assigned[label] is not None or field in used:
            continue
        assigned[label] = field
        used.add(field)
    return assigned


def draft_step(
    step_id: str,
    operation: str,
    kind: str,
    values: Mapping[str, Any],
    fields: Sequence[str],
    cutoff: float = DEFAULT_CUTOFF,
) -> Dict[str, Any]:
    """
    Draft a step object (loader format) from label -> value pairs.

    Unmatched labels are reported under ``unmatched`` and left out of
    ``inputs``; remove that key once the draft has been reviewed.
    """
    mapping = match_labels(list(values), fields, cutoff=cutoff)
    inputs = {field: values[label] for label, field in mapping.items() if field is not None}
    step: Dict[str, Any] = {
        "id": step_id,
        "operation": operation,
        "kind": kind,
        "inputs": inputs,
        "outputs": {},
    }
    unmatched = [label for label, field in mapping.items() if field is None]
    if unmatched:
        step["unmatched"] = unmatched
    return step


__all__ = [
    "FieldMatch",
    "normalize",
    "similarity",
    "suggest_fields",
    "best_field",
    "match_labels",
    "draft_step",
]
