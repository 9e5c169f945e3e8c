"""Offline authoring helpers. Not used by the runtime."""

from .field_matcher import (
    FieldMatch,
    best_field,
    draft_step,
    match_labels,
    normalize,
    similarity,
    suggest_fields,
)

__all__ = [
    "FieldMatch",
    "best_field",
    "draft_step",
    "match_labels",
    "normalize",
    "similarity",
    "suggest_fields",
]
