"""
Lookup transforms - resolve a human identifier to a backend identifier.

The collection is usually the recorded output of an earlier query step:

    lookup(countries, "name", "Australia", "id")
    lookup(countries, ["code", "name"], "nz", "id")      # priority order
    lookup_each(countries, "code", ["AU", "NZ"], "id")
"""

from __future__ import annotations

from typing import Any, List, Mapping, Sequence, Union

from ..errors import LookupReason, RecordLookupError, TransformationError, TransformationReason
from ..workflows.paths import PathError, extract


MatchField = Union[str, Sequence[str]]

_ABSENT = object()


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().casefold()
    return value


def _records(collection: Any) -> List[Any]:
    if isinstance(collection, Mapping):
        # A connection-style response: {"items": [...]}
        for key in ("items", "nodes", "edges"):
            if isinstance(collection.get(key), list):
                return collection[key]
    if isinstance(collection, (str, bytes)) or not isinstance(collection, Sequence):
        raise TransformationError(
            TransformationReason.INVALID_ARGUMENT,
            f"lookup expects a list of records, got {type(collection).__name__}",
            transform="lookup",
        )
    return list(collection)


def _fields(match_field: MatchField) -> List[str]:
    fields = [match_field] if isinstance(match_field, str) else list(match_field or [])
    if not fields or not all(isinstance(f, str) and f for f in fields):
        raise TransformationError(
            TransformationReason.INVALID_ARGUMENT,
            f"matchField must be a field name or a non-empty list of names, got {match_field!r}",
            transform="lookup",
        )
    return fields


def _field_value(record: Any, field: str) -> Any:
    # A record without the field never matches, not even a None match value
    try:
        return extract(record, field)
    except PathError:
        return _ABSENT


def _matches(value: Any, wanted: Any) -> bool:
    if value is _ABSENT:
        return False
    # bool is an int subclass; True must not match 1
    if isinstance(value, bool) or isinstance(wanted, bool):
        return type(value) is type(wanted) and value == wanted
    return _normalize(value) == wanted


def lookup(collection: Any, match_field: MatchField, match_value: Any, extract_field: str) -> Any:
    """
    Return ``extract_field`` of the single record whose ``match_field``
    equals ``match_value`` (case-insensitive for strings). Records lacking
    the field never match, and booleans only match booleans.

    When ``match_field`` is a list, fields are tried in order and the first
    field with any match decides; ambiguity is only declared within it.

    Raises:
        RecordLookupError: NOT_FOUND or AMBIGUOUS
        TransformationError: If the arguments are malformed
    """
    records = _records(collection)
    fields = _fields(match_field)
    wanted = _normalize(match_value)

    for field in fields:
        matches = [r for r in records if _matches(_field_value(r, field), wanted)]
        if not matches:
            continue
        if len(matches) > 1:
            raise RecordLookupError(
                LookupReason.AMBIGUOUS,
                f"{len(matches)} records match {field}={match_value!r}",
                match_field=field,
                match_value=match_value,
                candidates=len(matches),
            )
        try:
            return extract(matches[0], extract_field)
        except PathError as e:
            raise TransformationError(
                TransformationReason.INVALID_ARGUMENT,
                f"matched record has no field '{extract_field}': {e}",
                transform="lookup",
            ) from e

    raise RecordLookupError(
        LookupReason.NOT_FOUND,
        f"no record matches {' or '.join(fields)}={match_value!r}",
        match_field=fields[0] if len(fields) == 1 else list(fields),
        match_value=match_value,
        candidates=len(records),
    )


def lookup_each(collection: Any, match_field: MatchField, match_values: Any, extract_field: str) -> List[Any]:
    """Apply lookup() to every value in ``match_values``, keeping order."""
    if isinstance(match_values, (str, bytes)) or not isinstance(match_values, Sequence):
        raise TransformationError(
            TransformationReason.INVALID_ARGUMENT,
            f"lookup_each expects a list of values, got {type(match_values).__name__}",
            transform="lookup_each",
        )
    return [lookup(collection, match_field, value, extract_field) for value in match_values]


__all__ = ["lookup", "lookup_each"]
