"""
Built-in transforms.

All of them are total and deterministic: every input yields either a value
or a TransformationError / RecordLookupError, never another exception.
"""

from __future__ import annotations

import re
import unicodedata
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..errors import TransformationError, TransformationReason
from .lookup import lookup, lookup_each
from .registry import TransformRegistry


DEFAULT_MINOR_UNIT_SCALE = 100

_GROUPED_NUMBER = re.compile(r"^\d{1,3}(,\d{3})+(\.\d+)?$")
_PLAIN_NUMBER = re.compile(r"^\+?(\d+(\.\d*)?|\.\d+)$")
_WHITESPACE = re.compile(r"\s+")
_NOT_SLUG = re.compile(r"[^a-z0-9-]")
_HYPHENS = re.compile(r"-{2,}")
# Up to three letters before the symbol: A$, NZ$, US$
_SYMBOL_PREFIX = re.compile(r"^[A-Za-z]{0,3}(\S)")


def currency_to_minor_units(raw: Any, scale: Any = DEFAULT_MINOR_UNIT_SCALE) -> str:
    """
    Convert a human amount to integer minor units, encoded as a string.

        currency_to_minor_units("$15")    -> "1500"
        currency_to_minor_units("19.99")  -> "1999"
        currency_to_minor_units("€1,250") -> "125000"
        currency_to_minor_units("NZ$8")   -> "800"

    A leading currency symbol, optionally preceded by a country prefix of
    up to three letters, is stripped. The rest must be a non-negative
    decimal. Rounding is half-up to the nearest integer.
    """
    scale_value = _parse_scale(scale)
    amount = _parse_amount(raw)
    minor = (amount * scale_value).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return str(int(minor))


def _parse_scale(scale: Any) -> Decimal:
    if isinstance(scale, bool):
        scale = None
    try:
        value = Decimal(str(scale).strip())
    except (InvalidOperation, ValueError):
        value = None
    if value is None or not value.is_finite() or value <= 0:
        raise TransformationError(
            TransformationReason.INVALID_ARGUMENT,
            f"scale must be a positive number, got {scale!r}",
            transform="currency_to_minor_units",
        )
    return value


def _parse_amount(raw: Any) -> Decimal:
    def invalid(why: str) -> TransformationError:
        return TransformationError(
            TransformationReason.INVALID_CURRENCY,
            f"{raw!r} is not a valid amount: {why}",
            transform="currency_to_minor_units",
        )

    if raw is None or isinstance(raw, bool):
        raise invalid("expected a number or numeric string")
    if isinstance(raw, (int, float, Decimal)):
        amount = Decimal(repr(raw)) if isinstance(raw, float) else Decimal(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        symbol = _SYMBOL_PREFIX.match(text)
        if symbol and unicodedata.category(symbol.group(1)) == "Sc":
            text = text[symbol.end():].strip()
        if text.startswith("-"):
            raise invalid("negative amounts are not allowed")
        if _GROUPED_NUMBER.match(text):
            text = text.replace(",", "")
        if not _PLAIN_NUMBER.match(text):
            raise invalid("not numeric")
        amount = Decimal(text)
    else:
        raise invalid(f"unsupported type {type(raw).__name__}")

    if not amount.is_finite():
        raise invalid("not finite")
    if amount < 0:
        raise invalid("negative amounts are not allowed")
    return amount


def slugify(raw: Any) -> str:
    """
    Lower-case, hyphenate whitespace, keep only ``[a-z0-9-]``.

        slugify("Oceania Flat Rate") -> "oceania-flat-rate"
        slugify("a--b  c")           -> "a-b-c"

    Idempotent: slugify(slugify(x)) == slugify(x).
    """
    if raw is None or isinstance(raw, (dict, list, tuple, set)):
        raise TransformationError(
            TransformationReason.INVALID_ARGUMENT,
            f"slugify expects a scalar, got {type(raw).__name__}",
            transform="slugify",
        )
    text = str(raw).lower()
    text = _WHITESPACE.sub("-", text)
    text = _NOT_SLUG.sub("", text)
    text = _HYPHENS.sub("-", text)
    return text.strip("-")


BUILTIN_TRANSFORMS = {
    "currency_to_minor_units": currency_to_minor_units,
    "slugify": slugify,
    "lookup": lookup,
    "lookup_each": lookup_each,
}


def register_builtins(registry: TransformRegistry) -> None:
    for name, fn in BUILTIN_TRANSFORMS.items():
        registry.register(name, fn, replace=True)


__all__ = [
    "currency_to_minor_units",
    "slugify",
    "lookup",
    "lookup_each",
    "BUILTIN_TRANSFORMS",
    "register_builtins",
    "DEFAULT_MINOR_UNIT_SCALE",
]
