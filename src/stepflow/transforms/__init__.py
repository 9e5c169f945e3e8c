"""
Transforms - named pure converters applied while binding step inputs.

Built-ins: currency_to_minor_units, slugify, lookup, lookup_each.
"""

from .registry import TransformRegistry, default_registry
from .builtins import (
    BUILTIN_TRANSFORMS,
    currency_to_minor_units,
    lookup,
    lookup_each,
    register_builtins,
    slugify,
)

__all__ = [
    "TransformRegistry",
    "default_registry",
    "BUILTIN_TRANSFORMS",
    "register_builtins",
    "currency_to_minor_units",
    "slugify",
    "lookup",
    "lookup_each",
]
