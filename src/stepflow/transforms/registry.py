"""
Transformation Registry - named, pure value converters.

A transform is a plain function over positional, already-resolved
arguments. Registries are ordinary objects: each executor owns one, so
custom transforms never leak between runs or tests.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..errors import StepError, TransformationError, TransformationReason


logger = logging.getLogger(__name__)

TransformFn = Callable[..., Any]


class TransformRegistry:
    """
    Mapping from transform name to function.

    Usage:
        registry = TransformRegistry()

        @registry.register("upper")
        def upper(value):
            return str(value).upper()

        registry.apply("upper", ["abc"])  # "ABC"
    """

    def __init__(self, transforms: Optional[Mapping[str, TransformFn]] = None):
        self._transforms: Dict[str, TransformFn] = dict(transforms or {})

    def register(self, name: str, fn: Optional[TransformFn] = None, *, replace: bool = False):
        """
        Register ``fn`` under ``name``. Usable as a decorator when ``fn`` is omitted.

        Raises:
            ValueError: If ``name`` is taken and ``replace`` is False
        """
        def _register(func: TransformFn) -> TransformFn:
            if not name:
                raise ValueError("Transform name must be a non-empty string")
            if name in self._transforms and not replace:
                raise ValueError(f"Transform '{name}' is already registered")
            self._transforms[name] = func
            return func

        if fn is not None:
            return _register(fn)
        return _register

    def unregister(self, name: str) -> None:
        self._transforms.pop(name, None)

    def get(self, name: str) -> TransformFn:
        return self._transforms[name]

    def __contains__(self, name: object) -> bool:
        return name in self._transforms

    def __len__(self) -> int:
        return len(self._transforms)

    @property
    def names(self) -> List[str]:
        return sorted(self._transforms)

    def copy(self) -> "TransformRegistry":
        return TransformRegistry(self._transforms)

    def check_arity(self, name: str, argc: int) -> Optional[str]:
        """
        Check that ``argc`` positional arguments fit the transform's signature.

        Returns:
            None if they fit, otherwise a message
        """
        fn = self._transforms[name]
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            # Builtins without introspectable signatures are accepted as-is
            return None
        try:
            signature.bind(*([None] * argc))
        except TypeError as e:
            return f"transform '{name}' called with {argc} argument(s): {e}"
        return None

    def apply(self, name: str, args: Sequence[Any]) -> Any:
        """
        Apply a transform to resolved arguments.

        Raises:
            TransformationError: For unknown transforms, malformed input, or
                any unexpected exception raised by a custom transform
            RecordLookupError: From the lookup transforms
        """
        fn = self._transforms.get(name)
        if fn is None:
            raise TransformationError(
                TransformationReason.INVALID_ARGUMENT,
                f"Unknown transform '{name}'",
                transform=name,
            )
        try:
            return fn(*args)
        except StepError as e:
            raise e.add_context(transform=name)
        except Exception as e:
            logger.debug("Transform %s raised %s", name, type(e).__name__)
            raise TransformationError(
                TransformationReason.INVALID_ARGUMENT,
                f"Transform '{name}' failed: {type(e).__name__}: {e}",
                transform=name,
            ) from e


def default_registry() -> TransformRegistry:
    """A fresh registry holding the built-in transforms."""
    from .builtins import register_builtins

    registry = TransformRegistry()
    register_builtins(registry)
    return registry


__all__ = ["TransformRegistry", "TransformFn", "default_registry"]
