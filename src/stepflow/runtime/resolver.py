"""
Input Resolver - binds a step's value sources to concrete values.

Literal passes through, Placeholder reads the referenced step's snapshot
from the Result Store, Transform resolves its arguments and applies the
named function, Object/List resolve element-wise, Plugin resolves its
arguments and is validated by the plugin catalog.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from ..errors import ResolutionError, ResolutionReason, StepError
from ..transforms.registry import TransformRegistry
from ..workflows.models import StepSpec
from ..workflows.paths import PathError, extract
from ..workflows.plugins import PluginCatalog
from ..workflows.values import (
    ListValue,
    LiteralValue,
    ObjectValue,
    Placeholder,
    PluginConfig,
    Transform,
    ValueSource,
)
from .store import ResultStore, thaw


logger = logging.getLogger(__name__)


class InputResolver:
    """Resolves value sources against one run's Result Store."""

    def __init__(
        self,
        store: ResultStore,
        transforms: TransformRegistry,
        plugins: Optional[PluginCatalog] = None,
        wait_timeout: Optional[float] = None,
    ):
        self.store = store
        self.transforms = transforms
        self.plugins = plugins or PluginCatalog()
        self.wait_timeout = wait_timeout

    def resolve_inputs(self, step: StepSpec) -> Dict[str, Any]:
        """
        Resolve every input of ``step``.

        Raises:
            StepError: The first failure, with the input field attached as context
        """
        resolved: Dict[str, Any] = {}
        for field_name, source in step.inputs.items():
            try:
                resolved[field_name] = self.resolve(source)
            except StepError as e:
                raise e.add_context(input=field_name)
        return resolved

    def resolve(self, source: ValueSource) -> Any:
        if isinstance(source, LiteralValue):
            return copy.deepcopy(source.value)
        if isinstance(source, Placeholder):
            return self._resolve_placeholder(source)
        if isinstance(source, Transform):
            args = [self.resolve(arg) for arg in source.args]
            return self.transforms.apply(source.name, args)
        if isinstance(source, ObjectValue):
            return {key: self.resolve(value) for key, value in source.entries.items()}
        if isinstance(source, ListValue):
            return [self.resolve(item) for item in source.items]
        if isinstance(source, PluginConfig):
            arguments = {name: self.resolve(value) for name, value in source.arguments.items()}
            return self.plugins.build(source.code, arguments)
        raise TypeError(f"Unsupported value source: {type(source).__name__}")

    def _resolve_placeholder(self, ph: Placeholder) -> Any:
        outputs = self.store.wait_for(ph.step, timeout=self.wait_timeout)
        try:
            value = extract(outputs, ph.path)
        except PathError as e:
            raise ResolutionError(
                ResolutionReason.MISSING_OUTPUT,
                f"'{ph.path}' does not exist in the outputs of step '{ph.step}': {e}",
                upstream_step=ph.step,
                path=ph.path,
            ) from e
        return thaw(value)


__all__ = ["InputResolver"]
