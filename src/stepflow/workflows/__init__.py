"""
Workflows - declarative specs, their validation and dependency graph.
"""

from .models import (
    ErrorDetail,
    ExecutionReport,
    OperationKind,
    RetryPolicy,
    RunStatus,
    StepReport,
    StepSpec,
    StepState,
    WorkflowSpec,
)
from .values import (
    ListValue,
    LiteralValue,
    ObjectValue,
    Placeholder,
    PluginConfig,
    Transform,
    ValueSource,
    as_source,
    literal,
    plugin,
    ref,
    transform,
)
from .plugins import ArgumentDefinition, PluginCatalog, PluginDefinition
from .graph import CycleError, DependencyGraph
from .validator import ValidatedWorkflow, validate_spec
from .loader import dump_spec, load_spec_file, load_spec_from_data, load_spec_text

__all__ = [
    "ErrorDetail",
    "ExecutionReport",
    "OperationKind",
    "RetryPolicy",
    "RunStatus",
    "StepReport",
    "StepSpec",
    "StepState",
    "WorkflowSpec",
    "ListValue",
    "LiteralValue",
    "ObjectValue",
    "Placeholder",
    "PluginConfig",
    "Transform",
    "ValueSource",
    "as_source",
    "literal",
    "plugin",
    "ref",
    "transform",
    "ArgumentDefinition",
    "PluginCatalog",
    "PluginDefinition",
    "CycleError",
    "DependencyGraph",
    "ValidatedWorkflow",
    "validate_spec",
    "dump_spec",
    "load_spec_file",
    "load_spec_from_data",
    "load_spec_text",
]
