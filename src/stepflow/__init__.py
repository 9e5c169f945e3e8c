"""
stepflow - declarative multi-step API orchestration.

A WorkflowSpec lists steps; each step calls one backend operation through an
API adapter. Step inputs are literals, placeholders bound to earlier steps'
recorded outputs, or named transforms over other sources. The engine only
sequences steps, binds outputs to inputs and applies transforms.

    from stepflow import ReplayAdapter, WorkflowExecutor, load_spec_file

    spec = load_spec_file("oceania.json")
    report = WorkflowExecutor(ReplayAdapter({...})).run(spec)
"""

from .errors import (
    AdapterError,
    AdapterReason,
    RecordLookupError,
    ResolutionError,
    SpecLoadError,
    SpecValidationError,
    StepError,
    StepTimeoutError,
    StepflowError,
    TransformationError,
)
from .transforms import TransformRegistry, default_registry
from .workflows import (
    ExecutionReport,
    PluginCatalog,
    StepState,
    ValidatedWorkflow,
    WorkflowSpec,
    dump_spec,
    load_spec_file,
    load_spec_from_data,
    validate_spec,
)
from .adapters import ApiAdapter, GraphQLAdapter, HttpTransport, ReplayAdapter, RestAdapter
from .runtime import ResultStore, WorkflowExecutor, run_workflow

__version__ = "0.1.0"

__all__ = [
    "AdapterError",
    "AdapterReason",
    "RecordLookupError",
    "ResolutionError",
    "SpecLoadError",
    "SpecValidationError",
    "StepError",
    "StepTimeoutError",
    "StepflowError",
    "TransformationError",
    "TransformRegistry",
    "default_registry",
    "ExecutionReport",
    "PluginCatalog",
    "StepState",
    "ValidatedWorkflow",
    "WorkflowSpec",
    "dump_spec",
    "load_spec_file",
    "load_spec_from_data",
    "validate_spec",
    "ApiAdapter",
    "GraphQLAdapter",
    "HttpTransport",
    "ReplayAdapter",
    "RestAdapter",
    "ResultStore",
    "WorkflowExecutor",
    "run_workflow",
]
