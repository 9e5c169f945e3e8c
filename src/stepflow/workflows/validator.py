"""
Workflow Validator - structural checks before any step runs.

Every problem is collected; validation never stops at the first one:
- duplicate step ids
- dependsOn / placeholder references to unknown steps
- placeholders naming an output the referenced step does not declare
- unknown transforms and transform arity
- unknown plugin codes and argument names
- malformed extraction paths
- dependency cycles (explicit and placeholder-induced edges)

A spec that passes becomes a ValidatedWorkflow; the executor only accepts
those, so an invalid spec can never be partially executed.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..errors import ProblemKind, SpecValidationError, ValidationProblem
from ..transforms.registry import TransformRegistry, default_registry
from .graph import DependencyGraph
from .models import StepSpec, WorkflowSpec
from .paths import PathError, head, parse_path
from .plugins import PluginCatalog
from .values import Placeholder, PluginConfig, Transform, iter_sources


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedWorkflow:
    """
    A spec that passed validation, with its dependency graph.

    ``order`` is the deterministic topological order (declaration-order
    tie-break). ``plugins`` is the effective catalog: registered codes
    overlaid with the spec's inline declarations.
    """
    spec: WorkflowSpec
    graph: DependencyGraph
    order: Tuple[str, ...]
    plugins: PluginCatalog

    @property
    def name(self) -> str:
        return self.spec.name

    def step(self, step_id: str) -> StepSpec:
        found = self.spec.get_step(step_id)
        if found is None:
            raise KeyError(step_id)
        return found

    def steps_in_order(self) -> List[StepSpec]:
        return [self.step(sid) for sid in self.order]


def validate_spec(
    spec: WorkflowSpec,
    transforms: Optional[TransformRegistry] = None,
    plugins: Optional[PluginCatalog] = None,
) -> ValidatedWorkflow:
    """
    Validate a workflow spec.

    Args:
        spec: Parsed workflow spec
        transforms: Registry to check transform names against (built-ins if omitted)
        plugins: Registered plugin codes; the spec's inline catalog is layered on top

    Returns:
        ValidatedWorkflow

    Raises:
        SpecValidationError: With every problem found
    """
    transforms = transforms if transforms is not None else default_registry()
    catalog = (plugins or PluginCatalog()).merged(PluginCatalog.from_definitions(spec.plugins))

    problems: List[ValidationProblem] = []
    problems.extend(_check_duplicates(spec))

    outputs_by_step: Dict[str, Dict[str, str]] = {}
    for step in spec.steps:
        outputs_by_step.setdefault(step.id, step.outputs)

    for step in spec.steps:
        problems.extend(_check_outputs(step))
        problems.extend(_check_dependencies(step, outputs_by_step))
        problems.extend(_check_sources(step, transforms, catalog))

    graph = DependencyGraph(spec.steps)
    for cycle in graph.find_cycles():
        rendered = " -> ".join([*cycle, cycle[0]])
        problems.append(ValidationProblem(
            ProblemKind.CYCLE,
            f"dependency cycle: {rendered}",
            step_id=cycle[0],
            members=cycle,
        ))

    if problems:
        logger.info("Workflow %r failed validation with %d problem(s)", spec.name, len(problems))
        raise SpecValidationError(problems)

    order = tuple(graph.topological_order())
    logger.debug("Workflow %r validated, order=%s", spec.name, list(order))
    return ValidatedWorkflow(spec=spec, graph=graph, order=order, plugins=catalog)


# =============================================================================
# INDIVIDUAL CHECKS
# =============================================================================

def _check_duplicates(spec: WorkflowSpec) -> List[ValidationProblem]:
    counts = Counter(step.id for step in spec.steps)
    return [
        ValidationProblem(
            ProblemKind.DUPLICATE_STEP,
            f"step id '{sid}' is declared {n} times",
            step_id=sid,
        )
        for sid, n in counts.items()
        if n > 1
    ]


def _check_outputs(step: StepSpec) -> List[ValidationProblem]:
    problems = []
    for name, path in step.outputs.items():
        try:
            parse_path(path)
        except PathError as e:
            problems.append(ValidationProblem(
                ProblemKind.INVALID_PATH,
                f"output '{name}' has malformed path: {e}",
                step_id=step.id,
            ))
    return problems


def _check_dependencies(step: StepSpec, outputs_by_step: Dict[str, Dict[str, str]]) -> List[ValidationProblem]:
    problems = []
    for dep in step.depends_on:
        if dep not in outputs_by_step:
            problems.append(ValidationProblem(
                ProblemKind.UNKNOWN_STEP,
                f"dependsOn references unknown step '{dep}'",
                step_id=step.id,
            ))

    for field_name, source in step.inputs.items():
        for ph in (s for s in iter_sources(source) if isinstance(s, Placeholder)):
            problems.extend(_check_placeholder(step, field_name, ph, outputs_by_step))
    return problems


def _check_placeholder(
    step: StepSpec,
    field_name: str,
    ph: Placeholder,
    outputs_by_step: Dict[str, Dict[str, str]],
) -> List[ValidationProblem]:
    if ph.step not in outputs_by_step:
        return [ValidationProblem(
            ProblemKind.UNKNOWN_STEP,
            f"input '{field_name}' references unknown step '{ph.step}'",
            step_id=step.id,
        )]
    try:
        output = head(ph.path)
    except PathError as e:
        return [ValidationProblem(
            ProblemKind.INVALID_PATH,
            f"input '{field_name}' has malformed placeholder path: {e}",
            step_id=step.id,
        )]
    if output is None or output not in outputs_by_step[ph.step]:
        declared = sorted(outputs_by_step[ph.step])
        return [ValidationProblem(
            ProblemKind.UNKNOWN_OUTPUT,
            f"input '{field_name}' references output '{ph.path}' of step '{ph.step}', "
            f"which declares {declared or 'no outputs'}",
            step_id=step.id,
        )]
    return []


def _check_sources(step: StepSpec, transforms: TransformRegistry, catalog: PluginCatalog) -> List[ValidationProblem]:
    problems = []
    for field_name, source in step.inputs.items():
        for node in iter_sources(source):
            if isinstance(node, Transform):
                if node.name not in transforms:
                    problems.append(ValidationProblem(
                        ProblemKind.UNKNOWN_TRANSFORM,
                        f"input '{field_name}' uses unregistered transform '{node.name}'",
                        step_id=step.id,
                    ))
                    continue
                arity = transforms.check_arity(node.name, len(node.args))
                if arity:
                    problems.append(ValidationProblem(
                        ProblemKind.TRANSFORM_ARITY,
                        f"input '{field_name}': {arity}",
                        step_id=step.id,
                    ))
            elif isinstance(node, PluginConfig):
                if node.code not in catalog:
                    problems.append(ValidationProblem(
                        ProblemKind.UNKNOWN_PLUGIN,
                        f"input '{field_name}' uses unknown plugin code '{node.code}'",
                        step_id=step.id,
                    ))
                    continue
                for message in catalog.check_arguments(node.code, list(node.arguments)):
                    problems.append(ValidationProblem(
                        ProblemKind.PLUGIN_ARGUMENTS,
                        f"input '{field_name}': {message}",
                        step_id=step.id,
                    ))
    return problems


__all__ = ["ValidatedWorkflow", "validate_spec"]
