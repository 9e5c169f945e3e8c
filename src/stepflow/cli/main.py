"""
stepflow CLI - Main entry point.

Provides commands for:
- Validating workflow specs
- Printing the execution plan
- Running a spec against a GraphQL, REST or replay adapter
- Suggesting field names for casual labels (offline authoring aid)

Exit codes:
    0    every step succeeded
    1    execution failure (a step Failed or was Skipped)
    2    usage error (click)
    3    spec invalid or unloadable
    130  interrupted
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import yaml

from stepflow.config import get_settings
from stepflow.errors import SpecLoadError, SpecValidationError
from stepflow.observability import setup_logging


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SPEC_INVALID = 3
EXIT_INTERRUPTED = 130


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    default=None,
    help="Log format (default: STEPFLOW_LOG_FORMAT)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, log_format: Optional[str]):
    """stepflow - declarative multi-step API orchestration."""
    ctx.ensure_object(dict)

    level = None
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    setup_logging(level=level, fmt=log_format)

    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _load_validated(spec_file: str):
    """Load and validate, exiting with EXIT_SPEC_INVALID on failure."""
    from stepflow.workflows import load_spec_file, validate_spec

    try:
        spec = load_spec_file(Path(spec_file))
        return validate_spec(spec)
    except SpecLoadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_SPEC_INVALID)
    except SpecValidationError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_SPEC_INVALID)


# ==============================================================================
# Spec Commands
# ==============================================================================

@cli.command("validate")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False))
def validate_cmd(spec_file: str):
    """
    Validate a workflow spec without running it.

    SPEC_FILE: Path to a .json / .yaml spec
    """
    workflow = _load_validated(spec_file)
    click.echo(f"OK: '{workflow.name}' is valid ({len(workflow.order)} steps)")


@cli.command("plan")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False))
def plan_cmd(spec_file: str):
    """
    Print the execution order and dependencies of a spec.

    Steps on the same level have no dependency on each other and may run
    concurrently.
    """
    workflow = _load_validated(spec_file)
    levels = workflow.graph.levels(workflow.order)

    click.echo(f"Workflow: {workflow.name}")
    for position, sid in enumerate(workflow.order, start=1):
        step = workflow.step(sid)
        deps = ", ".join(workflow.graph.dependencies[sid]) or "-"
        click.echo(
            f"  {position:>2}. [L{levels[sid]}] {sid}: {step.kind.value} {step.operation}  (after: {deps})"
        )


# ==============================================================================
# Run Command
# ==============================================================================

def _build_adapter(
    endpoint: Optional[str],
    documents: Optional[str],
    routes: Optional[str],
    replay: Optional[str],
    token: Optional[str],
):
    from stepflow.adapters import GraphQLAdapter, HttpTransport, ReplayAdapter, RestAdapter

    chosen = [name for name, value in (("--documents", documents), ("--routes", routes), ("--replay", replay)) if value]
    if len(chosen) != 1:
        raise click.UsageError("Choose exactly one of --documents, --routes or --replay")

    if replay:
        return ReplayAdapter.from_file(replay)

    settings = get_settings()
    endpoint = endpoint or settings.adapter_endpoint
    if not endpoint:
        raise click.UsageError("--endpoint (or STEPFLOW_ADAPTER_ENDPOINT) is required")
    if token is None and settings.adapter_token is not None:
        token = settings.adapter_token.get_secret_value()

    try:
        headers = settings.get_adapter_headers()
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    transport = HttpTransport(
        endpoint,
        default_headers=headers,
        timeout=settings.adapter_request_timeout_s,
        bearer_token=token,
    )
    if documents:
        return GraphQLAdapter.from_documents_file(transport, documents)
    return RestAdapter.from_routes_file(transport, routes)


@cli.command("run")
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--endpoint", "-e", help="GraphQL endpoint or REST base URL")
@click.option(
    "--documents", "-d",
    type=click.Path(exists=True),
    help="GraphQL documents: YAML/JSON mapping or directory of *.graphql files",
)
@click.option("--routes", "-r", type=click.Path(exists=True, dir_okay=False), help="REST routes file")
@click.option("--replay", type=click.Path(exists=True, dir_okay=False), help="Canned responses file (dry run)")
@click.option("--token", help="Bearer token (default: STEPFLOW_ADAPTER_TOKEN)")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Maximum concurrent steps")
@click.option("--deadline", type=click.FloatRange(min=0, min_open=True), help="Overall run deadline in seconds")
@click.option("--report", "-o", type=click.Path(dir_okay=False), help="Write the JSON execution report here")
@click.option("--json", "as_json", is_flag=True, help="Print the JSON execution report to stdout")
@click.option("--deterministic", is_flag=True, help="Omit run id, timestamps and durations from the report")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    spec_file: str,
    endpoint: Optional[str],
    documents: Optional[str],
    routes: Optional[str],
    replay: Optional[str],
    token: Optional[str],
    workers: Optional[int],
    deadline: Optional[float],
    report: Optional[str],
    as_json: bool,
    deterministic: bool,
):
    """
    Run a workflow spec.

    SPEC_FILE: Path to a .json / .yaml spec

    Examples:

        # Dry run against canned responses
        stepflow run oceania.json --replay responses.yaml

        # Against a GraphQL admin API
        stepflow run oceania.json -e https://shop.example/admin-api -d documents.yaml
    """
    from stepflow.runtime import WorkflowExecutor

    workflow = _load_validated(spec_file)
    try:
        adapter = _build_adapter(endpoint, documents, routes, replay, token)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.UsageError(f"Cannot set up adapter: {e}") from e
    executor = WorkflowExecutor(adapter, max_workers=workers, run_deadline_s=deadline)

    try:
        result = executor.run(workflow)
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        sys.exit(EXIT_INTERRUPTED)

    if as_json:
        click.echo(result.to_json(deterministic=deterministic))
    else:
        click.echo(f"Workflow: {result.workflow}  run={result.run_id}  status={result.status.value}")
        for sid, step in result.steps.items():
            icon = {"succeeded": "✓", "failed": "✗", "skipped": "-"}.get(step.state.value, "?")
            line = f"  {icon} {sid}: {step.state.value}"
            if step.error is not None:
                line += f" ({step.error.type}/{step.error.reason}: {step.error.message})"
            elif step.skipped_because:
                line += f" (because {step.skipped_because}, root cause {step.root_cause})"
            click.echo(line)

    if report:
        Path(report).write_text(result.to_json(deterministic=deterministic), encoding="utf-8")
        if not ctx.obj.get("quiet"):
            click.echo(f"Report saved to: {report}", err=True)

    sys.exit(EXIT_OK if result.is_success() else EXIT_FAILED)


# ==============================================================================
# Authoring Commands
# ==============================================================================

@cli.command("suggest")
@click.argument("labels", nargs=-1, required=True)
@click.option("--field", "-f", "fields", multiple=True, required=True, help="Candidate field name (repeatable)")
@click.option("--limit", default=3, show_default=True, help="Suggestions per label")
@click.option("--cutoff", default=0.55, show_default=True, help="Minimum similarity score")
def suggest_cmd(labels: Tuple[str, ...], fields: Tuple[str, ...], limit: int, cutoff: float):
    """
    Suggest backend field names for casual labels.

    Examples:

        stepflow suggest "zone name" "shipping price" -f zoneName -f rate -f price
    """
    from stepflow.authoring import suggest_fields

    suggestions = {
        label: [{"field": m.field, "score": m.score} for m in suggest_fields(label, fields, limit, cutoff)]
        for label in labels
    }
    click.echo(json.dumps(suggestions, indent=2))


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
