# cli.py
from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from stepcraft.graph import build_graph
from stepcraft.loader import PipelineLoadError, load_pipeline
from stepcraft.matrix import expand_matrix
from stepcraft.model import CommandStep, Pipeline
from stepcraft.serializer import serialize_full
from stepcraft.settings import ValidatorSettings
from stepcraft.ui.console import Console, get_console, set_console
from stepcraft.validator import UnifiedValidator

DEFAULT_PIPELINE = "stepcraft_pipeline.py"
DEFAULT_SNAPSHOT = "pipeline.json"


def find_pipeline_files() -> list[Path]:
    """
    Find all pipeline files in the current directory.

    Returns:
        List of Path objects for pipeline files
    """
    pipeline_files = []
    current_dir = Path(".")

    for name in (DEFAULT_PIPELINE, DEFAULT_SNAPSHOT):
        candidate = current_dir / name
        if candidate.exists():
            pipeline_files.append(candidate)

    # Look for *.pipeline.json snapshots
    for path in current_dir.glob("*.pipeline.json"):
        pipeline_files.append(path)

    return sorted(pipeline_files)


def discover_pipeline(pipeline_arg: str | None) -> Path:
    """
    Discover pipeline file from argument or default.

    Raises:
        SystemExit: If the pipeline cannot be found or several candidates exist
    """
    console = get_console()

    if pipeline_arg:
        pipeline_path = Path(pipeline_arg)
        if not pipeline_path.exists():
            console.print_error(
                "Pipeline file not found",
                f"Could not find pipeline file: {pipeline_arg}",
                suggestion="Create a pipeline file or specify a different path:\n"
                "  stepcraft render --pipeline my.pipeline.json",
            )
            sys.exit(1)
        return pipeline_path

    pipeline_files = find_pipeline_files()

    if len(pipeline_files) == 0:
        console.print_error(
            "No pipeline file found",
            "Could not find any pipeline files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_PIPELINE}",
                f"  {DEFAULT_SNAPSHOT}",
                "  *.pipeline.json",
            ],
            suggestion=f"Create a pipeline file:\n  {DEFAULT_PIPELINE}\n\n"
            "Or specify a pipeline explicitly:\n  stepcraft render --pipeline pipeline.yml",
        )
        sys.exit(1)

    if len(pipeline_files) > 1:
        file_list = "\n".join(f"  {f}" for f in pipeline_files)
        console.print_error(
            "Multiple pipeline files found",
            "Found multiple pipeline files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a pipeline explicitly:\n  stepcraft render --pipeline {DEFAULT_PIPELINE}",
        )
        sys.exit(1)

    return pipeline_files[0]


def _load(ctx, pipeline_arg: str | None) -> Pipeline:
    console = get_console()
    path = discover_pipeline(pipeline_arg)
    try:
        pipeline = load_pipeline(path)
    except PipelineLoadError as e:
        console.print_error(
            "Failed to load pipeline",
            e.message,
            details=[f"{k}={v}" for k, v in e.details.items()] or None,
            suggestion=f"Check the pipeline file: {e.source or path}",
        )
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)
    except Exception as e:
        console.print_error(
            "Failed to load pipeline",
            f"Could not load pipeline from {path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)

    console.print_debug(f"loaded {len(pipeline)} steps from {path} ({pipeline.fingerprint()[:12]})")
    return pipeline


pipeline_option = click.option(
    "--pipeline",
    default=None,
    help=f"Pipeline file path (defaults to {DEFAULT_PIPELINE} or {DEFAULT_SNAPSHOT} if present)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """stepcraft: render, validate and inspect CI pipelines."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@pipeline_option
@click.option("--output", "-o", default=None, help="Write the document to a file instead of stdout")
@click.option("--name", default=None, help="Pipeline name for the header comment")
@click.option("--description", default=None, help="Pipeline description for the header comment")
@click.pass_context
def render(ctx, pipeline, output, name, description):
    """Render the pipeline document. Never blocked by validation."""
    console = get_console()
    snapshot = _load(ctx, pipeline)
    text = serialize_full(snapshot, name=name, description=description)

    if output:
        Path(output).write_text(text, encoding="utf-8")
        console.print_info(f"Wrote {len(snapshot)} step(s) to {output}")
    else:
        click.echo(text, nl=False)


@cli.command()
@pipeline_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON")
@click.option("--yaml", "yaml_path", default=None, help="Also check the syntax of a rendered document")
@click.option("--strict/--no-strict", default=False, help="Treat warnings as failures")
@click.pass_context
def validate(ctx, pipeline, as_json, yaml_path, strict):
    """Validate a pipeline and report every issue found."""
    console = get_console()
    snapshot = _load(ctx, pipeline)

    text = None
    if yaml_path:
        try:
            text = Path(yaml_path).read_text(encoding="utf-8")
        except OSError as e:
            console.print_error("Could not read document", str(e))
            sys.exit(1)

    report = UnifiedValidator(ValidatorSettings()).validate(snapshot, text=text)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        console.print_report(report)

    if not report.valid or (strict and report.warnings):
        sys.exit(1)


@cli.command()
@pipeline_option
@click.option("--output", "-o", default="pipeline.yml", show_default=True, help="Destination file")
@click.option("--name", default=None, help="Pipeline name for the header comment")
@click.option("--description", default=None, help="Pipeline description for the header comment")
@click.pass_context
def export(ctx, pipeline, output, name, description):
    """Validate, then write the document only if the pipeline is valid."""
    console = get_console()
    snapshot = _load(ctx, pipeline)
    text = serialize_full(snapshot, name=name, description=description)
    report = UnifiedValidator(ValidatorSettings()).validate(snapshot, text=text)

    if not report.valid:
        console.print_report(report)
        console.print_error(
            "Export blocked",
            f"{report.summary.details}; nothing was written.",
            suggestion="Fix the errors above, or use `stepcraft render` to preview the document.",
        )
        sys.exit(1)

    Path(output).write_text(text, encoding="utf-8")
    console.print_info(f"Exported {len(snapshot)} step(s) to {output} ({report.summary.details})")


@cli.command()
@pipeline_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the layout as JSON")
@click.option("--dot", "as_dot", is_flag=True, default=False, help="Print the graph in Graphviz DOT format")
@click.option("--timeline", "with_timeline", is_flag=True, default=False, help="Add estimated step durations")
@click.pass_context
def graph(ctx, pipeline, as_json, as_dot, with_timeline):
    """Show dependency levels and edges."""
    console = get_console()
    snapshot = _load(ctx, pipeline)
    dependency_graph = build_graph(snapshot)
    layout = dependency_graph.layout()

    if as_json:
        data = layout.to_dict()
        if with_timeline:
            data["timeline"] = dependency_graph.timeline().to_dict()
        click.echo(json.dumps(data, indent=2))
    elif as_dot:
        click.echo(layout.to_dot(), nl=False)
    else:
        console.print_header("Dependency graph")
        console.print_layout(layout)
        for cycle in dependency_graph.detect_cycles():
            console.print_info(f"Cycle: {cycle}")
        if with_timeline:
            console.print_timeline(dependency_graph.timeline())


@cli.command()
@pipeline_option
@click.option("--step", "step_key", default=None, help="Only show the step with this key")
@click.pass_context
def matrix(ctx, pipeline, step_key):
    """Preview matrix combinations."""
    console = get_console()
    snapshot = _load(ctx, pipeline)
    settings = ValidatorSettings()

    steps = [s for s in snapshot.walk() if isinstance(s, CommandStep) and s.matrix is not None]
    if step_key:
        steps = [s for s in steps if s.key == step_key]
    if not steps:
        console.print_error(
            "No matrix steps",
            f'No step with key "{step_key}" has a matrix.' if step_key else "The pipeline has no matrix steps.",
        )
        sys.exit(1)

    for step in steps:
        console.print_matrix(step.display_name, expand_matrix(step.matrix, sample_limit=settings.sample_limit))


if __name__ == "__main__":
    cli()
