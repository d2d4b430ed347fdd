"""ingestkit-bpmn CLI - Main entry point.

Provides commands for analysing BPMN documents, extracting components,
and inventorying TWX archives.

Exit codes:
    0: Success (including per-component warnings)
    1: Fatal scan or output error
    2: Configuration error
"""

from __future__ import annotations

import logging
import sys

import click
from pydantic import ValidationError

from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.router import BPMNRouter

# Exit codes
EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def load_config(config_path: str | None) -> BPMNProcessorConfig:
    if config_path is None:
        return BPMNProcessorConfig()
    try:
        return BPMNProcessorConfig.from_file(config_path)
    except (OSError, ValueError, ValidationError) as e:
        click.echo(f"Error: Invalid configuration {config_path}: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)


def _report_outcome(result) -> None:
    for detail in result.error_details:
        prefix = "Error" if detail.code in result.errors else "Warning"
        click.echo(f"{prefix}: [{detail.code}] {detail.message}", err=True)

    if result.errors:
        if "E_CONFIG_UNKNOWN_CATEGORY" in result.errors:
            sys.exit(EXIT_CONFIG_ERROR)
        sys.exit(EXIT_FATAL)

    for path in result.written.paths:
        click.echo(f"  wrote {path}")


@click.group()
@click.version_option(prog_name="ingestkit-bpmn")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML or JSON configuration file",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """ingestkit-bpmn - Streaming BPMN analysis and component extraction.

    Analyse IBM BPM BPMN/XML exports, extract components into standalone
    XML fragments, and inventory TWX archives.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _router(ctx: click.Context, **overrides: object) -> BPMNRouter:
    config = load_config(ctx.obj.get("config_path"))
    if overrides:
        config = config.model_copy(update=overrides)
    return BPMNRouter(config)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None,
              help="Report directory (default: beside FILE)")
@click.option("--markdown/--no-markdown", default=True, help="Also write a Markdown report")
@click.pass_context
def analyze(ctx: click.Context, file: str, output_dir: str | None, markdown: bool) -> None:
    """Analyse a BPMN/XML document and write its analysis report.

    FILE: Path to the .xml or .bpmn document
    """
    router = _router(ctx, write_markdown_report=markdown)
    result = router.analyze(file, output_dir)
    _report_outcome(result)

    report = result.report
    if report is None:
        sys.exit(EXIT_FATAL)
    summary = report.summary
    click.echo(f"Analysis of {file}")
    click.echo(f"  Coach Views:      {summary.total_coach_views}")
    click.echo(f"  Human Services:   {summary.total_human_services}")
    click.echo(f"  BPD Processes:    {summary.total_bpd_processes}")
    click.echo(f"  Service Tasks:    {summary.total_service_tasks}")
    click.echo(f"  Data Bindings:    {summary.unique_data_bindings}")
    click.echo(f"  Max Depth:        {summary.max_nesting_depth}")
    click.echo(f"  Complexity Score: {report.complexity.score:g}")
    click.echo(f"  Recommendation:   {report.complexity.recommendation}")
    sys.exit(EXIT_SUCCESS)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("category")
@click.argument("component_id", required=False)
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None,
              help="Output directory (default: extracted/<stem> beside FILE)")
@click.pass_context
def extract(
    ctx: click.Context,
    file: str,
    category: str,
    component_id: str | None,
    output_dir: str | None,
) -> None:
    """Extract components of CATEGORY into standalone XML files.

    FILE: Path to the .xml or .bpmn document

    CATEGORY: coachview, service, process, task or all

    COMPONENT_ID: Optional id; only the matching component is extracted
    """
    router = _router(ctx)
    result = router.extract(file, category, component_id, output_dir)
    _report_outcome(result)

    click.echo(f"Extracted {result.components_extracted} component(s) to "
               f"{result.written.output_dir}")
    sys.exit(EXIT_SUCCESS)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None,
              help="Output directory")
@click.option("--extract", "category", default=None,
              help="Extract components of this category instead of inventorying")
@click.option("--id", "component_id", default=None, help="Only extract this component id")
@click.option("--markdown/--no-markdown", default=True, help="Also write a Markdown inventory")
@click.pass_context
def twx(
    ctx: click.Context,
    file: str,
    output_dir: str | None,
    category: str | None,
    component_id: str | None,
    markdown: bool,
) -> None:
    """Inventory a TWX archive, or extract components from it.

    FILE: Path to the .twx archive
    """
    router = _router(ctx, write_markdown_report=markdown)

    if category is not None:
        result = router.extract_twx(file, category, component_id, output_dir)
        _report_outcome(result)
        click.echo(f"Extracted {result.components_extracted} component(s) to "
                   f"{result.written.output_dir}")
        sys.exit(EXIT_SUCCESS)

    inventory_result = router.analyze_twx(file, output_dir)
    _report_outcome(inventory_result)

    inventory = inventory_result.inventory
    if inventory is None:
        sys.exit(EXIT_FATAL)
    click.echo(f"TWX inventory of {file}: {inventory.statistics.total_files} file(s)")
    for name, entries in inventory.categories.items():
        click.echo(f"  {name}: {len(entries)}")
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
