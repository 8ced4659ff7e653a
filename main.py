"""dbtlens command-line interface."""

import json
import logging
import sys
from pathlib import Path

import click

import config
from agent import run_review
from analyzer import analyze_project, find_model_files, print_analysis
from git_changes import changed_files
from lineage import build_lineage, collect_lineage, impact_level, print_overview, print_tree
from model_parser import parse_model
from reviewer import print_review, print_summary, summarize

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

_warehouse_option = click.option(
    "-w",
    "--warehouse",
    type=click.Choice(config.WAREHOUSES, case_sensitive=False),
    default=None,
    help="Target warehouse (defaults to .dbtlens.yml, then snowflake).",
)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


@click.group()
@click.version_option(version=__version__, prog_name="dbtlens")
@click.help_option("-h", "--help")
def cli():
    """dbtlens - review and analyze dbt projects."""


@cli.command()
@_warehouse_option
@click.option("--path", "project_path", default=".", help="Path to dbt project.")
def init(warehouse, project_path):
    """Write a .dbtlens.yml with default settings."""
    project_config = config.load_project_config(project_path)
    if warehouse:
        project_config.warehouse = warehouse.lower()
    path = config.save_project_config(project_config, project_path)
    print(f"✓ Wrote {path} (warehouse: {project_config.warehouse})")


@cli.command()
@click.option("-p", "--path", "project_path", default=".", help="Path to dbt project.")
@click.option("-m", "--model", default=None, help="Analyze a single model by name.")
@_warehouse_option
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
@click.option("-v", "--verbose", is_flag=True, help="Show every critical/high issue.")
def analyze(project_path, model, warehouse, as_json, verbose):
    """Analyze a dbt project for anti-patterns."""
    project_config = config.load_project_config(project_path)
    warehouse = (warehouse or project_config.warehouse).lower()

    try:
        analysis = analyze_project(
            project_path,
            warehouse,
            model=model,
            ignore_paths=project_config.analysis.ignore_paths,
            ignore_rules=project_config.analysis.ignore_rules,
        )
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Analysis failed: %s", e)
        sys.exit(1)

    if analysis.stats.total == 0:
        logger.error("No SQL files found")
        return

    critical = analysis.by_severity("critical")
    if as_json:
        _print_json(analysis.to_dict())
    else:
        print_analysis(analysis, verbose)
        if critical:
            print("\n✖ Analysis failed with critical issues")
        elif analysis.by_severity("high"):
            print("\n⚠ Analysis completed with warnings")
        else:
            print("\n✓ Analysis passed")

    sys.exit(1 if critical else 0)


@cli.command()
@click.argument("files", nargs=-1)
@click.option("--strict", is_flag=True, help="Stricter checks; fail on blocking issues.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
@click.option("--local", is_flag=True, help="Skip the AI review.")
@_warehouse_option
def review(files, strict, as_json, local, warehouse):
    """Review dbt files (defaults to files changed in git)."""
    project_config = config.load_project_config(".")
    warehouse = (warehouse or project_config.warehouse).lower()

    paths = list(files)
    if not paths:
        try:
            paths = [f.path for f in changed_files(".")]
        except RuntimeError as e:
            logger.error("No files to review. Specify files or run in a git repository. (%s)", e)
            sys.exit(1)

    reviews, error = run_review(
        paths,
        warehouse,
        strict=strict,
        use_ai=not local and config.ai_available(project_config),
    )
    if error:
        logger.error(error)
        sys.exit(1)

    summary = summarize(reviews)
    if as_json:
        _print_json([r.to_dict() for r in reviews])
    else:
        for file_review in reviews:
            print_review(file_review)
        print_summary(summary)

    if summary.has_blockers and strict:
        sys.exit(1)


@cli.command()
@click.argument("model", required=False)
@click.option("--path", "project_path", default=".", help="Path to dbt project.")
@click.option("--upstream", "only_upstream", is_flag=True, help="Only show upstream.")
@click.option("--downstream", "only_downstream", is_flag=True, help="Only show downstream.")
@click.option("--depth", default=10, show_default=True, help="Maximum depth.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON.")
def lineage(model, project_path, only_upstream, only_downstream, depth, as_json):
    """Show the lineage graph, or the lineage of MODEL."""
    project_config = config.load_project_config(project_path)
    root = Path(project_path)

    models, paths = {}, {}
    for file_path in find_model_files(root, ignore_paths=project_config.analysis.ignore_paths):
        relative = file_path.relative_to(root).as_posix()
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Cannot read %s: %s", relative, e)
            sys.exit(1)
        parsed = parse_model(content, relative)
        models[parsed.name] = parsed
        paths[parsed.name] = relative
    nodes = build_lineage(models, paths)

    if model is None:
        if as_json:
            _print_json({name: node.to_dict() for name, node in nodes.items()})
        else:
            print_overview(nodes)
        return

    if model not in nodes:
        logger.error("Model '%s' not found", model)
        sys.exit(1)

    upstream = [] if only_downstream else collect_lineage(nodes, model, "upstream", depth)
    downstream = [] if only_upstream else collect_lineage(nodes, model, "downstream", depth)

    if as_json:
        _print_json({"model": model, "upstream": upstream, "downstream": downstream})
        return

    print(f"\nLineage for {model}")
    print("─" * 50)
    if not only_downstream:
        print("\n⬆ Upstream:")
        print_tree(nodes, model, "upstream", depth)
    print(f"\n● {model}")
    if not only_upstream:
        print("\n⬇ Downstream:")
        print_tree(nodes, model, "downstream", depth)

    count = len(collect_lineage(nodes, model, "downstream", depth))
    print(f"\nImpact: {impact_level(count)} ({count} downstream model(s))")


if __name__ == "__main__":
    cli()
