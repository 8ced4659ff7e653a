"""Project-wide anti-pattern analysis of a dbt project directory."""

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path

from detector import detect_anti_patterns
from model_parser import parse_model
from models import Issue, ParsedModel

logger = logging.getLogger(__name__)

# Never analyzed, whatever the project config says
ALWAYS_IGNORED = ("target/", "dbt_packages/", "node_modules/")


@dataclass
class FileIssue:
    """An Issue tagged with the file it was found in."""

    file: str
    issue: Issue

    def to_dict(self) -> dict:
        return {**self.issue.model_dump(), "file": self.file}


@dataclass
class ModelStats:
    total: int = 0
    staging: int = 0
    intermediate: int = 0
    mart: int = 0
    other: int = 0
    with_tests: int = 0


@dataclass
class ProjectAnalysis:
    """Everything ``analyze`` reports for a project."""

    stats: ModelStats = field(default_factory=ModelStats)
    issues: list[FileIssue] = field(default_factory=list)
    models: dict[str, ParsedModel] = field(default_factory=dict)

    def by_severity(self, severity: str) -> list[FileIssue]:
        return [fi for fi in self.issues if fi.issue.severity == severity]

    def severity_counts(self) -> dict[str, int]:
        return {s: len(self.by_severity(s)) for s in ("critical", "high", "medium", "low")}

    def to_dict(self) -> dict:
        return {
            "summary": {
                "total_models": self.stats.total,
                "issues": self.severity_counts(),
                "model_types": vars(self.stats),
            },
            "issues": [fi.to_dict() for fi in self.issues],
        }


def is_ignored(relative: str, ignore_paths: list[str]) -> bool:
    """True for build/package directories and configured ignore globs."""
    if any(relative.startswith(d) or f"/{d}" in relative for d in ALWAYS_IGNORED):
        return True
    return any(fnmatch.fnmatch(relative, pattern) for pattern in ignore_paths)


def find_model_files(
    project_path: str | Path,
    model: str | None = None,
    ignore_paths: list[str] | None = None,
) -> list[Path]:
    """SQL files of the project, optionally only the one named *model*."""
    root = Path(project_path)
    pattern = f"{model}.sql" if model else "*.sql"
    files = []
    for path in sorted(root.rglob(pattern)):
        relative = path.relative_to(root).as_posix()
        if not is_ignored(relative, ignore_paths or []):
            files.append(path)
    return files


def has_schema_file(path: Path, project_path: Path) -> bool:
    return path.with_suffix(".yml").exists() or (project_path / "models" / "schema.yml").exists()


def _categorize(stats: ModelStats, model: ParsedModel) -> None:
    if model.type == "staging":
        stats.staging += 1
    elif model.type == "intermediate":
        stats.intermediate += 1
    elif model.type in ("fact", "dimension"):
        stats.mart += 1
    else:
        stats.other += 1


def analyze_project(
    project_path: str | Path,
    warehouse: str,
    model: str | None = None,
    ignore_paths: list[str] | None = None,
    ignore_rules: list[str] | None = None,
) -> ProjectAnalysis:
    """
    Parse and check every model in a dbt project.

    Args:
        project_path: Root of the dbt project
        warehouse: Target warehouse name
        model: Only analyze the model with this name
        ignore_paths: Glob patterns (relative to the root) to skip
        ignore_rules: Rule pattern texts to drop from the results

    Returns:
        ProjectAnalysis with model stats and issues in file order

    Raises:
        OSError: If a model file cannot be read
        UnicodeDecodeError: If a model file is not valid UTF-8
    """
    root = Path(project_path)
    skip_rules = set(ignore_rules or [])
    analysis = ProjectAnalysis()

    for path in find_model_files(root, model, ignore_paths):
        relative = path.relative_to(root).as_posix()
        content = path.read_text(encoding="utf-8")
        parsed = parse_model(content, relative)

        analysis.models[parsed.name] = parsed
        analysis.stats.total += 1
        _categorize(analysis.stats, parsed)
        if has_schema_file(path, root):
            analysis.stats.with_tests += 1

        for issue in detect_anti_patterns(content, parsed, warehouse):
            if issue.pattern not in skip_rules:
                analysis.issues.append(FileIssue(file=relative, issue=issue))

    logger.info(
        "Analyzed %d model(s), %d issue(s)", analysis.stats.total, len(analysis.issues)
    )
    return analysis


def print_analysis(analysis: ProjectAnalysis, verbose: bool = False) -> None:
    """Pretty print a project analysis."""
    stats = analysis.stats
    print("\nProject Summary")
    print("─" * 50)
    print(f"  Total Models          {stats.total}")
    print(f"  Staging (stg_)        {stats.staging}")
    print(f"  Intermediate (int_)   {stats.intermediate}")
    print(f"  Marts (fct_/dim_)     {stats.mart}")
    print(f"  Other                 {stats.other}")

    print("\nIssues Found")
    print("─" * 50)
    for severity, count in analysis.severity_counts().items():
        print(f"  {severity.capitalize():<10} {count}")

    important = analysis.by_severity("critical") + analysis.by_severity("high")
    if not important:
        return

    print("\nDetailed Issues")
    print("─" * 50)
    shown = important if verbose else important[:10]
    for file_issue in shown:
        issue = file_issue.issue
        print(f"\n[{issue.severity.upper()}] {issue.pattern}")
        print(f"  File: {file_issue.file} ({issue.location})")
        print(f"  {issue.explanation}")
        print(f"  💡 Fix: {issue.fix}")

    if len(important) > len(shown):
        print(
            f"\n  ... and {len(important) - len(shown)} more issues. "
            "Use --verbose to see all."
        )
