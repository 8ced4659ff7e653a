"""Discover changed dbt files from the local git working tree using unidiff."""

import logging
import subprocess
from dataclasses import dataclass, field

from unidiff import PatchSet

logger = logging.getLogger(__name__)

REVIEW_EXTENSIONS = (".sql", ".yml")

SKIP_DIRECTORIES = {"target/", "dbt_packages/", "logs/", "node_modules/", ".venv/"}


@dataclass
class ChangedFile:
    """A dbt file with uncommitted changes."""
    path: str
    status: str                                          # added, modified, renamed
    added_lines: list[int] = field(default_factory=list)  # line numbers in the new file
    patch: str = ""                                      # raw patch text


def parse_diff(diff_text: str) -> list[ChangedFile]:
    """
    Parse a unified diff into ChangedFile records.

    Deleted files are left out: there is nothing left to review.
    """
    files = []

    for patched_file in PatchSet(diff_text):
        if patched_file.is_removed_file:
            continue
        if patched_file.is_added_file:
            status = "added"
        elif patched_file.is_rename:
            status = "renamed"
        else:
            status = "modified"

        added_lines = [
            line.target_line_no
            for hunk in patched_file
            for line in hunk
            if line.is_added
        ]

        files.append(ChangedFile(
            path=patched_file.path,
            status=status,
            added_lines=added_lines,
            patch=str(patched_file),
        ))

    return files


def should_review_file(path: str) -> bool:
    """Only dbt SQL/YAML files outside build and package directories."""
    for skip_dir in SKIP_DIRECTORIES:
        if path.startswith(skip_dir) or f"/{skip_dir}" in path:
            return False
    return path.lower().endswith(REVIEW_EXTENSIONS)


def _git_diff(cwd: str, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", "diff", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise RuntimeError("git is not installed or not on PATH") from e
    except subprocess.CalledProcessError as e:
        raise RuntimeError(
            f"git diff failed: {e.stderr.strip() or 'not a git repository?'}"
        ) from e
    return result.stdout


def changed_files(cwd: str = ".") -> list[ChangedFile]:
    """
    Return staged dbt files, or unstaged ones when nothing is staged.

    Raises:
        RuntimeError: If git is missing or *cwd* is not a repository
    """
    staged = [f for f in parse_diff(_git_diff(cwd, "--cached")) if should_review_file(f.path)]
    if staged:
        logger.info("Found %d staged dbt file(s)", len(staged))
        return staged

    modified = [f for f in parse_diff(_git_diff(cwd)) if should_review_file(f.path)]
    logger.info("Found %d modified dbt file(s)", len(modified))
    return modified


def diff_for(path: str, cwd: str = ".") -> str:
    """Diff of *path* against HEAD, or "" when git has nothing for it."""
    try:
        return _git_diff(cwd, "HEAD", "--", path)
    except RuntimeError as e:
        logger.debug("No diff for %s: %s", path, e)
        return ""
