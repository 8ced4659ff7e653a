"""Model review: local scoring, Gemini review and terminal output."""

import logging
from dataclasses import dataclass, field

from config import DEFAULT_MODEL, USE_MOCK, call_gemini, parse_llm_json
from detector import detect_anti_patterns
from mock_data import MOCK_RESPONSE
from models import SEVERITY_ORDER, Issue, ParsedModel, ReviewResult, Verdict
from prompts import DIFF_SECTION, MODEL_REVIEW_PROMPT

logger = logging.getLogger(__name__)

MAX_LINES_PER_CHUNK = 200  # Max lines to send in one request
MAX_CHARS_PER_CHUNK = 15000  # Max characters (~3750 tokens)

SEVERITY_PENALTY: dict[str, int] = {
    "critical": 25,
    "high": 15,
    "medium": 10,
    "low": 5,
}

_VERDICT_RANK: dict[str, int] = {"approve": 0, "comment": 1, "request_changes": 2}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass
class FileReview:
    """Review result for a single file."""

    path: str
    result: ReviewResult | None = None
    source: str = "local"  # local or ai
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"file": self.path, "source": self.source}
        if self.result is not None:
            data.update(self.result.model_dump())
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ReviewSummary:
    """Totals across all reviewed files."""

    files_reviewed: int = 0
    average_score: int = 0
    total_issues: int = 0
    has_blockers: bool = False
    reviews: list[FileReview] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Local review
# ---------------------------------------------------------------------------
def _strengths(model: ParsedModel, content: str) -> list[str]:
    lower = content.lower()
    strengths: list[str] = []

    if "config(" in content:
        strengths.append("Uses config block for model configuration")
    if "-- " in content or "/*" in content:
        strengths.append("Code includes comments")
    if any(fn in lower for fn in ("coalesce", "ifnull", "nvl")):
        strengths.append("Handles null values appropriately")
    if model.materialization == "incremental":
        strengths.append("Uses incremental materialization for efficiency")
    if 0 < model.cte_count <= 5:
        strengths.append("Uses CTEs for readable organization")

    return strengths


def _strict_issues(model: ParsedModel, content: str) -> list[Issue]:
    issues: list[Issue] = []

    if "description" not in content:
        issues.append(Issue(
            pattern="Missing model description",
            severity="low",
            location="Model documentation",
            fix="Add a description explaining the model's purpose",
            explanation="Model has no description in config or YAML",
        ))

    # Expects the first three letters of the type name ("fact" -> "fac_")
    prefix = model.type[:3] + "_"
    if model.type != "unknown" and not model.name.startswith(prefix):
        issues.append(Issue(
            pattern="Inconsistent naming convention",
            severity="low",
            location="Model name",
            fix=f"Rename to {prefix}{model.name}",
            explanation=(
                f"Model type appears to be {model.type} "
                "but name doesn't follow convention"
            ),
        ))

    return issues


def verdict_for(issues: list[Issue], strict: bool = False) -> Verdict:
    """Overall verdict from the severities present."""
    severities = {issue.severity for issue in issues}
    if "critical" in severities:
        return "request_changes"
    if "high" in severities:
        return "request_changes" if strict else "comment"
    if issues:
        return "comment"
    return "approve"


def review_code(
    model: ParsedModel,
    content: str,
    warehouse: str,
    strict: bool = False,
) -> ReviewResult:
    """
    Score a model locally: strengths, anti-patterns and a verdict.

    Every issue deducts a fixed penalty by severity from 100; the score is
    clamped to 0..100. Strict mode adds documentation and naming checks and
    turns high-severity issues into a request for changes.

    Args:
        model: ParsedModel for the file
        content: Raw SQL model text
        warehouse: Target warehouse name
        strict: Enable strict checks

    Returns:
        ReviewResult with score, verdict, strengths and issues
    """
    issues = detect_anti_patterns(content, model, warehouse)
    if strict:
        issues.extend(_strict_issues(model, content))

    score = 100 - sum(SEVERITY_PENALTY[issue.severity] for issue in issues)

    return ReviewResult(
        score=max(0, min(100, score)),
        overall=verdict_for(issues, strict),
        strengths=_strengths(model, content),
        issues=issues,
    )


# ---------------------------------------------------------------------------
# Chunking helpers
# ---------------------------------------------------------------------------
def number_lines(code: str) -> str:
    """Prefix every line with its 1-based number ("   1| select ...")."""
    return "\n".join(
        f"{number:4}| {line}" for number, line in enumerate(code.split("\n"), 1)
    )


def chunk_code(
    code: str,
    max_lines: int = MAX_LINES_PER_CHUNK,
    max_chars: int = MAX_CHARS_PER_CHUNK,
) -> list[str]:
    """
    Split large code into reviewable chunks.

    Each chunk keeps the line-number prefixes of the original, so issues
    still point at the right line.
    """
    lines = code.split("\n")

    if len(lines) <= max_lines and len(code) <= max_chars:
        return [code]

    chunks: list[str] = []
    current_chunk: list[str] = []
    current_chars = 0

    for line in lines:
        line_with_newline = line + "\n"

        would_exceed_lines = len(current_chunk) >= max_lines
        would_exceed_chars = current_chars + len(line_with_newline) > max_chars

        if current_chunk and (would_exceed_lines or would_exceed_chars):
            chunks.append("\n".join(current_chunk))
            current_chunk = []
            current_chars = 0

        current_chunk.append(line)
        current_chars += len(line_with_newline)

    if current_chunk:
        chunks.append("\n".join(current_chunk))

    return chunks


def combine_results(results: list[ReviewResult]) -> ReviewResult:
    """Merge chunk reviews: all issues, lowest score, worst verdict."""
    strengths: list[str] = []
    for result in results:
        strengths.extend(s for s in result.strengths if s not in strengths)

    return ReviewResult(
        score=min(r.score for r in results),
        overall=max((r.overall for r in results), key=_VERDICT_RANK.__getitem__),
        strengths=strengths,
        issues=[issue for r in results for issue in r.issues],
        summary=(
            f"Combined review of {len(results)} chunks: "
            + "; ".join(r.summary for r in results[:3] if r.summary)
        ),
    )


# ---------------------------------------------------------------------------
# AI review
# ---------------------------------------------------------------------------
def _review_chunk(
    code: str,
    filename: str,
    warehouse: str,
    diff: str = "",
    chunk_info: str = "",
    model: str = DEFAULT_MODEL,
) -> ReviewResult | None:
    """Send a single code chunk to Gemini for review."""
    if USE_MOCK:
        return parse_llm_json(MOCK_RESPONSE)

    prompt = MODEL_REVIEW_PROMPT.format(
        warehouse=warehouse,
        filename=filename,
        chunk_note=f" ({chunk_info})" if chunk_info else "",
        code=code,
        diff_section=DIFF_SECTION.format(diff=diff) if diff else "",
    )
    return parse_llm_json(call_gemini(prompt, model))


def ai_review(
    content: str,
    filename: str,
    warehouse: str,
    diff: str = "",
    model: str = DEFAULT_MODEL,
) -> ReviewResult | None:
    """
    Review a model with Gemini, splitting large files into chunks.

    Returns:
        ReviewResult, or None if no chunk produced a usable answer

    Raises:
        ValueError: If GEMINI_API_KEY is not set
    """
    chunks = chunk_code(number_lines(content))
    if len(chunks) == 1:
        return _review_chunk(chunks[0], filename, warehouse, diff, model=model)

    logger.info("  Large file detected - splitting into %d chunks", len(chunks))
    results: list[ReviewResult] = []
    for i, chunk in enumerate(chunks, 1):
        chunk_info = f"chunk {i}/{len(chunks)}"
        logger.info("  Reviewing %s...", chunk_info)
        # The diff is only useful once; send it with the first chunk
        result = _review_chunk(
            chunk, filename, warehouse, diff if i == 1 else "", chunk_info, model
        )
        if result:
            results.append(result)

    return combine_results(results) if results else None


# ---------------------------------------------------------------------------
# Summary & printing
# ---------------------------------------------------------------------------
def summarize(reviews: list[FileReview]) -> ReviewSummary:
    scored = [r.result for r in reviews if r.result is not None]
    return ReviewSummary(
        files_reviewed=len(scored),
        average_score=int(sum(r.score for r in scored) / len(scored) + 0.5) if scored else 0,
        total_issues=sum(len(r.issues) for r in scored),
        has_blockers=any(r.overall == "request_changes" for r in scored),
        reviews=reviews,
    )


def print_review(review: FileReview) -> None:
    """Pretty print one file review."""
    print(f"\n📄 {review.path} ({review.source})")
    print("─" * 50)

    if review.result is None:
        print(f"  ⚠️  Error: {review.error or 'No review produced'}")
        return

    result = review.result
    icon = {"approve": "✓", "request_changes": "✖"}.get(result.overall, "○")
    verdict = result.overall.replace("_", " ").upper()
    print(f"{icon} {verdict}  Score: {result.score}/100")
    if result.summary:
        print(f"  {result.summary}")

    if result.strengths:
        print("\n  Strengths:")
        for strength in result.strengths:
            print(f"    ✓ {strength}")

    if result.issues:
        print("\n  Issues:")
        for issue in sorted(result.issues, key=lambda i: SEVERITY_ORDER[i.severity]):
            where = f"Line {issue.line}" if issue.line else issue.location
            print(f"    [{issue.severity.upper()}] {issue.pattern} ({where})")
            print(f"      {issue.explanation}")
            print(f"      💡 Fix: {issue.fix}")


def print_summary(summary: ReviewSummary) -> None:
    print(f"\n{'=' * 50}")
    print(f"Files reviewed: {summary.files_reviewed}")
    print(f"Average score: {summary.average_score}/100")
    print(f"Total issues: {summary.total_issues}")

    if summary.has_blockers:
        print("\n✖ Review found blocking issues")
    elif summary.total_issues:
        print("\n⚠ Review passed with suggestions")
    else:
        print("\n✓ Review passed")
