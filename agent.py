"""
dbtlens review agent - LangGraph workflow behind ``dbtlens review``.

Files are loaded, then routed either to the Gemini reviewer or to the local
rule-based reviewer. The AI reviewer falls back to the local review for any
file it cannot handle, so every loaded file ends up with a result.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from langgraph.graph import END, START, StateGraph

import config as _config
from git_changes import diff_for
from model_parser import parse_model
from reviewer import FileReview, ai_review, review_code

logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    path: str
    content: str
    diff: str = ""


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class ReviewState:
    """
    State that flows through the review graph.

    Each node reads what it needs and returns updates to specific fields.
    """

    # Input (required)
    paths: list[str]
    warehouse: str = _config.DEFAULT_WAREHOUSE
    strict: bool = False
    use_ai: bool = False
    cwd: str = "."

    # Populated by load_files
    files: list[SourceFile] = field(default_factory=list)

    # Output
    reviews: list[FileReview] = field(default_factory=list)
    error: str | None = None


# =============================================================================
# NODE FUNCTIONS
# =============================================================================
def load_files(state: ReviewState) -> dict:
    """
    Node 1: Read every requested file that exists.

    Reads: paths, use_ai, cwd
    Updates: files, error
    """
    files: list[SourceFile] = []
    for path in state.paths:
        file_path = Path(state.cwd) / path
        if not file_path.is_file():
            logger.warning("Skipping %s - file not found", path)
            continue
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping %s - %s", path, e)
            continue
        files.append(SourceFile(
            path=path,
            content=content,
            # Only the AI reviewer looks at diffs
            diff=diff_for(path, state.cwd) if state.use_ai else "",
        ))

    if not files:
        return {"files": [], "error": "No SQL files to review"}

    logger.info("📥 Loaded %d file(s) for review", len(files))
    return {"files": files}


def _local_review(file: SourceFile, warehouse: str, strict: bool) -> FileReview:
    model = parse_model(file.content, file.path)
    return FileReview(
        path=file.path,
        result=review_code(model, file.content, warehouse, strict),
    )


def local_reviewer(state: ReviewState) -> dict:
    """
    Local Reviewer Node: rule-based review, no network.

    Reads: files, warehouse, strict
    Writes: reviews
    """
    logger.info("🔍 Running local review...")
    return {
        "reviews": [_local_review(f, state.warehouse, state.strict) for f in state.files]
    }


def ai_reviewer(state: ReviewState) -> dict:
    """
    AI Reviewer Node: Gemini review with local fallback per file.

    Reads: files, warehouse, strict
    Writes: reviews
    """
    logger.info("🤖 Running AI-powered review...")
    reviews: list[FileReview] = []

    for file in state.files:
        try:
            result = ai_review(file.content, file.path, state.warehouse, file.diff)
            error = None if result else "Failed to parse AI response"
        except Exception as e:
            result, error = None, str(e)

        if result is None:
            logger.warning("   AI review failed for %s (%s); using local review", file.path, error)
            fallback = _local_review(file, state.warehouse, state.strict)
            fallback.error = error
            reviews.append(fallback)
        else:
            reviews.append(FileReview(path=file.path, result=result, source="ai"))

    return {"reviews": reviews}


# =============================================================================
# DECISION FUNCTIONS
# =============================================================================
def choose_reviewer(state: ReviewState) -> str:
    """Route to "ai_reviewer", "local_reviewer" or "end" when nothing loaded."""
    # LangGraph may pass state as dict or dataclass
    if isinstance(state, dict):
        files, use_ai = state.get("files", []), state.get("use_ai", False)
    else:
        files, use_ai = state.files, state.use_ai

    if not files:
        return "end"
    return "ai_reviewer" if use_ai else "local_reviewer"


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_review_graph() -> StateGraph:
    graph = StateGraph(ReviewState)

    graph.add_node("load_files", load_files)
    graph.add_node("local_reviewer", local_reviewer)
    graph.add_node("ai_reviewer", ai_reviewer)

    graph.add_edge(START, "load_files")
    graph.add_conditional_edges(
        "load_files",
        choose_reviewer,
        {
            "ai_reviewer": "ai_reviewer",
            "local_reviewer": "local_reviewer",
            "end": END,
        },
    )
    graph.add_edge("local_reviewer", END)
    graph.add_edge("ai_reviewer", END)

    return graph


def create_agent():
    """Create and compile the review agent."""
    return build_review_graph().compile()


def run_review(
    paths: list[str],
    warehouse: str,
    strict: bool = False,
    use_ai: bool = False,
    cwd: str = ".",
) -> tuple[list[FileReview], str | None]:
    """Run the review graph and return (reviews, error)."""
    final_state = create_agent().invoke(
        ReviewState(paths=paths, warehouse=warehouse, strict=strict, use_ai=use_ai, cwd=cwd)
    )
    return final_state.get("reviews", []), final_state.get("error")
