"""Prompt templates for AI review of dbt models."""

# =============================================================================
# SHARED PREAMBLE
# =============================================================================

_SEVERITY_GUIDE = (
    "Severity definitions (use these exactly):\n"
    "- critical: Will produce wrong data or runaway cost in production"
    " (duplicates, fan-out, Cartesian products, broken incremental logic)\n"
    "- high: Fragile or expensive under normal use\n"
    "- medium: Maintainability concern or edge-case data bug\n"
    "- low: Naming, style or documentation nit\n"
)

_MODEL_CONTEXT = (
    "This is a dbt model file. "
    "Lines are prefixed with their number (e.g. '  42| code'). "
    "Use the EXACT line number in your issues.\n"
    "Respect dbt layering: staging models are 1:1 with sources and only use "
    "source(); intermediate models hold business logic; fct_/dim_ marts are "
    "consumption-ready.\n"
)

_DIFF_CONTEXT = (
    "The unified diff of the uncommitted change is included below the model. "
    "Focus on changed lines. "
    "Do NOT flag pre-existing patterns unless they introduce a new risk.\n"
)

_CONFIDENCE = (
    "Only report issues you are CONFIDENT about. "
    "Do NOT speculate or report theoretical issues "
    "that require unlikely conditions.\n"
)

_FIX_QUALITY = (
    "Fixes must be concrete and actionable. "
    "Include a short SQL or Jinja snippet when possible.\n"
)

_OUTPUT_RULES = (
    "Respond with ONLY valid JSON. No markdown, no explanation, no extra text.\n"
)

_EMPTY_RESULT = (
    'If no issues found, return: {{"score":100,"overall":"approve",'
    '"strengths":[],"issues":[],"summary":"No issues found"}}\n'
)


# =============================================================================
# DBT MODEL REVIEWER
# =============================================================================

MODEL_REVIEW_PROMPT = (
    "You are an expert analytics engineer reviewing dbt code "
    "for a {warehouse} warehouse.\n"
    "Review the model '{filename}'{chunk_note} for correctness, performance "
    "and dbt best practices.\n"
    "\n"
    + _MODEL_CONTEXT
    + "\n"
    + _SEVERITY_GUIDE
    + "\n"
    + _CONFIDENCE
    + _FIX_QUALITY
    + "\n"
    "Focus on:\n"
    "- Join fan-out, missing or wrong join keys\n"
    "- Incremental logic (unique_key, filters, late-arriving data)\n"
    "- Warehouse-specific cost and performance problems\n"
    "- Null handling and type casting\n"
    "- Hardcoded values that should be vars or macros\n"
    "\n"
    "```sql\n"
    "{code}\n"
    "```\n"
    "{diff_section}"
    "\n" + _OUTPUT_RULES + _EMPTY_RESULT + "\n"
    "Required format:\n"
    '{{"score":0-100,"overall":"approve|request_changes|comment",'
    '"strengths":["..."],'
    '"issues":[{{"pattern":"short title","severity":"critical|high|medium|low",'
    '"location":"Line 1","line":1,"fix":"solution","explanation":"why"}}],'
    '"summary":"one line"}}\n'
    "\n"
    "Example:\n"
    '{{"score":75,"overall":"request_changes","strengths":["Uses CTEs"],'
    '"issues":[{{"pattern":"Join fan-out","severity":"critical",'
    '"location":"Line 12","line":12,'
    '"fix":"Join on order_id and line_number",'
    '"explanation":"order_items has many rows per order_id"}}],'
    '"summary":"1 critical data issue"}}'
)

DIFF_SECTION = "\n" + _DIFF_CONTEXT + "```diff\n{diff}\n```\n"
