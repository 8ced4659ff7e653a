"""Local anti-pattern detection for dbt models.

Rules are plain data: a trigger predicate, an optional line locator and the
messages to report. ``detect_anti_patterns`` walks ``RULES`` in order and
emits at most one Issue per rule.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from models import Issue, ParsedModel, Severity

_HARDCODED_DATE = re.compile(r"'(20\d{2}-\d{2}-\d{2})'")
_FUNCTION_ON_FILTER = (
    re.compile(r"\bwhere\s+(\w+)\(.*?\)\s*="),
    re.compile(r"\bon\s+(\w+)\(.*?\)\s*="),
)
_INCREMENTAL_UPPER_BOUNDS = ("< current", "< getdate", "< now()", "< sysdate")


@dataclass(frozen=True)
class RuleContext:
    """Inputs shared by every rule for one model."""

    content: str
    lower: str
    lines: list[str]
    model: ParsedModel

    @classmethod
    def build(cls, content: str, model: ParsedModel) -> "RuleContext":
        return cls(
            content=content,
            lower=content.lower(),
            lines=content.split("\n"),
            model=model,
        )

    def find_line(self, needle: str) -> int | None:
        """1-based number of the first line containing *needle*, ignoring case."""
        needle = needle.lower()
        for number, line in enumerate(self.lines, 1):
            if needle in line.lower():
                return number
        return None


# A locator returns the text searched for line-by-line, or None for rules
# that report a named context instead of a line.
Locator = Callable[[RuleContext], str | None]


@dataclass(frozen=True)
class Rule:
    """One anti-pattern check."""

    pattern: str
    severity: Severity
    fix: str
    explanation: str
    applies: Callable[[RuleContext], bool]
    location: str | Callable[[RuleContext], str]
    locate: Locator | None = None
    show_match: bool = False  # append the located text to "Line N"
    warehouse: str | None = None

    def evaluate(self, ctx: RuleContext, warehouse: str) -> Issue | None:
        if self.warehouse is not None and self.warehouse != warehouse:
            return None
        if not self.applies(ctx):
            return None

        location = self.location if isinstance(self.location, str) else self.location(ctx)
        line = None
        needle = self.locate(ctx) if self.locate is not None else None
        if needle is not None:
            line = ctx.find_line(needle)
            if line is not None:
                location = f"Line {line}: {needle}" if self.show_match else f"Line {line}"

        return Issue(
            pattern=self.pattern,
            severity=self.severity,
            location=location,
            fix=self.fix,
            explanation=self.explanation,
            line=line,
        )


def _contains(*needles: str) -> Callable[[RuleContext], bool]:
    return lambda ctx: all(n in ctx.lower for n in needles)


def _literal(needle: str) -> Locator:
    return lambda ctx: needle


def _hardcoded_date(ctx: RuleContext) -> str | None:
    match = _HARDCODED_DATE.search(ctx.content)
    return match.group(0) if match else None


def _is_staging(ctx: RuleContext) -> bool:
    return ctx.model.type == "staging"


RULES: tuple[Rule, ...] = (
    Rule(
        pattern="SELECT * in production",
        severity="high",
        fix="List specific columns needed",
        explanation=(
            "SELECT * is fragile (breaks when source adds columns), expensive "
            "(transfers unnecessary data), and hides dependencies."
        ),
        applies=lambda ctx: "select *" in ctx.lower
        and "select * from (" not in ctx.lower,
        location="SELECT clause",
        locate=_literal("select *"),
    ),
    Rule(
        pattern="Join in staging model",
        severity="medium",
        fix="Move joins to intermediate or mart layer",
        explanation=(
            "Staging should be 1:1 with source. Joins belong in intermediate "
            "models where business logic lives."
        ),
        applies=lambda ctx: _is_staging(ctx)
        and " join " in ctx.lower
        and "deduplication" not in ctx.lower,
        location="JOIN clause",
        locate=_literal(" join "),
    ),
    Rule(
        pattern="ref() in staging model",
        severity="high",
        fix="Use source() instead of ref() in staging models",
        explanation="Staging models should only reference sources, not other models.",
        applies=lambda ctx: _is_staging(ctx) and bool(ctx.model.refs),
        location="Model references",
    ),
    Rule(
        pattern="Incremental without unique_key",
        severity="critical",
        fix="Add unique_key to config for merge/delete+insert strategies",
        explanation=(
            "Without unique_key, merge strategy won't work correctly and "
            "you'll accumulate duplicates."
        ),
        applies=lambda ctx: (
            "is_incremental()" in ctx.lower or ctx.model.materialization == "incremental"
        )
        and not ctx.model.config.get("unique_key"),
        location="Config block",
    ),
    Rule(
        pattern="Unbounded incremental filter",
        severity="medium",
        fix="Add upper bound: AND updated_at < current_timestamp()",
        explanation="Future-dated rows will be processed repeatedly without an upper bound.",
        applies=lambda ctx: "is_incremental()" in ctx.lower
        and not any(bound in ctx.lower for bound in _INCREMENTAL_UPPER_BOUNDS),
        location="Incremental WHERE clause",
    ),
    Rule(
        pattern="Hardcoded date literal",
        severity="medium",
        fix="Use var() or dbt_date macros",
        explanation="Hardcoded dates require manual updates and differ between environments.",
        applies=lambda ctx: _HARDCODED_DATE.search(ctx.content) is not None,
        location=lambda ctx: f"Date literal {_hardcoded_date(ctx)}",
        locate=_hardcoded_date,
        show_match=True,
    ),
    Rule(
        pattern="DISTINCT after JOIN (possible fan-out fix)",
        severity="high",
        fix="Fix the join condition or deduplicate upstream",
        explanation=(
            "DISTINCT after JOIN often masks a fan-out problem. "
            "Fix the root cause instead."
        ),
        applies=_contains("select distinct", " join "),
        location="SELECT DISTINCT with JOIN",
    ),
    Rule(
        pattern="CROSS JOIN detected",
        severity="critical",
        fix="Ensure CROSS JOIN is intentional; consider alternatives",
        explanation=(
            "CROSS JOINs create Cartesian products. Even small tables "
            "(1K x 1K = 1M rows) can explode."
        ),
        applies=_contains("cross join"),
        location="CROSS JOIN",
        locate=_literal("cross join"),
    ),
    Rule(
        pattern="Function on filter/join column",
        severity="high",
        fix="Move transformation to other side of comparison or materialize",
        explanation="Functions on filter columns prevent partition pruning and index usage.",
        applies=lambda ctx: any(p.search(ctx.lower) for p in _FUNCTION_ON_FILTER),
        location="WHERE/ON clause",
    ),
    Rule(
        pattern="Non-deterministic function in view",
        severity="medium",
        fix="Materialize as table or use consistent key generation",
        explanation="UUID_STRING() in views generates new values on each query.",
        applies=lambda ctx: "uuid_string()" in ctx.lower
        and ctx.model.materialization == "view",
        location="UUID generation",
        warehouse="snowflake",
    ),
    Rule(
        pattern="LIMIT without ORDER BY",
        severity="medium",
        fix="Add ORDER BY for deterministic results",
        explanation="BigQuery doesn't guarantee row order without ORDER BY.",
        applies=lambda ctx: "limit" in ctx.lower and "order by" not in ctx.lower,
        location="LIMIT clause",
        warehouse="bigquery",
    ),
    Rule(
        pattern="High CTE count",
        severity="low",
        fix="Consider breaking into separate intermediate models",
        explanation="Many CTEs can be hard to maintain and debug. Consider refactoring.",
        applies=lambda ctx: ctx.model.cte_count > 7,
        location=lambda ctx: f"{ctx.model.cte_count} CTEs detected",
    ),
)


def detect_anti_patterns(
    content: str,
    model: ParsedModel,
    warehouse: str,
    rules: tuple[Rule, ...] = RULES,
) -> list[Issue]:
    """
    Run every rule against a model and return the issues in rule order.

    Args:
        content: Raw SQL model text
        model: ParsedModel built from the same text
        warehouse: Target warehouse; only "snowflake" and "bigquery" add rules
        rules: Rule table to evaluate

    Returns:
        List of Issue records, in rule-evaluation order
    """
    ctx = RuleContext.build(content, model)
    issues: list[Issue] = []
    for rule in rules:
        issue = rule.evaluate(ctx, warehouse.lower())
        if issue is not None:
            issues.append(issue)
    return issues
