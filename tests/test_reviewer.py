from __future__ import annotations

import json

import reviewer
from model_parser import parse_model
from models import Issue, ReviewResult
from reviewer import (
    FileReview,
    ai_review,
    chunk_code,
    combine_results,
    number_lines,
    review_code,
    summarize,
    verdict_for,
)


def _review(content: str, name: str, strict: bool = False, warehouse: str = "snowflake"):
    return review_code(parse_model(content, name), content, warehouse, strict)


def _issue(severity: str) -> Issue:
    return Issue(pattern=f"{severity} thing", severity=severity)


def test_clean_model_is_approved_with_strengths() -> None:
    content = "\n".join(
        [
            "{{ config(materialized='incremental', unique_key='id') }}",
            "-- one row per customer",
            "with customers as (",
            "    select id, coalesce(name, 'n/a') as name from {{ ref('stg_customers') }}",
            ")",
            "select id, name from customers",
        ]
    )
    result = _review(content, "int_customers.sql")
    assert result.score == 100
    assert result.overall == "approve"
    assert result.issues == []
    assert result.strengths == [
        "Uses config block for model configuration",
        "Code includes comments",
        "Handles null values appropriately",
        "Uses incremental materialization for efficiency",
        "Uses CTEs for readable organization",
    ]


def test_incremental_select_star_requests_changes() -> None:
    content = "{{ config(materialized='incremental') }}\nselect * from {{ source('raw','orders') }}"
    result = _review(content, "fct_orders.sql")
    assert result.overall == "request_changes"
    assert result.score == 60
    assert result.score <= 75


def test_high_issue_is_comment_unless_strict() -> None:
    assert _review("select * from x", "fct_x.sql").overall == "comment"
    assert _review("select * from x", "fct_x.sql").score == 85

    strict = _review("select * from x", "fct_x.sql", strict=True)
    assert strict.overall == "request_changes"
    assert [i.pattern for i in strict.issues] == [
        "SELECT * in production",
        "Missing model description",
        "Inconsistent naming convention",
    ]
    assert strict.score == 75


def test_strict_naming_uses_three_letter_type_prefix() -> None:
    result = _review("-- description: x\nselect id from t", "fct_orders.sql", strict=True)
    naming = [i for i in result.issues if i.pattern == "Inconsistent naming convention"]
    assert len(naming) == 1
    assert naming[0].fix == "Rename to fac_fct_orders"

    ok = _review("-- description: x\nselect id from t", "int_orders.sql", strict=True)
    assert ok.issues == []
    assert ok.overall == "approve"


def test_strict_skips_naming_for_unknown_type() -> None:
    result = _review("-- description\nselect id from t", "orders.sql", strict=True)
    assert result.issues == []


def test_only_low_and_medium_issues_comment() -> None:
    result = _review("select id from t where d = '2024-01-01'", "fct_x.sql")
    assert result.overall == "comment"
    assert result.score == 90


def test_score_clamped_at_zero(monkeypatch) -> None:
    monkeypatch.setattr(
        reviewer, "detect_anti_patterns", lambda *args: [_issue("critical")] * 5
    )
    result = _review("select 1", "fct_x.sql")
    assert result.score == 0
    assert result.overall == "request_changes"


def test_real_rules_clamp_at_zero() -> None:
    content = "\n".join(
        [
            "{{ config(materialized='incremental') }}",
            "with x as (select * from {{ source('raw','orders') }})",
            "select distinct x.id from x join y on upper(x.k) = y.k",
            "cross join z",
            "where x.d > '2024-01-01'",
            "{% if is_incremental() %} and x.u > 1 {% endif %}",
        ]
    )
    result = _review(content, "fct_x.sql")
    assert len(result.issues) == 7
    assert result.score == 0


def test_extra_critical_costs_at_least_25(monkeypatch) -> None:
    base = [_issue("high"), _issue("low")]
    monkeypatch.setattr(reviewer, "detect_anti_patterns", lambda *args: list(base))
    score_a = _review("select 1", "fct_x.sql").score

    monkeypatch.setattr(
        reviewer, "detect_anti_patterns", lambda *args: base + [_issue("critical")]
    )
    score_b = _review("select 1", "fct_x.sql").score
    assert score_b <= score_a - 25


def test_verdict_for() -> None:
    assert verdict_for([]) == "approve"
    assert verdict_for([_issue("low")]) == "comment"
    assert verdict_for([_issue("high")]) == "comment"
    assert verdict_for([_issue("high")], strict=True) == "request_changes"
    assert verdict_for([_issue("low"), _issue("critical")]) == "request_changes"


def test_review_is_json_serializable() -> None:
    result = _review("select * from x cross join y", "fct_x.sql")
    data = json.loads(result.model_dump_json())
    assert data["issues"][0]["severity"] == "high"
    assert data["overall"] == "request_changes"


def test_number_lines() -> None:
    assert number_lines("select 1\nfrom t") == "   1| select 1\n   2| from t"


def test_chunk_code_small_and_large() -> None:
    assert chunk_code("select 1") == ["select 1"]

    code = "\n".join(f"line {i}" for i in range(450))
    chunks = chunk_code(code, max_lines=200)
    assert len(chunks) == 3
    assert chunks[0].split("\n")[0] == "line 0"
    assert chunks[2].split("\n")[-1] == "line 449"


def test_combine_results_keeps_worst() -> None:
    combined = combine_results(
        [
            ReviewResult(score=90, overall="comment", issues=[_issue("medium")], summary="a"),
            ReviewResult(score=70, overall="request_changes", issues=[_issue("critical")]),
        ]
    )
    assert combined.score == 70
    assert combined.overall == "request_changes"
    assert len(combined.issues) == 2


def test_ai_review_mock_mode(monkeypatch) -> None:
    monkeypatch.setattr(reviewer, "USE_MOCK", True)
    result = ai_review("select 1", "fct_x.sql", "snowflake")
    assert result is not None
    assert result.score == 85
    assert result.issues[0].pattern == "Unqualified column in join"


def test_ai_review_builds_prompt(monkeypatch) -> None:
    prompts: list[str] = []

    def fake_call(prompt: str, model: str) -> str:
        prompts.append(prompt)
        return '{"score": 95, "overall": "approve", "summary": "fine"}'

    monkeypatch.setattr(reviewer, "USE_MOCK", False)
    monkeypatch.setattr(reviewer, "call_gemini", fake_call)

    result = ai_review("select 1\nfrom t", "fct_x.sql", "bigquery", diff="+select 1")
    assert result is not None and result.score == 95
    assert len(prompts) == 1
    assert "fct_x.sql" in prompts[0]
    assert "bigquery" in prompts[0]
    assert "   2| from t" in prompts[0]
    assert "+select 1" in prompts[0]


def test_ai_review_bad_json_returns_none(monkeypatch) -> None:
    monkeypatch.setattr(reviewer, "USE_MOCK", False)
    monkeypatch.setattr(reviewer, "call_gemini", lambda prompt, model: "sorry, no")
    assert ai_review("select 1", "fct_x.sql", "snowflake") is None


def test_ai_review_chunks_large_files(monkeypatch) -> None:
    calls: list[str] = []

    def fake_call(prompt: str, model: str) -> str:
        calls.append(prompt)
        return '{"score": 80, "overall": "comment"}'

    monkeypatch.setattr(reviewer, "USE_MOCK", False)
    monkeypatch.setattr(reviewer, "call_gemini", fake_call)

    content = "\n".join(f"select {i}" for i in range(450))
    result = ai_review(content, "fct_big.sql", "snowflake")
    assert len(calls) == 3
    assert "chunk 2/3" in calls[1]
    assert result is not None and result.score == 80


def test_summarize() -> None:
    reviews = [
        FileReview(path="a.sql", result=ReviewResult(score=100)),
        FileReview(
            path="b.sql",
            result=ReviewResult(score=75, overall="request_changes", issues=[_issue("critical")]),
        ),
        FileReview(path="c.sql", error="boom"),
    ]
    summary = summarize(reviews)
    assert summary.files_reviewed == 2
    assert summary.average_score == 88
    assert summary.total_issues == 1
    assert summary.has_blockers is True


def test_summarize_rounds_half_up() -> None:
    reviews = [
        FileReview(path="a.sql", result=ReviewResult(score=100)),
        FileReview(path="b.sql", result=ReviewResult(score=73, overall="comment")),
    ]
    assert summarize(reviews).average_score == 87
