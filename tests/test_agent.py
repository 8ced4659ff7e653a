from __future__ import annotations

import pytest

import agent
from agent import choose_reviewer, run_review
from models import ReviewResult


@pytest.fixture
def files(tmp_path):
    (tmp_path / "fct_orders.sql").write_text(
        "{{ config(materialized='incremental') }}\nselect * from {{ source('raw','orders') }}",
        encoding="utf-8",
    )
    (tmp_path / "int_clean.sql").write_text("select id from {{ ref('stg_x') }}", encoding="utf-8")
    return tmp_path


def test_local_review(files) -> None:
    reviews, error = run_review(
        ["fct_orders.sql", "int_clean.sql", "missing.sql"], "snowflake", cwd=str(files)
    )
    assert error is None
    assert [r.path for r in reviews] == ["fct_orders.sql", "int_clean.sql"]
    assert all(r.source == "local" for r in reviews)
    assert reviews[0].result.overall == "request_changes"
    assert reviews[1].result.overall == "approve"


def test_no_files_is_an_error(tmp_path) -> None:
    reviews, error = run_review(["nope.sql"], "snowflake", cwd=str(tmp_path))
    assert reviews == []
    assert error == "No SQL files to review"


def test_ai_review_path(files, monkeypatch) -> None:
    monkeypatch.setattr(agent, "diff_for", lambda path, cwd: "")
    monkeypatch.setattr(
        agent,
        "ai_review",
        lambda content, path, warehouse, diff: ReviewResult(score=90, overall="comment"),
    )
    reviews, error = run_review(["int_clean.sql"], "snowflake", use_ai=True, cwd=str(files))
    assert error is None
    assert reviews[0].source == "ai"
    assert reviews[0].result.score == 90


def test_ai_failure_falls_back_to_local(files, monkeypatch) -> None:
    def broken(content, path, warehouse, diff):
        raise ValueError("GEMINI_API_KEY not found. Set it in .env file.")

    monkeypatch.setattr(agent, "diff_for", lambda path, cwd: "")
    monkeypatch.setattr(agent, "ai_review", broken)
    reviews, _ = run_review(["fct_orders.sql"], "snowflake", use_ai=True, cwd=str(files))
    assert reviews[0].source == "local"
    assert reviews[0].error.startswith("GEMINI_API_KEY")
    assert reviews[0].result.score == 60


def test_choose_reviewer_accepts_dict_state() -> None:
    assert choose_reviewer({"files": [], "use_ai": True}) == "end"
    assert choose_reviewer({"files": ["x"], "use_ai": True}) == "ai_reviewer"
    assert choose_reviewer({"files": ["x"], "use_ai": False}) == "local_reviewer"


def test_undecodable_file_is_skipped(files) -> None:
    (files / "stg_latin.sql").write_bytes("select 'café' from t".encode("latin-1"))
    reviews, error = run_review(["stg_latin.sql", "int_clean.sql"], "snowflake", cwd=str(files))
    assert error is None
    assert [r.path for r in reviews] == ["int_clean.sql"]
