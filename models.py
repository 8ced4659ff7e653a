"""Data models for parsed dbt models, detected issues and review results."""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

Severity = Literal["critical", "high", "medium", "low"]
ModelType = Literal[
    "staging", "intermediate", "fact", "dimension", "snapshot", "unknown"
]
Verdict = Literal["approve", "request_changes", "comment"]

SEVERITY_ORDER: dict[str, int] = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
}


class ParsedModel(BaseModel):
    """Structured snapshot of one dbt SQL model file."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: ModelType = "unknown"
    materialization: str | None = None
    config: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    refs: tuple[str, ...] = ()
    sources: tuple[tuple[str, str], ...] = Field(
        default=(), description="(schema, table) pairs"
    )
    columns: tuple[str, ...] = ()
    cte_count: int = 0
    line_count: int = 0

    @field_validator("config")
    @classmethod
    def _freeze_config(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("config")
    def _dump_config(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)


class Issue(BaseModel):
    """A single detected anti-pattern occurrence."""

    pattern: str = Field(description="Rule identifier, e.g. 'CROSS JOIN detected'")
    severity: Severity = Field(
        default="medium", description="critical, high, medium, low"
    )
    location: str = Field(default="", description="Line number or named context")
    fix: str = Field(default="", description="One-line remediation")
    explanation: str = Field(default="", description="Why this is a problem")
    line: int | None = Field(default=None, description="1-based line number")


class ReviewResult(BaseModel):
    """Score, verdict, strengths and issues for one reviewed file."""

    score: int = Field(default=100, ge=0, le=100)
    overall: Verdict = "approve"
    strengths: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    summary: str = Field(default="", description="Brief overall summary")
