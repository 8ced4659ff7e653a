"""Parser for dbt SQL model files.

Pattern-based extraction of the dbt templating constructs (``config()``,
``ref()``, ``source()``) plus a few SQL shape heuristics. This is not a SQL
grammar: nested parentheses inside a config block can cut the capture short,
and columns come from the first ``select ... from`` span in the file, which is
not always the final output select.
"""

import re
from pathlib import PurePath

from models import ModelType, ParsedModel

# Checked in order, first match wins
_TYPE_PREFIXES: tuple[tuple[str, ModelType], ...] = (
    ("stg_", "staging"),
    ("int_", "intermediate"),
    ("fct_", "fact"),
    ("dim_", "dimension"),
)

_CONFIG_BLOCK = re.compile(r"\{\{\s*config\s*\(([\s\S]*?)\)\s*\}\}")
_MATERIALIZED = re.compile(r"materialized\s*=\s*['\"](\w+)['\"]")
_CONFIG_PAIR = re.compile(r"(\w+)\s*=\s*(['\"]([^'\"]+)['\"]|(\w+))")
_REF = re.compile(r"\{\{\s*ref\(['\"]([^'\"]+)['\"]\)\s*\}\}")
_SOURCE = re.compile(
    r"\{\{\s*source\(['\"]([^'\"]+)['\"],\s*['\"]([^'\"]+)['\"]\)\s*\}\}"
)
_WITH = re.compile(r"\bwith\b", re.IGNORECASE)
_CTE_CONTINUATION = re.compile(r"\),\s*\w+\s+as\s*\(", re.IGNORECASE)
_SELECT_CLAUSE = re.compile(r"select\s+([\s\S]+?)\s+from", re.IGNORECASE)
# Commas outside a (single level of) parentheses
_TOP_LEVEL_COMMA = re.compile(r",(?![^(]*\))")
_TRAILING_ALIAS = re.compile(r"(?:as\s+)?(\w+)\s*$", re.IGNORECASE)


def model_name(file_name: str) -> str:
    """Return the model name for *file_name*: no directory, no extension."""
    return PurePath(file_name).stem


def infer_model_type(file_name: str) -> ModelType:
    """Classify a model from its file name prefix, or a snapshot path."""
    name = model_name(file_name).lower()
    for prefix, model_type in _TYPE_PREFIXES:
        if name.startswith(prefix):
            return model_type
    if "snapshot" in file_name.lower():
        return "snapshot"
    return "unknown"


def extract_config(content: str) -> tuple[str | None, dict[str, str]]:
    """
    Pull the materialization and key/value pairs out of the first config block.

    Returns:
        Tuple of (materialization or None, config mapping)
    """
    match = _CONFIG_BLOCK.search(content)
    if not match:
        return None, {}

    block = match.group(1)
    materialized = _MATERIALIZED.search(block)

    config: dict[str, str] = {}
    for pair in _CONFIG_PAIR.finditer(block):
        config[pair.group(1)] = pair.group(3) or pair.group(4)

    return (materialized.group(1) if materialized else None), config


def extract_refs(content: str) -> list[str]:
    return [m.group(1) for m in _REF.finditer(content)]


def extract_sources(content: str) -> list[tuple[str, str]]:
    return [(m.group(1), m.group(2)) for m in _SOURCE.finditer(content)]


def count_ctes(content: str) -> int:
    """Upper-bound estimate of the number of CTEs in *content*."""
    return len(_WITH.findall(content)) + len(_CTE_CONTINUATION.findall(content))


def extract_columns(content: str) -> list[str]:
    """
    Column names of the first ``select ... from`` span.

    A wildcard anywhere in the clause means the columns are unknown, and an
    empty list is returned.
    """
    match = _SELECT_CLAUSE.search(content)
    if not match or "*" in match.group(1):
        return []

    columns: list[str] = []
    for fragment in _TOP_LEVEL_COMMA.split(match.group(1)):
        alias = _TRAILING_ALIAS.search(fragment.strip())
        if alias:
            columns.append(alias.group(1))
    return columns


def parse_model(content: str, file_name: str) -> ParsedModel:
    """
    Parse the text of a dbt model into a ParsedModel.

    Never raises: constructs that are not found leave their fields empty.

    Args:
        content: Raw SQL model text
        file_name: File name or path of the model (e.g. "models/stg_orders.sql")

    Returns:
        ParsedModel for the file
    """
    materialization, config = extract_config(content)

    return ParsedModel(
        name=model_name(file_name),
        type=infer_model_type(file_name),
        materialization=materialization,
        config=config,
        refs=tuple(extract_refs(content)),
        sources=tuple(extract_sources(content)),
        columns=tuple(extract_columns(content)),
        cte_count=count_ctes(content),
        line_count=len(content.split("\n")),
    )
