"""Shared configuration and utilities for dbtlens."""

import functools
import json
import logging
import os
import time
from pathlib import Path

import yaml
from dotenv import load_dotenv
from google import genai
from google.api_core.exceptions import (
    DeadlineExceeded,
    InternalServerError,
    ServiceUnavailable,
    TooManyRequests,
)
from pydantic import BaseModel, Field, ValidationError

from models import ReviewResult

# ---------------------------------------------------------------------------
# Environment & logging (initialised once on first import)
# ---------------------------------------------------------------------------
load_dotenv()

logging.basicConfig(
    level=os.getenv("DBTLENS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
USE_MOCK: bool = os.getenv("USE_MOCK", "false").lower() == "true"
DEFAULT_MODEL: str = os.getenv("DBTLENS_MODEL", "gemini-2.5-flash-lite")
CONFIG_FILENAME = ".dbtlens.yml"

WAREHOUSES: tuple[str, ...] = (
    "snowflake",
    "bigquery",
    "redshift",
    "databricks",
    "postgres",
    "mysql",
    "duckdb",
)
DEFAULT_WAREHOUSE = "snowflake"

# Gemini errors worth retrying (transient / rate-limit)
_RETRYABLE_GEMINI_ERRORS: tuple[type[Exception], ...] = (
    ServiceUnavailable,
    TooManyRequests,
    DeadlineExceeded,
    InternalServerError,
)


# ---------------------------------------------------------------------------
# Project configuration (.dbtlens.yml)
# ---------------------------------------------------------------------------
class AIConfig(BaseModel):
    enabled: bool = False


class AnalysisConfig(BaseModel):
    ignore_paths: list[str] = Field(
        default_factory=lambda: ["target/**", "dbt_packages/**", "logs/**"]
    )
    ignore_rules: list[str] = Field(default_factory=list)


class ProjectConfig(BaseModel):
    """Settings read from the project's .dbtlens.yml."""

    version: int = 1
    warehouse: str = DEFAULT_WAREHOUSE
    ai: AIConfig = Field(default_factory=AIConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)


def config_path(project_path: str | Path = ".") -> Path:
    return Path(project_path) / CONFIG_FILENAME


def load_project_config(project_path: str | Path = ".") -> ProjectConfig:
    """Load .dbtlens.yml from *project_path*, falling back to defaults.

    A missing file is normal. An unreadable or invalid file is logged and
    ignored so analysis can still run with the defaults.
    """
    path = config_path(project_path)
    if not path.exists():
        return ProjectConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return ProjectConfig.model_validate(data)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read %s: %s. Using defaults.", path, e)
    except ValidationError as e:
        logger.warning("Invalid %s: %s. Using defaults.", path, e)
    return ProjectConfig()


def save_project_config(config: ProjectConfig, project_path: str | Path = ".") -> Path:
    path = config_path(project_path)
    path.write_text(
        yaml.safe_dump(config.model_dump(), sort_keys=False, indent=2),
        encoding="utf-8",
    )
    return path


def ai_available(config: ProjectConfig) -> bool:
    """AI review needs it enabled and a key (or mock mode)."""
    return config.ai.enabled and (USE_MOCK or bool(os.getenv("GEMINI_API_KEY")))


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------
def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable: tuple[type[Exception], ...] = (Exception,),
):
    """Decorator: retry a function with exponential back-off."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    last_exc = exc
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Attempt %d/%d for %s failed: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries,
                            func.__name__,
                            exc,
                            delay,
                        )
                        time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Cached API client
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_gemini_client() -> genai.Client:
    """Return a cached Gemini client (created once per process)."""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ValueError("GEMINI_API_KEY not found. Set it in .env file.")
    return genai.Client(api_key=api_key)


# ---------------------------------------------------------------------------
# Gemini API call (with retry)
# ---------------------------------------------------------------------------
@with_retry(max_retries=3, base_delay=2.0, retryable=_RETRYABLE_GEMINI_ERRORS)
def call_gemini(prompt: str, model: str = DEFAULT_MODEL) -> str:
    """Call Gemini and return the raw response text.

    Retries automatically on transient API errors.
    """
    client = get_gemini_client()
    response = client.models.generate_content(
        model=model,
        contents=prompt,
        config={"response_mime_type": "application/json"},
    )
    return response.text


# ---------------------------------------------------------------------------
# LLM response parsing
# ---------------------------------------------------------------------------
def parse_llm_json(text: str) -> ReviewResult | None:
    """Extract the first JSON object from *text* and validate as ReviewResult."""
    start = text.find("{")
    if start == -1:
        logger.warning("No JSON object found in LLM response")
        return None

    try:
        decoder = json.JSONDecoder()
        obj, _ = decoder.raw_decode(text[start:])
        return ReviewResult.model_validate(obj)
    except json.JSONDecodeError as e:
        logger.warning("JSON decode error: %s", e)
        return None
    except ValidationError as e:
        logger.warning("Pydantic validation error: %s", e)
        return None
