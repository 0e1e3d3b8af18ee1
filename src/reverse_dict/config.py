"""
Configuration helpers for storage paths and embedding providers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .models import DEFAULT_MODELS, Model


DEFAULT_DB_PATH = "~/.reverse_dict/words.duckdb"
DEFAULT_SWAMA_URL = "http://localhost:28100"
DEFAULT_HTTP_TIMEOUT = 300.0
DEFAULT_RATE_LIMIT = 2.0
DEFAULT_RATE_BURST = 5

ENV_DB_PATH = "REVERSE_DICT_DB_PATH"
ENV_SWAMA_URL = "REVERSE_DICT_SWAMA_URL"
ENV_MODELS = "REVERSE_DICT_MODELS"
ENV_HTTP_TIMEOUT = "REVERSE_DICT_HTTP_TIMEOUT"
ENV_OPENAI_MODEL = "REVERSE_DICT_OPENAI_MODEL"
ENV_GEMINI_MODEL = "REVERSE_DICT_GEMINI_MODEL"
ENV_RATE_LIMIT = "REVERSE_DICT_RATE_LIMIT"
ENV_RATE_BURST = "REVERSE_DICT_RATE_BURST"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) REVERSE_DICT_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def parse_models(raw: str | None) -> tuple[Model, ...]:
    """Parse a comma-separated list of canonical model names."""
    if raw is None or not raw.strip():
        return DEFAULT_MODELS
    models: list[Model] = []
    for name in raw.split(","):
        if not name.strip():
            continue
        model = Model.parse(name)
        if model not in models:
            models.append(model)
    return tuple(models) if models else DEFAULT_MODELS


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration."""

    db_path: str
    swama_url: str = DEFAULT_SWAMA_URL
    models: tuple[Model, ...] = DEFAULT_MODELS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    openai_model: str = "text-embedding-3-large"
    gemini_model: str = "gemini-embedding-001"
    rate_limit: float = DEFAULT_RATE_LIMIT
    rate_burst: int = DEFAULT_RATE_BURST


def load_settings(*, db_path: str | None = None) -> Settings:
    """Build :class:`Settings` from the environment."""
    return Settings(
        db_path=resolve_db_path(db_path),
        swama_url=os.getenv(ENV_SWAMA_URL, DEFAULT_SWAMA_URL),
        models=parse_models(os.getenv(ENV_MODELS)),
        http_timeout=float(os.getenv(ENV_HTTP_TIMEOUT, str(DEFAULT_HTTP_TIMEOUT))),
        openai_model=os.getenv(ENV_OPENAI_MODEL, "text-embedding-3-large"),
        gemini_model=os.getenv(ENV_GEMINI_MODEL, "gemini-embedding-001"),
        rate_limit=float(os.getenv(ENV_RATE_LIMIT, str(DEFAULT_RATE_LIMIT))),
        rate_burst=int(os.getenv(ENV_RATE_BURST, str(DEFAULT_RATE_BURST))),
    )
