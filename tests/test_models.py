"""Tests for model identifiers, vectors, and configuration."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from reverse_dict.config import load_settings, parse_models, resolve_db_path
from reverse_dict.errors import UnknownModel
from reverse_dict.models import (
    DEFAULT_MODELS,
    EmbeddingResponse,
    Model,
    vector_from_float64,
)


def test_model_numbering_is_stable() -> None:
    assert int(Model.QWEN3_EMBEDDING_8B_4BIT_DWQ) == 1
    assert int(Model.APPLE_NL_CONTEXTUAL_EMBEDDING) == 2
    assert int(Model.OPENAI_TEXT_EMBEDDING_3_LARGE) == 3
    assert int(Model.GEMINI_EMBEDDING_001) == 4


def test_canonical_names_round_trip() -> None:
    for model in Model:
        assert Model.parse(model.canonical_name) is model
        assert str(model) == model.canonical_name


def test_parse_unknown_model() -> None:
    with pytest.raises(UnknownModel):
        Model.parse("nomic-embed-text")
    # Callers that only know about ValueError still catch it.
    with pytest.raises(ValueError):
        Model.parse("")


def test_unknown_model_number() -> None:
    with pytest.raises(ValueError):
        Model(99)


def test_vector_from_float64_narrows() -> None:
    vector = vector_from_float64([0.1, 0.2, 0.3])
    assert vector.dtype == np.float32
    assert vector.shape == (3,)
    assert vector[1] == pytest.approx(0.2)


def test_vector_from_float64_rejects_empty() -> None:
    with pytest.raises(ValueError):
        vector_from_float64([])


def test_embedding_response_defaults() -> None:
    response = EmbeddingResponse.model_validate(
        {"data": [{"embedding": [1.0, 2.0], "index": 0}]}
    )
    assert response.data[0].embedding == [1.0, 2.0]
    assert response.usage.total_tokens == 0


def test_parse_models() -> None:
    assert parse_models(None) == DEFAULT_MODELS
    assert parse_models("  ") == DEFAULT_MODELS
    assert parse_models(
        "google/gemini-embedding-001, google/gemini-embedding-001,"
        "mlx-community/Qwen3-Embedding-8B-4bit-DWQ"
    ) == (Model.GEMINI_EMBEDDING_001, Model.QWEN3_EMBEDDING_8B_4BIT_DWQ)
    with pytest.raises(UnknownModel):
        parse_models("bogus")


def test_resolve_db_path_precedence(tmp_path: Path, monkeypatch) -> None:
    env_path = tmp_path / "env" / "words.duckdb"
    monkeypatch.setenv("REVERSE_DICT_DB_PATH", str(env_path))
    assert resolve_db_path() == str(env_path.resolve())
    assert env_path.parent.is_dir()

    override = tmp_path / "cli.duckdb"
    assert resolve_db_path(str(override)) == str(override.resolve())


def test_load_settings_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("REVERSE_DICT_SWAMA_URL", "http://swama.test:1234")
    monkeypatch.setenv("REVERSE_DICT_MODELS", "openai/text-embedding-3-large")
    monkeypatch.setenv("REVERSE_DICT_RATE_LIMIT", "4")
    monkeypatch.setenv("REVERSE_DICT_RATE_BURST", "2")

    settings = load_settings(db_path=str(tmp_path / "words.duckdb"))

    assert settings.swama_url == "http://swama.test:1234"
    assert settings.models == (Model.OPENAI_TEXT_EMBEDDING_3_LARGE,)
    assert settings.rate_limit == 4.0
    assert settings.rate_burst == 2
    assert settings.db_path.endswith("words.duckdb")
