"""CLI tests for the reverse dictionary commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import reverse_dict.main as main_module
from reverse_dict.embeddings import EmbedderRegistry
from reverse_dict.models import Model
from reverse_dict.storage import DuckDBEntryStore, Entry, Feature

from .conftest import FakeEmbedder, vec

QWEN = Model.QWEN3_EMBEDDING_8B_4BIT_DWQ

runner = CliRunner()


class _FakeUrbanDictionary:
    def __init__(self, *args, **kwargs) -> None:
        self.count = 0

    async def random(self) -> Entry:
        self.count += 1
        return Entry(text=f"word{self.count}", definition=f"meaning number {self.count}")

    async def aclose(self) -> None:
        return None


@pytest.fixture()
def db_path(tmp_path: Path, monkeypatch) -> str:
    registry = EmbedderRegistry(
        {QWEN: FakeEmbedder({"cat": [1.0, 0.0], "dog": [0.0, 1.0]})}
    )
    monkeypatch.setattr(
        main_module, "build_registry", lambda settings, swama=None: registry
    )
    path = str(tmp_path / "words.duckdb")
    monkeypatch.setenv("REVERSE_DICT_DB_PATH", path)
    return path


def _seed(db_path: str) -> None:
    store = DuckDBEntryStore(db_path)
    try:
        store.add_entry(
            Entry(
                text="meow",
                definition="the sound a cat makes",
                features=(Feature("cat", embeddings={QWEN: vec(1.0, 0.0)}),),
            )
        )
    finally:
        store.close()


def test_search_prints_matches(db_path: str) -> None:
    _seed(db_path)

    result = runner.invoke(main_module.app, ["search", "cat", "--limit", "5"])

    assert result.exit_code == 0, result.output
    assert "meow" in result.output


def test_search_empty_database_fails(db_path: str) -> None:
    result = runner.invoke(main_module.app, ["search", "cat"])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_compare_prints_distance(db_path: str) -> None:
    result = runner.invoke(main_module.app, ["compare", "cat", "dog"])

    assert result.exit_code == 0, result.output
    assert "1.000000" in result.output


def test_compare_unknown_model(db_path: str) -> None:
    result = runner.invoke(main_module.app, ["compare", "cat", "dog", "--model", "nope"])

    assert result.exit_code == 1
    assert "Unknown model" in result.output


def test_embed_prints_json(db_path: str) -> None:
    result = runner.invoke(main_module.app, ["embed", "dog"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [0.0, 1.0]


def test_add_words_stores_entries(db_path: str, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "UrbanDictionaryClient", _FakeUrbanDictionary)

    result = runner.invoke(
        main_module.app, ["add-words", "--count", "2", "--rate-limit", "0"]
    )

    assert result.exit_code == 0, result.output
    assert "word1" in result.output
    store = DuckDBEntryStore(db_path)
    try:
        assert store.count_entries() == 2
        assert store.count_embeddings(QWEN) == 2
    finally:
        store.close()


def test_stats_counts_rows(db_path: str) -> None:
    _seed(db_path)

    result = runner.invoke(main_module.app, ["stats", "--db-path", db_path])

    assert result.exit_code == 0, result.output
    assert "entries" in result.output
    assert "features" in result.output
