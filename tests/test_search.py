"""Tests for the search orchestrator."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Sequence

import duckdb
import pytest

from reverse_dict.embeddings import EmbedderRegistry
from reverse_dict.errors import EmptyEmbeddingError, NotFound, TransportError
from reverse_dict.models import Model, Vector
from reverse_dict.search import SemanticSearchEngine
from reverse_dict.storage import DuckDBEntryStore, Entry, Feature

from .conftest import FakeEmbedder, vec

QWEN = Model.QWEN3_EMBEDDING_8B_4BIT_DWQ
OPENAI = Model.OPENAI_TEXT_EMBEDDING_3_LARGE


class _NoVectors:
    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        return []


def _seed(store: DuckDBEntryStore) -> None:
    store.add_entry(
        Entry(
            text="sonder",
            definition="the realization that each passerby has a life as vivid as your own",
            features=(
                Feature("strangers have lives too", embeddings={QWEN: vec(0.9, 0.43589)}),
            ),
        )
    )
    store.add_entry(
        Entry(
            text="petrichor",
            definition="the smell of rain on dry earth",
            features=(Feature("smell of rain", embeddings={QWEN: vec(0.1, 0.99499)}),),
        )
    )


@pytest.mark.asyncio
async def test_search_ranks_per_model(store: DuckDBEntryStore) -> None:
    _seed(store)
    registry = EmbedderRegistry({QWEN: FakeEmbedder({"people": [1.0, 0.0]})})
    engine = SemanticSearchEngine(registry, store)

    results = await engine.search("people", limit=5)

    hits = results[QWEN]
    assert [hit.entry.text for hit in hits] == ["sonder", "petrichor"]
    assert hits[0].phrase == "strangers have lives too"
    assert hits[0].distance < hits[1].distance


@pytest.mark.asyncio
async def test_search_keeps_models_without_matches(store: DuckDBEntryStore) -> None:
    _seed(store)
    registry = EmbedderRegistry({QWEN: FakeEmbedder(), OPENAI: FakeEmbedder()})
    engine = SemanticSearchEngine(registry, store)

    results = await engine.search("people", limit=1)

    assert len(results[QWEN]) == 1
    assert results[OPENAI] == []


@pytest.mark.asyncio
async def test_search_not_found_when_nothing_matches(store: DuckDBEntryStore, qwen_registry) -> None:
    engine = SemanticSearchEngine(qwen_registry, store)

    with pytest.raises(NotFound):
        await engine.search("anything")


@pytest.mark.asyncio
async def test_search_rejects_bad_arguments(store: DuckDBEntryStore, qwen_registry) -> None:
    engine = SemanticSearchEngine(qwen_registry, store)

    with pytest.raises(ValueError):
        await engine.search("   ")
    with pytest.raises(ValueError):
        await engine.search("word", limit=0)


@pytest.mark.asyncio
async def test_search_empty_embedding(store: DuckDBEntryStore) -> None:
    _seed(store)
    engine = SemanticSearchEngine(EmbedderRegistry({QWEN: _NoVectors()}), store)

    with pytest.raises(EmptyEmbeddingError):
        await engine.search("people")


@pytest.mark.asyncio
async def test_search_propagates_provider_failure(store: DuckDBEntryStore) -> None:
    _seed(store)
    failing = FakeEmbedder(error=TransportError("down", provider="swama"))
    engine = SemanticSearchEngine(EmbedderRegistry({QWEN: failing}), store)

    with pytest.raises(TransportError):
        await engine.search("people")


@pytest.mark.asyncio
async def test_compare_phrases(store: DuckDBEntryStore) -> None:
    registry = EmbedderRegistry(
        {
            QWEN: FakeEmbedder({"cat": [1.0, 0.0], "dog": [0.0, 1.0]}),
            OPENAI: FakeEmbedder(),
        }
    )
    engine = SemanticSearchEngine(registry, store)

    assert await engine.compare("cat", "dog", QWEN) == pytest.approx(1.0)
    assert await engine.compare("cat", "cat", QWEN) == pytest.approx(0.0, abs=1e-6)
    assert registry[OPENAI].calls == []

    with pytest.raises(ValueError):
        await engine.compare("cat", "dog", Model.GEMINI_EMBEDDING_001)


@pytest.mark.asyncio
async def test_random_entry(store: DuckDBEntryStore, qwen_registry) -> None:
    engine = SemanticSearchEngine(qwen_registry, store)

    with pytest.raises(NotFound):
        await engine.random_entry()

    _seed(store)
    entry = await engine.random_entry()
    assert entry.text in {"sonder", "petrichor"}


@pytest.mark.asyncio
async def test_cancelling_a_running_query_interrupts_it(
    store: DuckDBEntryStore, qwen_registry
) -> None:
    engine = SemanticSearchEngine(qwen_registry, store)
    started = threading.Event()
    stopped = threading.Event()
    raised: list[BaseException] = []

    def slow_query(*, cursor: duckdb.DuckDBPyConnection) -> int:
        started.set()
        try:
            row = cursor.execute(
                "SELECT sum(range % 7) FROM range(100000000000)"
            ).fetchone()
            return int(row[0])
        except BaseException as exc:
            raised.append(exc)
            raise
        finally:
            stopped.set()

    task = asyncio.ensure_future(engine._in_thread(slow_query))
    assert await asyncio.to_thread(started.wait, 5.0)
    await asyncio.sleep(0.05)

    cancelled_at = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert time.monotonic() - cancelled_at < 1.0

    assert await asyncio.to_thread(stopped.wait, 10.0)
    assert raised and isinstance(raised[0], duckdb.InterruptException)
    assert store.count_entries() == 0


@pytest.mark.asyncio
async def test_cancel_after_query_finished_stays_a_cancellation(
    store: DuckDBEntryStore, qwen_registry
) -> None:
    engine = SemanticSearchEngine(qwen_registry, store)

    task = asyncio.ensure_future(engine._in_thread(store.count_entries))
    await asyncio.sleep(0)
    # Block the loop so the worker finishes and closes its cursor before the task resumes.
    time.sleep(0.3)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
