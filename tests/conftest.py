from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pytest

from reverse_dict.embeddings import EmbedderRegistry
from reverse_dict.models import Model, Vector
from reverse_dict.storage import DuckDBEntryStore


class FakeEmbedder:
    """Looks phrases up in a table; unknown phrases get *default*."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0]
        self.delay = delay
        self.error = error
        self.calls: list[list[str]] = []
        self.cancelled = False

    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        self.calls.append(list(phrases))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return [
            np.asarray(self.vectors.get(phrase, self.default), dtype=np.float32)
            for phrase in phrases
        ]


class FakeCompleter:
    def __init__(self, output: str) -> None:
        self.output = output
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_content: str) -> str:
        self.calls.append((system_prompt, user_content))
        return self.output


def vec(*values: float) -> Vector:
    return np.asarray(values, dtype=np.float32)


@pytest.fixture()
def store(tmp_path: Path):
    store = DuckDBEntryStore(str(tmp_path / "words.duckdb"))
    yield store
    store.close()


@pytest.fixture()
def qwen_registry() -> EmbedderRegistry:
    return EmbedderRegistry({Model.QWEN3_EMBEDDING_8B_4BIT_DWQ: FakeEmbedder()})
