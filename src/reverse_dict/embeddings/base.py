"""
Embedder protocol and the per-model registry that fans requests out.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from ..errors import ProviderError
from ..models import Model, Vector, vector_from_float64

logger = logging.getLogger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Something that turns phrases into vectors, one per phrase, in order."""

    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        """Embed *phrases*; raise on transport or provider failure."""
        ...


def check_phrases(phrases: Sequence[str]) -> list[str]:
    """Reject an empty request or blank phrases before any I/O happens."""
    if not phrases:
        raise ValueError("At least one phrase is required to embed.")
    checked = list(phrases)
    for phrase in checked:
        if not isinstance(phrase, str) or not phrase.strip():
            raise ValueError("Phrases to embed must be non-empty strings.")
    return checked


def to_vector(values: Sequence[float], *, provider: str) -> Vector:
    """Narrow one provider vector, treating an unusable one as a provider fault."""
    try:
        vector = vector_from_float64(values)
    except (TypeError, ValueError) as exc:
        raise ProviderError(f"Malformed embedding: {exc}", provider=provider) from exc
    # Cosine distance is undefined for these.
    if not np.all(np.isfinite(vector)) or not np.any(vector):
        raise ProviderError(
            "Embedding must be finite and non-zero.", provider=provider
        )
    return vector


def check_vector_count(
    vectors: list[Vector], phrases: Sequence[str], *, provider: str
) -> list[Vector]:
    if not vectors:
        raise ProviderError("No embeddings returned.", provider=provider)
    if len(vectors) != len(phrases):
        raise ProviderError(
            f"Expected {len(phrases)} embeddings, got {len(vectors)}.",
            provider=provider,
        )
    return vectors


class EmbedderRegistry(Mapping[Model, Embedder]):
    """One embedder per model; every request goes to all of them."""

    def __init__(self, embedders: Mapping[Model, Embedder] | None = None) -> None:
        self._embedders: dict[Model, Embedder] = dict(embedders or {})

    def __getitem__(self, model: Model) -> Embedder:
        return self._embedders[model]

    def __iter__(self) -> Iterator[Model]:
        return iter(self._embedders)

    def __len__(self) -> int:
        return len(self._embedders)

    def register(self, model: Model, embedder: Embedder) -> None:
        self._embedders[model] = embedder

    def only(self, *models: Model) -> "EmbedderRegistry":
        """Return a registry restricted to *models*."""
        missing = [model.canonical_name for model in models if model not in self]
        if missing:
            raise ValueError(f"No embedder registered for: {', '.join(missing)}")
        return EmbedderRegistry({model: self._embedders[model] for model in models})

    async def embed(self, *phrases: str) -> dict[Model, list[Vector]]:
        """
        Embed *phrases* with every registered model.

        Models run concurrently. If any embedder fails, the others are
        cancelled and the error propagates: callers never get results for
        fewer models than are registered.
        """
        if not self._embedders:
            raise ValueError("No embedders are registered.")
        check_phrases(phrases)

        tasks = {
            model: asyncio.ensure_future(embedder.embed(list(phrases)))
            for model, embedder in self._embedders.items()
        }
        try:
            await asyncio.gather(*tasks.values())
        except BaseException:
            for task in tasks.values():
                task.cancel()
            # Let the cancelled siblings unwind before propagating.
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        results = {model: task.result() for model, task in tasks.items()}
        logger.debug(
            "Embedded %d phrase(s) with %d model(s)", len(phrases), len(results)
        )
        return results
