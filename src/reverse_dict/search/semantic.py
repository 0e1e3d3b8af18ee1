"""
Vector-based reverse dictionary search.

Embeds a query with every registered model and ranks stored entries
against each model's vector independently.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, TypeVar

from ..embeddings import EmbedderRegistry
from ..errors import EmptyEmbeddingError, NotFound
from ..models import Model
from ..storage import DuckDBEntryStore, SimilarEntry, StoredEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SemanticSearchEngine:
    """Embed a query and search stored feature embeddings per model."""

    def __init__(self, registry: EmbedderRegistry, store: DuckDBEntryStore) -> None:
        self.registry = registry
        self.store = store

    async def search(
        self, query: str, limit: int = 10
    ) -> dict[Model, list[SimilarEntry]]:
        """
        Return the closest entries to *query*, per model.

        Models without matches map to an empty list; :class:`NotFound` is
        raised only when no model matched anything.
        """
        if not query or not query.strip():
            raise ValueError("Search query must not be empty.")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        embeddings = await self.registry.embed(query)
        models = list(embeddings)
        for model in models:
            if not embeddings[model]:
                raise EmptyEmbeddingError(
                    f"No embedding returned for query {query!r}",
                    provider=model.canonical_name,
                )

        ranked = await asyncio.gather(
            *(
                self._in_thread(
                    self.store.related_entries, model, embeddings[model][0], limit
                )
                for model in models
            )
        )
        results = dict(zip(models, ranked))
        if not any(results.values()):
            raise NotFound(f"No matching definitions found for {query!r}")

        logger.info(
            "Search %r: %s",
            query,
            ", ".join(f"{model.canonical_name}={len(hits)}" for model, hits in results.items()),
        )
        return results

    async def compare(self, first: str, second: str, model: Model) -> float:
        """Embed two phrases with *model* and return their cosine distance."""
        embeddings = await self.registry.only(model).embed(first, second)
        vectors = embeddings[model]
        if len(vectors) != 2:
            raise EmptyEmbeddingError(
                "Expected one embedding per phrase", provider=model.canonical_name
            )
        return await self._in_thread(self.store.compare_embeddings, vectors[0], vectors[1])

    async def random_entry(self) -> StoredEntry:
        entry = await self._in_thread(self.store.random_entry)
        if entry is None:
            raise NotFound("The dictionary is empty.")
        return entry

    async def _in_thread(self, func: Callable[..., T], *args: Any) -> T:
        """Run a store call on a worker thread; cancelling interrupts the query."""
        cursor = self.store.cursor()
        # Guards the cursor: it is interrupted only while the worker still holds it open.
        lock = threading.Lock()
        finished = threading.Event()

        def call() -> T:
            try:
                return func(*args, cursor=cursor)
            finally:
                with lock:
                    finished.set()
                    cursor.close()

        try:
            return await asyncio.to_thread(call)
        except asyncio.CancelledError:
            with lock:
                if not finished.is_set():
                    cursor.interrupt()
            raise
