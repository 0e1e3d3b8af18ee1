"""
Ingest pipeline: source a definition, split it, embed it, store it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Protocol

from ..embeddings import EmbedderRegistry
from ..storage import Entry, EntryStore, Feature
from .rephrase import Rephraser
from .text import build_features

logger = logging.getLogger(__name__)


class DefinitionSource(Protocol):
    async def random(self) -> Entry: ...


@dataclass(frozen=True)
class IngestResult:
    """Summary output for one ingested entry."""

    entry_id: int
    text: str
    features_written: int
    embeddings_written: int


class IngestPipeline:
    """Embed entries with every registered model and add them to the store."""

    def __init__(
        self,
        store: EntryStore,
        registry: EmbedderRegistry,
        source: DefinitionSource | None = None,
        rephraser: Rephraser | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.source = source
        self.rephraser = rephraser

    async def ingest(self, entry: Entry) -> IngestResult:
        features = list(entry.features)
        if not features:
            rephrased: list[str] = []
            if self.rephraser is not None:
                rephrased = await self.rephraser.rephrase(entry)
            features = build_features(entry.definition, rephrased)
        if not features:
            raise ValueError(f"Entry {entry.text!r} has nothing to embed.")

        phrases = [feature.phrase for feature in features]
        embeddings = await self.registry.embed(*phrases)
        embedded = [
            Feature(
                phrase=feature.phrase,
                autogenerated=feature.autogenerated,
                embeddings={
                    **feature.embeddings,
                    **{model: vectors[i] for model, vectors in embeddings.items()},
                },
            )
            for i, feature in enumerate(features)
        ]

        entry_id = await asyncio.to_thread(
            self.store.add_entry, replace(entry, features=tuple(embedded))
        )
        embeddings_written = sum(len(feature.embeddings) for feature in embedded)
        logger.info(
            "Ingested %r as entry %d (%d feature(s), %d embedding(s))",
            entry.text,
            entry_id,
            len(embedded),
            embeddings_written,
        )
        return IngestResult(
            entry_id=entry_id,
            text=entry.text,
            features_written=len(embedded),
            embeddings_written=embeddings_written,
        )

    async def ingest_random(self) -> IngestResult:
        if self.source is None:
            raise ValueError("No definition source configured.")
        entry = await self.source.random()
        return await self.ingest(entry)

    async def run(self, count: int, *, interval: float = 1.0) -> list[IngestResult]:
        """Ingest *count* random definitions, starting one every *interval* seconds."""
        loop = asyncio.get_running_loop()
        results: list[IngestResult] = []
        next_start = loop.time()
        for _ in range(count):
            delay = next_start - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            next_start = loop.time() + interval
            results.append(await self.ingest_random())
        return results
