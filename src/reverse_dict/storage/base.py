"""
Storage interfaces and data models for dictionary persistence.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..errors import StoreError
from ..models import Model, Vector


@dataclass(frozen=True)
class Feature:
    """A sub-phrase of an entry, embedded independently per model."""

    phrase: str
    autogenerated: bool = False
    embeddings: Mapping[Model, Vector] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Entry:
    """A word or phrase with its definition, as submitted for ingest."""

    text: str
    definition: str
    example: str = ""
    author: str | None = None
    features: tuple[Feature, ...] = ()


@dataclass(frozen=True)
class StoredEntry:
    """A value copy of a persisted entry."""

    id: int
    text: str
    definition: str
    example: str
    author: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "definition": self.definition,
            "example": self.example,
            "author": self.author,
        }


@dataclass(frozen=True)
class SimilarEntry:
    """An entry ranked by the distance of its closest feature."""

    entry: StoredEntry
    phrase: str
    distance: float


class EntryStore(Protocol):
    """Persistence operations used by ingest and search."""

    def initialize(self) -> None:
        """Initialize required tables/sequences."""

    def add_entry(self, entry: Entry) -> int:
        """Atomically upsert an entry, its features, and their embeddings."""

    def related_entries(
        self, model: Model, vector: Vector, limit: int
    ) -> list[SimilarEntry]:
        """Rank entries by their best feature's cosine distance to *vector*."""

    def compare_embeddings(self, first: Vector, second: Vector) -> float:
        """Return the cosine distance between two vectors."""

    def random_entry(self) -> StoredEntry | None:
        """Return a uniformly random entry, or None if the store is empty."""

    def iter_entries(self, *, batch_size: int = 256) -> Iterator[StoredEntry | StoreError]:
        """Lazily yield every entry by id; a read failure is yielded last."""

    def get_features(self, entry_id: int) -> list[Feature]:
        """Return an entry's features with every stored per-model vector."""

    def count_entries(self) -> int:
        """Count stored entries."""

    def close(self) -> None:
        """Release the underlying connection."""
