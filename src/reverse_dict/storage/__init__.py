"""Storage backends for reverse dictionary entries."""

from .base import Entry, EntryStore, Feature, SimilarEntry, StoredEntry
from .duckdb import DuckDBEntryStore

__all__ = [
    "Entry",
    "EntryStore",
    "Feature",
    "SimilarEntry",
    "StoredEntry",
    "DuckDBEntryStore",
]
