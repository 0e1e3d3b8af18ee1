"""
reverse_dict - find dictionary entries by meaning.

This package embeds dictionary definitions (split into sub-phrases) with
one or more embedding models, stores them in DuckDB, and ranks entries
against a free-text description by the cosine distance of each entry's
closest sub-phrase.

Example usage:
    >>> from reverse_dict import DuckDBEntryStore, SemanticSearchEngine
    >>> engine = SemanticSearchEngine(registry, DuckDBEntryStore("words.duckdb"))
    >>> results = await engine.search("a feeling of happy sadness", limit=5)
"""

from .embeddings import EmbedderRegistry, build_registry
from .errors import (
    EmptyEmbeddingError,
    NoDefinitionsExtracted,
    NotFound,
    ProviderError,
    ReverseDictError,
    StoreError,
    TransportError,
    UnknownModel,
)
from .models import DEFAULT_MODELS, Model, Vector, vector_from_float64
from .search import SemanticSearchEngine
from .storage import DuckDBEntryStore, Entry, Feature, SimilarEntry, StoredEntry

__all__ = [
    # Models
    "DEFAULT_MODELS",
    "Model",
    "Vector",
    "vector_from_float64",
    # Embeddings
    "EmbedderRegistry",
    "build_registry",
    # Storage
    "DuckDBEntryStore",
    "Entry",
    "Feature",
    "SimilarEntry",
    "StoredEntry",
    # Search
    "SemanticSearchEngine",
    # Errors
    "EmptyEmbeddingError",
    "NoDefinitionsExtracted",
    "NotFound",
    "ProviderError",
    "ReverseDictError",
    "StoreError",
    "TransportError",
    "UnknownModel",
]
