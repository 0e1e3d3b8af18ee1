"""Search over stored dictionary embeddings."""

from .semantic import SemanticSearchEngine

__all__ = ["SemanticSearchEngine"]
