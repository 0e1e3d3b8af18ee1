"""Offline ingest of dictionary definitions."""

from .pipeline import DefinitionSource, IngestPipeline, IngestResult
from .rephrase import Rephraser, parse_definition_list
from .text import build_features, prune_thinking, split_definition
from .urbandict import UrbanDictionaryClient

__all__ = [
    "DefinitionSource",
    "IngestPipeline",
    "IngestResult",
    "Rephraser",
    "parse_definition_list",
    "build_features",
    "prune_thinking",
    "split_definition",
    "UrbanDictionaryClient",
]
