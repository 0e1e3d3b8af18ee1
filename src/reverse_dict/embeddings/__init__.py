"""Embedding providers and the per-model registry."""

from __future__ import annotations

from ..config import Settings
from ..models import Model
from .base import Embedder, EmbedderRegistry
from .gemini import GeminiEmbedder
from .openai import OpenAIEmbedder
from .ratelimit import TokenBucket
from .swama import SwamaAPI, SwamaEmbedder


def build_registry(
    settings: Settings, *, swama: SwamaAPI | None = None
) -> EmbedderRegistry:
    """Resolve every configured model to its provider, once, at startup."""
    registry = EmbedderRegistry()
    for model in settings.models:
        if model is Model.QWEN3_EMBEDDING_8B_4BIT_DWQ:
            api = swama or SwamaAPI(settings.swama_url, timeout=settings.http_timeout)
            registry.register(model, SwamaEmbedder(api))
        elif model is Model.OPENAI_TEXT_EMBEDDING_3_LARGE:
            registry.register(
                model,
                OpenAIEmbedder(
                    model=settings.openai_model,
                    timeout=settings.http_timeout,
                    rate_limiter=TokenBucket(settings.rate_limit, settings.rate_burst),
                ),
            )
        elif model is Model.GEMINI_EMBEDDING_001:
            registry.register(
                model,
                GeminiEmbedder(
                    model=settings.gemini_model,
                    timeout=settings.http_timeout,
                    rate_limiter=TokenBucket(settings.rate_limit, settings.rate_burst),
                ),
            )
        else:
            raise ValueError(f"No embedding provider available for {model.canonical_name}")
    return registry


__all__ = [
    "Embedder",
    "EmbedderRegistry",
    "GeminiEmbedder",
    "OpenAIEmbedder",
    "SwamaAPI",
    "SwamaEmbedder",
    "TokenBucket",
    "build_registry",
]
