"""
Embedding provider for Google GenAI embedding models.

Wraps the Google GenAI async embedding API with configurable model and
batch size, throttled by a token bucket. The output size is fixed at
``EMBEDDING_DIM``: every Gemini vector is stored under one model id, so
all of them must share a length.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Any

import httpx
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..errors import ProviderError, TransportError
from ..models import Vector
from .base import check_phrases, check_vector_count, to_vector
from .ratelimit import TokenBucket

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
EMBEDDING_DIM = 768
_DEFAULT_TIMEOUT = 60.0
_DEFAULT_BATCH_SIZE = 50
_DEFAULT_TASK_TYPE = "SEMANTIC_SIMILARITY"
_PROVIDER = "gemini"


class GeminiEmbedder:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        task_type: str = _DEFAULT_TASK_TYPE,
        rate_limiter: TokenBucket | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("REVERSE_DICT_GEMINI_MODEL", _DEFAULT_MODEL)
        self.dim = dim or EMBEDDING_DIM
        self.timeout = timeout
        self.batch_size = batch_size or _DEFAULT_BATCH_SIZE
        self.task_type = task_type
        self.rate_limiter = rate_limiter or TokenBucket.every(0.5, burst=5)

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(
                api_key=resolved_key,
                http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
            )

    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        """Embed phrases in batches; one rate-limit token per batch."""
        texts = check_phrases(phrases)
        vectors: list[Vector] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            await self.rate_limiter.acquire()
            logger.debug("Requesting %d Gemini embedding(s)", len(batch))
            try:
                result = await self._client.aio.models.embed_content(
                    model=self.model,
                    contents=batch,
                    config={
                        "task_type": self.task_type,
                        "output_dimensionality": self.dim,
                    },
                )
            except httpx.TransportError as exc:
                raise TransportError(
                    f"Requesting Gemini embeddings: {exc}", provider=_PROVIDER
                ) from exc
            except genai_errors.APIError as exc:
                raise ProviderError(
                    f"Requesting Gemini embeddings: {exc}",
                    provider=_PROVIDER,
                    status_code=exc.code,
                ) from exc
            for emb in result.embeddings or []:
                vector = to_vector(emb.values or [], provider=_PROVIDER)
                if vector.shape[0] != self.dim:
                    raise ProviderError(
                        f"Expected {self.dim}-dimensional embeddings, got {vector.shape[0]}.",
                        provider=_PROVIDER,
                    )
                vectors.append(vector)
        return check_vector_count(vectors, texts, provider=_PROVIDER)
