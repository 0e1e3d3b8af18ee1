"""OpenAIEmbedder: rate-limited embedding provider backed by OpenAI's API."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from ..errors import ProviderError, TransportError
from ..models import Vector
from .base import check_phrases, check_vector_count, to_vector
from .ratelimit import TokenBucket

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "text-embedding-3-large"
_PROVIDER = "openai"


class OpenAIEmbedder:
    """Embed phrases with the OpenAI Embeddings API.

    Every request first takes a token from a :class:`TokenBucket`
    (by default one every 0.5s with a burst of 5), so callers block
    rather than hit the provider's rate limit.
    """

    def __init__(
        self,
        *,
        model: str = _DEFAULT_MODEL,
        api_key: str | None = None,
        timeout: float = 60.0,
        rate_limiter: TokenBucket | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.rate_limiter = rate_limiter or TokenBucket.every(0.5, burst=5)

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("OPENAI_API_KEY")
            if not resolved_key:
                raise ValueError(
                    "OPENAI_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = AsyncOpenAI(
                api_key=resolved_key, timeout=timeout, max_retries=0
            )

    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        texts = check_phrases(phrases)
        await self.rate_limiter.acquire()

        logger.debug("Requesting %d OpenAI embedding(s) from %s", len(texts), self.model)
        try:
            response = await self._client.embeddings.create(
                model=self.model, input=texts
            )
        except APIConnectionError as exc:
            raise TransportError(
                f"Requesting OpenAI embeddings: {exc}", provider=_PROVIDER
            ) from exc
        except APIStatusError as exc:
            raise ProviderError(
                f"Requesting OpenAI embeddings: {exc}",
                provider=_PROVIDER,
                status_code=exc.status_code,
            ) from exc

        data = sorted(response.data, key=lambda item: item.index)
        vectors = [to_vector(item.embedding, provider=_PROVIDER) for item in data]
        return check_vector_count(vectors, texts, provider=_PROVIDER)
