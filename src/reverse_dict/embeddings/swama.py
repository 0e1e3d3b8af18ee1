"""
Client for a local OpenAI-compatible inference server (Swama).

Exposes batched embeddings and chat completions over a single
``httpx.AsyncClient`` owned by (or handed to) each instance.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from ..errors import ProviderError, TransportError
from ..models import (
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    Vector,
)
from .base import check_phrases, check_vector_count, to_vector

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "mlx-community/Qwen3-Embedding-8B-4bit-DWQ"
DEFAULT_COMPLETION_MODEL = "mlx-community/Qwen3-8B-4bit"
DEFAULT_TIMEOUT = 300.0

_PROVIDER = "swama"


class SwamaAPI:
    """Talk to the local inference server's ``/v1`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        embedding_model: str = DEFAULT_EMBEDDING_MODEL,
        completion_model: str = DEFAULT_COMPLETION_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.embedding_model = embedding_model
        self.completion_model = completion_model
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def embed(self, phrases: Sequence[str]) -> list[list[float]]:
        """Embed *phrases* in one batched request; vectors keep input order."""
        texts = check_phrases(phrases)
        request = EmbeddingRequest(model=self.embedding_model, input=texts)
        body = await self._post("/v1/embeddings", request.model_dump())
        try:
            response = EmbeddingResponse.model_validate(body)
        except ValidationError as exc:
            raise ProviderError(
                f"Malformed embedding response: {exc}", provider=_PROVIDER
            ) from exc

        if not response.data:
            raise ProviderError(
                "No data returned from the embedding API.", provider=_PROVIDER
            )
        data = response.data
        if all(item.index is not None for item in data):
            data = sorted(data, key=lambda item: item.index)
        return [item.embedding for item in data]

    async def complete(self, system_prompt: str, user_content: str) -> str:
        """Run a chat completion and return the first choice's content."""
        request = CompletionRequest(
            model=self.completion_model,
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_content),
            ],
        )
        body = await self._post("/v1/chat/completions", request.model_dump())
        try:
            response = CompletionResponse.model_validate(body)
        except ValidationError as exc:
            raise ProviderError(
                f"Malformed completion response: {exc}", provider=_PROVIDER
            ) from exc

        if not response.choices:
            raise ProviderError(
                "No choices returned from the completion API.", provider=_PROVIDER
            )
        return response.choices[0].message.content

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("POST %s", url)
        try:
            response = await self._client.post(url, json=payload)
        except httpx.TransportError as exc:
            raise TransportError(
                f"Requesting {url}: {exc}", provider=_PROVIDER
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise ProviderError(
                f"Request to {path} failed: {response.status_code} {response.reason_phrase}",
                provider=_PROVIDER,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Undecodable response from {path}: {exc}", provider=_PROVIDER
            ) from exc


class SwamaEmbedder:
    """:class:`Embedder` backed by :class:`SwamaAPI`."""

    def __init__(self, api: SwamaAPI) -> None:
        self.api = api

    async def embed(self, phrases: Sequence[str]) -> list[Vector]:
        raw = await self.api.embed(phrases)
        vectors = [to_vector(values, provider=_PROVIDER) for values in raw]
        return check_vector_count(vectors, phrases, provider=_PROVIDER)
