"""
Urban Dictionary client used as a source of raw definitions.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ProviderError, TransportError
from ..storage import Entry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.urbandictionary.com/v0"
_PROVIDER = "urbandictionary"


class UrbanDictionaryClient:
    """Fetch random definitions from the Urban Dictionary API."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def random(self) -> Entry:
        """Return one random definition, without features."""
        url = f"{self.base_url}/random"
        try:
            response = await self._client.get(url)
        except httpx.TransportError as exc:
            raise TransportError(f"Requesting {url}: {exc}", provider=_PROVIDER) from exc
        if response.status_code != httpx.codes.OK:
            raise ProviderError(
                f"Random definition request failed: {response.status_code}",
                provider=_PROVIDER,
                status_code=response.status_code,
            )
        try:
            payload: dict[str, Any] = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Undecodable random definition: {exc}", provider=_PROVIDER
            ) from exc

        items = payload.get("list") or []
        if not items:
            raise ProviderError("No definitions returned.", provider=_PROVIDER)
        item = items[0]
        word = str(item.get("word") or "").strip()
        definition = str(item.get("definition") or "").strip()
        if not word or not definition:
            raise ProviderError("Definition is missing a word or text.", provider=_PROVIDER)

        logger.debug("Fetched random definition for %r", word)
        return Entry(
            text=word,
            definition=definition,
            example=str(item.get("example") or ""),
            author=item.get("author") or None,
        )
