"""
FastAPI server exposing reverse dictionary search.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .config import load_settings
from .embeddings import SwamaAPI, build_registry
from .errors import NotFound, ProviderError, StoreError, TransportError
from .search import SemanticSearchEngine
from .storage import DuckDBEntryStore, SimilarEntry

logger = logging.getLogger(__name__)


def _hit_to_dict(hit: SimilarEntry) -> dict[str, Any]:
    return {
        "text": hit.entry.text,
        "definition": hit.entry.definition,
        "example": hit.entry.example,
        "author": hit.entry.author,
        "phrase": hit.phrase,
        "distance": hit.distance,
    }


def _error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, NotFound):
        status_code = 404
    elif isinstance(exc, ValueError):
        status_code = 400
    elif isinstance(exc, (TransportError, ProviderError)):
        status_code = 502
    else:
        status_code = 500
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=status_code)


@asynccontextmanager
async def _default_lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "engine", None) is not None:
        yield
        return

    settings = load_settings()
    swama = SwamaAPI(settings.swama_url, timeout=settings.http_timeout)
    store = DuckDBEntryStore(settings.db_path)
    app.state.engine = SemanticSearchEngine(build_registry(settings, swama=swama), store)
    try:
        yield
    finally:
        await swama.aclose()
        store.close()


def create_app(engine: SemanticSearchEngine | None = None) -> FastAPI:
    """Build the API app; without *engine*, one is built from the environment at startup."""
    app = FastAPI(
        title="Reverse Dictionary API",
        version="0.1.0",
        lifespan=_default_lifespan,
    )
    app.state.engine = engine

    @app.get("/api/search")
    async def search(
        request: Request,
        query: str = Query(..., description="The phrase to search for"),
        limit: int = Query(10, description="The maximum number of results to return"),
    ):
        """Search for entries whose definitions mean what *query* describes."""
        try:
            results = await request.app.state.engine.search(query, limit)
        except Exception as exc:
            return _error_response(exc)

        return {
            "query": query,
            "results": {
                model.canonical_name: [_hit_to_dict(hit) for hit in hits]
                for model, hits in results.items()
            },
        }

    @app.get("/api/random")
    async def random_entry(request: Request):
        """Return a random dictionary entry."""
        try:
            entry = await request.app.state.engine.random_entry()
        except Exception as exc:
            return _error_response(exc)
        return entry.to_dict()

    @app.get("/api/health")
    async def health(request: Request):
        engine: SemanticSearchEngine = request.app.state.engine
        try:
            entries = await asyncio.to_thread(engine.store.count_entries)
        except StoreError as exc:
            return _error_response(exc)
        return {
            "status": "ok",
            "entries": entries,
            "models": [model.canonical_name for model in engine.registry],
        }

    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)
