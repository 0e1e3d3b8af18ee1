import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, AsyncIterator, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import Settings, load_settings
from .embeddings import EmbedderRegistry, SwamaAPI, build_registry
from .errors import ReverseDictError
from .ingest import IngestPipeline, Rephraser, UrbanDictionaryClient
from .models import Model
from .search import SemanticSearchEngine
from .storage import DuckDBEntryStore

app = Typer(help="Search dictionary entries by meaning.")
console = Console()

DbPathOption = Annotated[
    Optional[str],
    Option("--db-path", help="DuckDB file to use (defaults to REVERSE_DICT_DB_PATH)."),
]


@dataclass
class Runtime:
    settings: Settings
    store: DuckDBEntryStore
    swama: SwamaAPI
    registry: EmbedderRegistry

    @property
    def engine(self) -> SemanticSearchEngine:
        return SemanticSearchEngine(self.registry, self.store)


@asynccontextmanager
async def open_runtime(db_path: str | None = None) -> AsyncIterator[Runtime]:
    settings = load_settings(db_path=db_path)
    swama = SwamaAPI(settings.swama_url, timeout=settings.http_timeout)
    store = DuckDBEntryStore(settings.db_path)
    try:
        registry = build_registry(settings, swama=swama)
        yield Runtime(settings=settings, store=store, swama=swama, registry=registry)
    finally:
        store.close()
        await swama.aclose()


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except (ReverseDictError, ValueError) as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise Exit(code=1)


@app.callback()
def configure(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Log debug output.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


async def run_add_words(
    count: int, interval: float, rephrase: bool, db_path: str | None
) -> None:
    async with open_runtime(db_path) as runtime:
        source = UrbanDictionaryClient(timeout=runtime.settings.http_timeout)
        try:
            pipeline = IngestPipeline(
                runtime.store,
                runtime.registry,
                source=source,
                rephraser=Rephraser(runtime.swama) if rephrase else None,
            )
            with console.status(status=f"Adding {count} word(s)..."):
                results = await pipeline.run(count, interval=interval)
        finally:
            await source.aclose()

    for result in results:
        console.print(
            f"[bold green]+[/] {result.text} "
            f"[dim]({result.features_written} phrases, {result.embeddings_written} embeddings)[/]"
        )


@app.command("add-words")
def add_words(
    count: Annotated[int, Option("--count", "-c", help="Number of words to add.")] = 1,
    rate_limit: Annotated[
        float, Option("--rate-limit", "-r", help="Seconds between fetched words.")
    ] = 1.0,
    rephrase: Annotated[
        bool, Option("--rephrase", help="Also embed LLM paraphrases of each definition.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Fetch random definitions, embed them, and store them."""
    _run(run_add_words(count, rate_limit, rephrase, db_path))


async def run_search(phrase: str, limit: int, db_path: str | None) -> None:
    async with open_runtime(db_path) as runtime:
        results = await runtime.engine.search(phrase, limit)

    for model, hits in results.items():
        table = Table(title=model.canonical_name, title_justify="left")
        table.add_column("Word", style="bold")
        table.add_column("Matched phrase")
        table.add_column("Distance", justify="right")
        for hit in hits:
            table.add_row(hit.entry.text, hit.phrase, f"{hit.distance:.2f}")
        console.print(table)


@app.command()
def search(
    phrase: Annotated[str, Argument(help="Describe the word you are looking for.")],
    limit: Annotated[int, Option("--limit", "-l", help="Results per model.")] = 10,
    db_path: DbPathOption = None,
) -> None:
    """Find entries whose definitions match a phrase."""
    _run(run_search(phrase, limit, db_path))


async def run_compare(doc: str, query: str, model_name: str, db_path: str | None) -> None:
    model = Model.parse(model_name)
    async with open_runtime(db_path) as runtime:
        distance = await runtime.engine.compare(doc, query, model)
    console.print(f"Distance between '{doc}' and '{query}': {distance:f}")


@app.command()
def compare(
    doc: Annotated[str, Argument(help="Document phrase.")],
    query: Annotated[str, Argument(help="Query phrase.")],
    model: Annotated[
        str, Option("--model", "-m", help="Canonical model name.")
    ] = Model.QWEN3_EMBEDDING_8B_4BIT_DWQ.canonical_name,
    db_path: DbPathOption = None,
) -> None:
    """Print the cosine distance between two phrases."""
    _run(run_compare(doc, query, model, db_path))


async def run_embed(phrase: str, model_name: str, db_path: str | None) -> None:
    model = Model.parse(model_name)
    async with open_runtime(db_path) as runtime:
        embeddings = await runtime.registry.only(model).embed(phrase)
    console.print_json(json.dumps(embeddings[model][0].tolist()))


@app.command()
def embed(
    phrase: Annotated[str, Argument(help="Phrase to embed.")],
    model: Annotated[
        str, Option("--model", "-m", help="Canonical model name.")
    ] = Model.QWEN3_EMBEDDING_8B_4BIT_DWQ.canonical_name,
    db_path: DbPathOption = None,
) -> None:
    """Print a phrase's embedding as JSON."""
    _run(run_embed(phrase, model, db_path))


async def run_random_word() -> None:
    client = UrbanDictionaryClient()
    try:
        entry = await client.random()
    finally:
        await client.aclose()
    console.print(f"[bold]{entry.text}[/]: {entry.definition}")


@app.command("random-word")
def random_word() -> None:
    """Print a random definition from Urban Dictionary."""
    _run(run_random_word())


async def run_rephrase_random_word(db_path: str | None) -> None:
    async with open_runtime(db_path) as runtime:
        entry = await runtime.engine.random_entry()
        console.print(
            Panel(
                f"[bold]Word:[/] {entry.text}\n"
                f"[bold]Definition:[/] {entry.definition}\n"
                f"[bold]Example:[/] {entry.example}",
                title="Random Definition",
                title_align="left",
                border_style="bold magenta",
            )
        )
        with console.status(status="Rephrasing..."):
            rephrased = await Rephraser(runtime.swama).rephrase(entry)

    for i, sentence in enumerate(rephrased, start=1):
        console.print(f"Def. {i}: {sentence}")


@app.command("rephrase-random-word")
def rephrase_random_word(db_path: DbPathOption = None) -> None:
    """Rephrase a random stored definition into separate sentences."""
    _run(run_rephrase_random_word(db_path))


async def run_stats(db_path: str | None) -> None:
    settings = load_settings(db_path=db_path)
    store = DuckDBEntryStore(settings.db_path)
    try:
        table = Table(title=settings.db_path, title_justify="left")
        table.add_column("Rows")
        table.add_column("Count", justify="right")
        table.add_row("entries", str(store.count_entries()))
        table.add_row("features", str(store.count_features()))
        for model in Model:
            table.add_row(
                f"embeddings ({model.canonical_name})",
                str(store.count_embeddings(model)),
            )
    finally:
        store.close()
    console.print(table)


@app.command()
def stats(db_path: DbPathOption = None) -> None:
    """Show row counts for the dictionary database."""
    _run(run_stats(db_path))


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
) -> None:
    """Serve the search API."""
    from .server import run_server

    run_server(host=host, port=port)
