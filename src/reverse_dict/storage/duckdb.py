"""
DuckDB storage backend for entries, features, and embeddings.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb
import numpy as np

from ..errors import StoreError
from ..models import Model, Vector
from .base import Entry, Feature, SimilarEntry, StoredEntry

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Cosine distance over FLOAT[] lists; lower is closer.
_COSINE_DISTANCE = "1.0 - list_cosine_similarity({a}, {b})"
_FEATURE_DISTANCE = _COSINE_DISTANCE.format(a="e.vector", b="?::FLOAT[]")

_RELATED_ENTRIES_SQL = f"""
    WITH scored AS (
        SELECT
            f.id AS feature_id,
            f.entry_id,
            f.phrase,
            {_FEATURE_DISTANCE} AS distance
        FROM embeddings e
        JOIN features f ON f.id = e.feature_id
        WHERE e.model_id = ?
    ),
    best AS (
        SELECT entry_id, phrase, distance
        FROM scored
        QUALIFY row_number() OVER (
            PARTITION BY entry_id ORDER BY distance ASC, feature_id ASC
        ) = 1
    )
    SELECT
        en.id, en.text, en.definition, en.example, en.author,
        best.phrase, best.distance
    FROM best
    JOIN entries en ON en.id = best.entry_id
    ORDER BY best.distance ASC, en.id ASC
    LIMIT ?
"""


def _encode(vector: Vector | Sequence[float]) -> list[float]:
    encoded = np.asarray(vector, dtype=np.float32)
    if encoded.ndim != 1:
        raise ValueError("Embedding vectors must be 1-D.")
    return encoded.tolist()


def _decode(values: Sequence[float]) -> Vector:
    return np.asarray(values, dtype=np.float32)


def _collapse_features(features: Sequence[Feature]) -> list[Feature]:
    """Merge features sharing a phrase; later embeddings win per model."""
    merged: dict[str, Feature] = {}
    for feature in features:
        previous = merged.get(feature.phrase)
        if previous is None:
            merged[feature.phrase] = feature
            continue
        embeddings = dict(previous.embeddings)
        embeddings.update(feature.embeddings)
        merged[feature.phrase] = Feature(
            phrase=feature.phrase,
            autogenerated=previous.autogenerated,
            embeddings=embeddings,
        )
    return list(merged.values())


class DuckDBEntryStore:
    """DuckDB-backed persistence for entries, features, and embeddings.

    The store owns a single DuckDB connection. Each operation runs on its
    own cursor (or on one handed in via ``cursor=``, so that an async caller
    can ``interrupt()`` it), and writes are serialized by a lock.
    """

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == MEMORY_DB:
            self.db_path = MEMORY_DB
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._write_lock = threading.Lock()
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StoreError(f"Opening database {self.db_path}: {exc}") from exc
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Return a new cursor on the shared database."""
        return self._conn.cursor()

    @contextmanager
    def _use(
        self, cursor: duckdb.DuckDBPyConnection | None
    ) -> Iterator[duckdb.DuckDBPyConnection]:
        if cursor is not None:
            yield cursor
            return
        cur = self._conn.cursor()
        try:
            yield cur
        finally:
            cur.close()

    def initialize(self) -> None:
        statements = [
            "CREATE SEQUENCE IF NOT EXISTS entries_id_seq START 1",
            """
            CREATE TABLE IF NOT EXISTS entries (
                id BIGINT PRIMARY KEY DEFAULT nextval('entries_id_seq'),
                text VARCHAR NOT NULL,
                definition VARCHAR NOT NULL,
                example VARCHAR NOT NULL DEFAULT '',
                author VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(text, definition)
            )
            """,
            "CREATE SEQUENCE IF NOT EXISTS features_id_seq START 1",
            """
            CREATE TABLE IF NOT EXISTS features (
                id BIGINT PRIMARY KEY DEFAULT nextval('features_id_seq'),
                entry_id BIGINT NOT NULL REFERENCES entries(id),
                phrase VARCHAR NOT NULL,
                autogenerated BOOLEAN NOT NULL DEFAULT FALSE,
                UNIQUE(entry_id, phrase)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS embeddings (
                feature_id BIGINT NOT NULL,
                model_id INTEGER NOT NULL,
                vector FLOAT[] NOT NULL CHECK (len(vector) > 0),
                PRIMARY KEY (feature_id, model_id)
            )
            """,
        ]
        try:
            with self._write_lock, self._use(None) as cur:
                for statement in statements:
                    cur.execute(statement)
        except duckdb.Error as exc:
            raise StoreError(f"Initializing schema: {exc}") from exc

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def add_entry(
        self,
        entry: Entry,
        *,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> int:
        """
        Add an entry with its features and embeddings in one transaction.

        * an existing (text, definition) row is reused, otherwise inserted;
        * each feature is looked up by (entry, phrase), otherwise inserted;
        * each (feature, model) embedding is inserted or overwritten.

        Any failure rolls the whole call back.
        """
        features = _collapse_features(entry.features)
        with self._write_lock, self._use(cursor) as cur:
            cur.begin()
            try:
                self._check_dimensions(cur, features)
                entry_id = self._upsert_entry(cur, entry)
                for feature in features:
                    feature_id = self._upsert_feature(cur, entry_id, feature)
                    for model, vector in feature.embeddings.items():
                        cur.execute(
                            """
                            INSERT INTO embeddings (feature_id, model_id, vector)
                            VALUES (?, ?, ?::FLOAT[])
                            ON CONFLICT (feature_id, model_id) DO UPDATE SET
                                vector = excluded.vector
                            """,
                            [feature_id, int(model), _encode(vector)],
                        )
                cur.commit()
            except (duckdb.Error, ValueError) as exc:
                cur.rollback()
                logger.error("Rolled back entry %r: %s", entry.text, exc)
                raise StoreError(f"Adding entry {entry.text!r}: {exc}") from exc
            except BaseException:
                cur.rollback()
                raise

        logger.debug(
            "Stored entry %d (%r) with %d feature(s)", entry_id, entry.text, len(features)
        )
        return entry_id

    @staticmethod
    def _check_dimensions(
        cur: duckdb.DuckDBPyConnection, features: Sequence[Feature]
    ) -> None:
        """All vectors of one model share the length of that model's stored rows."""
        expected: dict[Model, int] = {}
        for feature in features:
            for model, vector in feature.embeddings.items():
                size = int(np.asarray(vector).size)
                if model not in expected:
                    row = cur.execute(
                        "SELECT len(vector) FROM embeddings WHERE model_id = ? LIMIT 1",
                        [int(model)],
                    ).fetchone()
                    expected[model] = int(row[0]) if row is not None else size
                if size != expected[model]:
                    raise ValueError(
                        f"{model.canonical_name} vectors have {expected[model]} "
                        f"dimensions, got {size} for {feature.phrase!r}"
                    )

    @staticmethod
    def _upsert_entry(cur: duckdb.DuckDBPyConnection, entry: Entry) -> int:
        row = cur.execute(
            "SELECT id FROM entries WHERE text = ? AND definition = ?",
            [entry.text, entry.definition],
        ).fetchone()
        if row is not None:
            return int(row[0])

        row = cur.execute(
            """
            INSERT INTO entries (text, definition, example, author)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            [entry.text, entry.definition, entry.example, entry.author],
        ).fetchone()
        if row is None:
            raise StoreError(f"Failed to insert entry: {entry.text!r}")
        return int(row[0])

    @staticmethod
    def _upsert_feature(
        cur: duckdb.DuckDBPyConnection, entry_id: int, feature: Feature
    ) -> int:
        row = cur.execute(
            "SELECT id FROM features WHERE entry_id = ? AND phrase = ?",
            [entry_id, feature.phrase],
        ).fetchone()
        if row is not None:
            return int(row[0])

        row = cur.execute(
            """
            INSERT INTO features (entry_id, phrase, autogenerated)
            VALUES (?, ?, ?)
            RETURNING id
            """,
            [entry_id, feature.phrase, feature.autogenerated],
        ).fetchone()
        if row is None:
            raise StoreError(f"Failed to insert feature: {feature.phrase!r}")
        return int(row[0])

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def related_entries(
        self,
        model: Model,
        vector: Vector,
        limit: int,
        *,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> list[SimilarEntry]:
        """
        Rank entries against *vector* using only *model*'s embeddings.

        Each entry is represented by its single closest feature. Ties on
        distance are broken by entry id. An empty list means no embeddings
        exist for *model*.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        try:
            with self._use(cursor) as cur:
                rows = cur.execute(
                    _RELATED_ENTRIES_SQL,
                    [_encode(vector), int(model), limit],
                ).fetchall()
        except duckdb.Error as exc:
            raise StoreError(
                f"Querying related entries for {model.canonical_name}: {exc}"
            ) from exc

        return [
            SimilarEntry(
                entry=self._row_to_entry(row[:5]),
                phrase=str(row[5]),
                distance=float(row[6]),
            )
            for row in rows
        ]

    def compare_embeddings(
        self,
        first: Vector,
        second: Vector,
        *,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> float:
        """Return the cosine distance between two vectors."""
        sql = "SELECT " + _COSINE_DISTANCE.format(a="?::FLOAT[]", b="?::FLOAT[]")
        try:
            with self._use(cursor) as cur:
                row = cur.execute(sql, [_encode(first), _encode(second)]).fetchone()
        except duckdb.Error as exc:
            raise StoreError(f"Comparing embeddings: {exc}") from exc
        if row is None or row[0] is None:
            raise StoreError("Comparing embeddings returned no distance.")
        return float(row[0])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def random_entry(
        self, *, cursor: duckdb.DuckDBPyConnection | None = None
    ) -> StoredEntry | None:
        try:
            with self._use(cursor) as cur:
                row = cur.execute(
                    """
                    SELECT id, text, definition, example, author
                    FROM entries
                    ORDER BY random()
                    LIMIT 1
                    """
                ).fetchone()
        except duckdb.Error as exc:
            raise StoreError(f"Querying random entry: {exc}") from exc
        if row is None:
            return None
        return self._row_to_entry(row)

    def iter_entries(
        self,
        *,
        batch_size: int = 256,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> Iterator[StoredEntry | StoreError]:
        """
        Lazily yield every entry in id order.

        Rows are fetched *batch_size* at a time, so a consumer that stops
        early never reads the rest. A read failure is yielded as a
        :class:`StoreError` and ends the sequence.
        """
        cur = cursor if cursor is not None else self._conn.cursor()
        try:
            try:
                cur.execute(
                    """
                    SELECT id, text, definition, example, author
                    FROM entries
                    ORDER BY id
                    """
                )
            except duckdb.Error as exc:
                yield StoreError(f"Querying entries: {exc}")
                return

            while True:
                try:
                    rows = cur.fetchmany(batch_size)
                except duckdb.Error as exc:
                    yield StoreError(f"Scanning entries: {exc}")
                    return
                if not rows:
                    return
                for row in rows:
                    yield self._row_to_entry(row)
        finally:
            if cursor is None:
                cur.close()

    def get_features(
        self,
        entry_id: int,
        *,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> list[Feature]:
        """Return an entry's features, each with all its per-model vectors."""
        try:
            with self._use(cursor) as cur:
                rows = cur.execute(
                    """
                    SELECT f.id, f.phrase, f.autogenerated, e.model_id, e.vector
                    FROM features f
                    LEFT JOIN embeddings e ON e.feature_id = f.id
                    WHERE f.entry_id = ?
                    ORDER BY f.id, e.model_id
                    """,
                    [entry_id],
                ).fetchall()
        except duckdb.Error as exc:
            raise StoreError(f"Querying features for entry {entry_id}: {exc}") from exc

        grouped: dict[int, tuple[str, bool, dict[Model, Vector]]] = {}
        for feature_id, phrase, autogenerated, model_id, vector in rows:
            _, _, embeddings = grouped.setdefault(
                int(feature_id), (str(phrase), bool(autogenerated), {})
            )
            if model_id is not None:
                embeddings[Model(int(model_id))] = _decode(vector)
        return [
            Feature(phrase=phrase, autogenerated=autogenerated, embeddings=embeddings)
            for phrase, autogenerated, embeddings in grouped.values()
        ]

    def count_entries(self, *, cursor: duckdb.DuckDBPyConnection | None = None) -> int:
        return self._count("SELECT COUNT(*) FROM entries", [], cursor)

    def count_features(self, *, cursor: duckdb.DuckDBPyConnection | None = None) -> int:
        return self._count("SELECT COUNT(*) FROM features", [], cursor)

    def count_embeddings(
        self,
        model: Model | None = None,
        *,
        cursor: duckdb.DuckDBPyConnection | None = None,
    ) -> int:
        if model is None:
            return self._count("SELECT COUNT(*) FROM embeddings", [], cursor)
        return self._count(
            "SELECT COUNT(*) FROM embeddings WHERE model_id = ?", [int(model)], cursor
        )

    def _count(
        self,
        sql: str,
        params: list[Any],
        cursor: duckdb.DuckDBPyConnection | None,
    ) -> int:
        try:
            with self._use(cursor) as cur:
                row = cur.execute(sql, params).fetchone()
        except duckdb.Error as exc:
            raise StoreError(f"Counting rows: {exc}") from exc
        return int(row[0]) if row else 0

    @staticmethod
    def _row_to_entry(row: Sequence[Any]) -> StoredEntry:
        return StoredEntry(
            id=int(row[0]),
            text=str(row[1]),
            definition=str(row[2]),
            example=str(row[3]) if row[3] is not None else "",
            author=str(row[4]) if row[4] is not None else None,
        )
