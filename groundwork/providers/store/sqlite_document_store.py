"""SQLite-backed document store.

Persists chunk rows to a local SQLite database using ``aiosqlite`` for async
I/O.  Two search paths share the same scope semantics:

* **Vector search** loads the embeddings of every row in scope and ranks
  them by cosine similarity with numpy.  Fine for corpora up to a few
  hundred thousand chunks; beyond that use the ChromaDB store.
* **Lexical search** runs an FTS5 ``MATCH`` over title and content,
  ordered by ``bm25`` (lower is better, so scores are negated).

A batch of rows is written in one transaction; on any failure the whole
transaction is rolled back.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from groundwork.interfaces.document_store import IDocumentStore
from groundwork.models.knowledge import DocumentChunk, MatchType, ScoredChunk, SearchScope
from groundwork.utils.errors import StoreUnavailable
from groundwork.utils.vectors import cosine_similarities

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    pk           INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT    NOT NULL UNIQUE,
    tenant_id    TEXT,
    category     TEXT,
    title        TEXT    NOT NULL,
    content      TEXT    NOT NULL,
    embedding    TEXT    NOT NULL,
    dimension    INTEGER NOT NULL,
    metadata     TEXT    NOT NULL DEFAULT '{}',
    source_url   TEXT,
    last_updated TEXT,
    created_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_FTS_SQL = """\
CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    title, content, content='chunks', content_rowid='pk'
);
"""

# Rows are immutable, so only inserts need mirroring into the index.
_CREATE_FTS_TRIGGER_SQL = """\
CREATE TRIGGER IF NOT EXISTS chunks_fts_insert AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts(rowid, title, content) VALUES (new.pk, new.title, new.content);
END;
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_tenant ON chunks(tenant_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_category ON chunks(category);",
]

_INSERT_SQL = """\
INSERT INTO chunks (
    id, tenant_id, category, title, content, embedding, dimension,
    metadata, source_url, last_updated
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_ROW_COLUMNS = (
    "c.id, c.tenant_id, c.category, c.title, c.content, c.embedding, "
    "c.metadata, c.source_url, c.last_updated"
)

_FTS_TOKEN = re.compile(r"\w+", re.UNICODE)


def _scope_clause(scope: SearchScope | None) -> tuple[str, list[Any]]:
    """Translate *scope* into a SQL fragment (leading ``AND``) and params.

    A tenant filter also admits global rows (``tenant_id IS NULL``).
    """
    clauses: list[str] = []
    params: list[Any] = []
    if scope is not None and scope.tenant_id:
        clauses.append("(c.tenant_id = ? OR c.tenant_id IS NULL)")
        params.append(scope.tenant_id)
    if scope is not None and scope.category:
        clauses.append("c.category = ?")
        params.append(scope.category)
    if not clauses:
        return "", params
    return " AND " + " AND ".join(clauses), params


def _fts_query(query_text: str) -> str:
    """Build an FTS5 query matching any word of *query_text*.

    Every token is double-quoted so user input can never be parsed as FTS5
    syntax (``NEAR``, ``*``, column filters).
    """
    tokens = _FTS_TOKEN.findall(query_text)
    return " OR ".join(f'"{token}"' for token in tokens)


class SQLiteDocumentStore(IDocumentStore):
    """Document store backed by a single SQLite file."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, dimension: int | None = None) -> None:
        self._db_path = Path(db_path)
        self._dimension = dimension
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the chunk table, FTS index and trigger if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.execute(_CREATE_FTS_SQL)
                await db.execute(_CREATE_FTS_TRIGGER_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
                stored_dimension = await self._stored_dimension(db)
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(
                message=f"Could not initialize SQLite store at {self._db_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if (
            self._dimension is not None
            and stored_dimension is not None
            and stored_dimension != self._dimension
        ):
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dimension,
                expected_dim=self._dimension,
            )
            raise ValueError(
                f"Embedding dimension mismatch: store holds {stored_dimension}-dim vectors "
                f"but the deployment is configured for {self._dimension}. "
                "Re-embed the corpus after changing embedding model."
            )

        self._initialized = True
        logger.info("sqlite_store_initialized", path=str(self._db_path), dimension=stored_dimension)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def vector_search(
        self,
        embedding: list[float],
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        where, params = _scope_clause(scope)
        sql = f"SELECT {_ROW_COLUMNS}, c.dimension FROM chunks c WHERE 1 = 1{where} ORDER BY c.pk"

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(
                message=f"Vector search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not rows:
            return []

        stored_dimension = rows[0]["dimension"]
        if stored_dimension != len(embedding):
            raise ValueError(
                f"Query vector has {len(embedding)} dimensions; store holds {stored_dimension}"
            )

        chunks = [self._row_to_chunk(row) for row in rows]
        scores = cosine_similarities(embedding, [chunk.embedding for chunk in chunks])

        # sorted() is stable, so equal scores keep insertion order.
        ranked = sorted(zip(chunks, scores, strict=True), key=lambda pair: pair[1], reverse=True)
        results = [
            ScoredChunk(chunk=chunk, score=float(score), rank=i + 1, match_type=MatchType.VECTOR)
            for i, (chunk, score) in enumerate(ranked[:top_k])
        ]
        logger.debug("sqlite_vector_search", candidates=len(rows), results=len(results))
        return results

    async def lexical_search(
        self,
        query_text: str,
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        match = _fts_query(query_text)
        if not match:
            return []

        where, params = _scope_clause(scope)
        sql = (
            f"SELECT {_ROW_COLUMNS}, bm25(chunks_fts) AS rank_score "
            "FROM chunks_fts JOIN chunks c ON c.pk = chunks_fts.rowid "
            f"WHERE chunks_fts MATCH ?{where} "
            "ORDER BY rank_score, c.pk LIMIT ?"
        )

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, [match, *params, top_k])
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(
                message=f"Lexical search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = [
            ScoredChunk(
                chunk=self._row_to_chunk(row),
                score=-float(row["rank_score"]),
                rank=i + 1,
                match_type=MatchType.LEXICAL,
            )
            for i, row in enumerate(rows)
        ]
        logger.debug("sqlite_lexical_search", query_length=len(query_text), results=len(results))
        return results

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0

        batch_dimension = len(chunks[0].embedding)
        for chunk in chunks:
            if len(chunk.embedding) != batch_dimension:
                raise ValueError(
                    f"Chunk {chunk.id} has {len(chunk.embedding)}-dim embedding; "
                    f"batch uses {batch_dimension}"
                )
        if self._dimension is not None and batch_dimension != self._dimension:
            raise ValueError(
                f"Batch embeddings have {batch_dimension} dimensions; "
                f"deployment is configured for {self._dimension}"
            )

        params = [
            (
                chunk.id,
                chunk.tenant_id,
                chunk.category,
                chunk.title,
                chunk.content,
                json.dumps(chunk.embedding),
                batch_dimension,
                json.dumps(chunk.metadata),
                chunk.source_url,
                chunk.last_updated,
            )
            for chunk in chunks
        ]

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                stored_dimension = await self._stored_dimension(db)
                if stored_dimension is not None and stored_dimension != batch_dimension:
                    raise ValueError(
                        f"Batch embeddings have {batch_dimension} dimensions; "
                        f"store holds {stored_dimension}"
                    )
                try:
                    await db.execute("BEGIN")
                    await db.executemany(_INSERT_SQL, params)
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(
                message=f"Insert of {len(chunks)} chunks failed and was rolled back: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("sqlite_chunks_inserted", count=len(chunks), dimension=batch_dimension)
        return len(chunks)

    async def count(self, scope: SearchScope | None = None) -> int:
        where, params = _scope_clause(scope)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(f"SELECT COUNT(*) FROM chunks c WHERE 1 = 1{where}", params)
                row = await cursor.fetchone()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailable(
                message=f"Count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    def get_provider_name(self) -> str:
        return "sqlite"

    def is_available(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _stored_dimension(db: aiosqlite.Connection) -> int | None:
        cursor = await db.execute("SELECT dimension FROM chunks LIMIT 1")
        row = await cursor.fetchone()
        return int(row[0]) if row else None

    @staticmethod
    def _row_to_chunk(row: aiosqlite.Row) -> DocumentChunk:
        return DocumentChunk(
            id=row["id"],
            tenant_id=row["tenant_id"],
            category=row["category"],
            title=row["title"],
            content=row["content"],
            embedding=json.loads(row["embedding"]),
            metadata=json.loads(row["metadata"] or "{}"),
            source_url=row["source_url"],
            last_updated=row["last_updated"],
        )
