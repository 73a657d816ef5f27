"""
Store contracts used by the engine, and the SQLite-backed vector store.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from .config import settings
from .embeddings import batch_similarity
from .errors import NotFoundError, StoreError
from .models import (
    Document,
    Edge,
    GraphStats,
    Node,
    SearchHit,
    TraversalHit,
    VectorSearchResponse,
    VectorStats,
    utcnow,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "init"


class VectorStore(Protocol):
    async def add_document(self, document: Document) -> Document: ...

    async def search(self, query_vector: Sequence[float], top_k: int) -> VectorSearchResponse: ...

    async def get_document(self, doc_id: str) -> Document: ...

    async def update_document(self, document: Document) -> Document: ...

    async def delete_document(self, doc_id: str) -> bool: ...

    async def get_all_documents(self, limit: int) -> List[Document]: ...

    async def get_stats(self) -> VectorStats: ...


class GraphStore(Protocol):
    async def add_node(self, node_id: str, data: Dict[str, Any]) -> Node: ...

    async def add_edge(self, source: str, target: str, type: str, weight: float = 1.0) -> Edge: ...

    async def get_node(self, node_id: str) -> Node: ...

    async def get_edge(self, edge_id: str) -> Edge: ...

    async def delete_node(self, node_id: str) -> bool: ...

    async def relationships(self, node_id: str, types: Sequence[str]) -> List[Edge]: ...

    async def traverse(self, start_id: str, depth: int, types: Sequence[str]) -> List[TraversalHit]: ...

    async def keyword_search(self, query: str, limit: int) -> List[str]: ...

    async def get_stats(self) -> GraphStats: ...


class SQLiteVectorStore:
    """
    Documents and their embeddings kept in SQLite and scored by exact cosine
    similarity. A placeholder row seeds a freshly created table and is filtered
    out of everything handed back to callers.
    """

    def __init__(self, db_path: Optional[Path] = None, dim: int | None = None) -> None:
        self.db_path = db_path or settings.db_path
        self.dim = dim or settings.embedding_dim
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._setup()

    @contextmanager
    def _store_call(self, operation: str) -> Iterator[sqlite3.Cursor]:
        try:
            yield self.conn.cursor()
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            logger.error("Vector store %s failed: %s", operation, exc)
            raise StoreError(f"Vector store {operation} failed: {exc}") from exc

    def _setup(self) -> None:
        with self._store_call("setup") as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    metadata TEXT,
                    created_at TEXT,
                    placeholder INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute("SELECT COUNT(*) FROM documents")
            if cur.fetchone()[0] == 0:
                logger.info("Creating documents table at %s", self.db_path)
                cur.execute(
                    """
                    INSERT INTO documents (id, text, embedding, metadata, created_at, placeholder)
                    VALUES (?, ?, ?, ?, ?, 1)
                    """,
                    (
                        PLACEHOLDER_ID,
                        PLACEHOLDER_ID,
                        json.dumps([0.001] * self.dim),
                        "{}",
                        utcnow().isoformat(),
                    ),
                )

    @staticmethod
    def _row_to_document(row: sqlite3.Row, with_embedding: bool = False) -> Document:
        return Document(
            id=row["id"],
            text=row["text"],
            embedding=json.loads(row["embedding"]) if with_embedding else [],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def add_document(self, document: Document) -> Document:
        if len(document.embedding) != self.dim:
            raise StoreError(
                f"Embedding for {document.id} has dimension {len(document.embedding)}, "
                f"expected {self.dim}"
            )
        with self._store_call("add") as cur:
            cur.execute(
                """
                INSERT INTO documents (id, text, embedding, metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    document.id,
                    document.text,
                    json.dumps(document.embedding),
                    json.dumps(document.metadata),
                    document.created_at.isoformat(),
                ),
            )
        logger.info("Added document: %s", document.id)
        return document

    async def search(self, query_vector: Sequence[float], top_k: int = 5) -> VectorSearchResponse:
        start = time.perf_counter()
        with self._store_call("search") as cur:
            cur.execute("SELECT * FROM documents")
            rows = cur.fetchall()
        scores = batch_similarity(query_vector, [json.loads(row["embedding"]) for row in rows])
        scored = [
            (rows[score.index], score.similarity)
            for score in scores
            if not rows[score.index]["placeholder"]
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        results = [
            SearchHit(
                rank=rank,
                doc_id=row["id"],
                text=row["text"],
                similarity=similarity,
                metadata=json.loads(row["metadata"] or "{}"),
            )
            for rank, (row, similarity) in enumerate(scored[:top_k], start=1)
        ]
        latency = (time.perf_counter() - start) * 1000
        logger.debug("Found %d results in %.1fms", len(results), latency)
        return VectorSearchResponse(
            results=results, total_results=len(results), latency_ms=latency
        )

    async def get_document(self, doc_id: str) -> Document:
        with self._store_call("get") as cur:
            cur.execute("SELECT * FROM documents WHERE id=? AND placeholder=0", (doc_id,))
            row = cur.fetchone()
        if not row:
            raise NotFoundError("Document", doc_id)
        return self._row_to_document(row, with_embedding=True)

    async def get_all_documents(self, limit: int = 1000) -> List[Document]:
        with self._store_call("list") as cur:
            cur.execute(
                "SELECT * FROM documents WHERE placeholder=0 ORDER BY created_at LIMIT ?",
                (limit,),
            )
            rows = cur.fetchall()
        return [self._row_to_document(row) for row in rows]

    async def update_document(self, document: Document) -> Document:
        deleted = await self.delete_document(document.id)
        if not deleted:
            logger.info("Vector update found no %s to replace, creating new", document.id)
        return await self.add_document(document)

    async def delete_document(self, doc_id: str) -> bool:
        with self._store_call("delete") as cur:
            cur.execute("DELETE FROM documents WHERE id=? AND placeholder=0", (doc_id,))
            deleted = cur.rowcount
        logger.info("Deleted %d vector records: %s", deleted, doc_id)
        return deleted > 0

    async def get_stats(self) -> VectorStats:
        with self._store_call("stats") as cur:
            cur.execute("SELECT COUNT(*) FROM documents WHERE placeholder=0")
            total = cur.fetchone()[0]
        return VectorStats(
            total_documents=total,
            embedding_dimension=self.dim,
            status="healthy",
            db_path=str(self.db_path),
        )

    def close(self) -> None:
        self.conn.close()
