"""Vector search over the internal document store (sqlite-vec)."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import openai
import sqlite_vec
from loguru import logger
from openai import OpenAI
from sqlite_vec import serialize_float32

from chat_orchestrator.application.exceptions import ExternalServiceError
from chat_orchestrator.domain.models import VectorSearchResult


class VectorSearchService:
    """KNN search over ``vec_chunks`` joined to ``document_chunks``.

    The store is produced by an offline ingestion job; this service only
    reads it.  A missing database file is not fatal at startup: searches
    report the store as unavailable instead.
    """

    def __init__(
        self,
        db_path: Path,
        embedding_client: OpenAI,
        embedding_model: str,
        embedding_dimensions: int = 1536,
    ):
        self.db_path = db_path
        self.embedding_client = embedding_client
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the store read-only and load the sqlite-vec extension."""
        path = Path(self.db_path)
        if not path.exists():
            logger.warning("Vector store not found at {}; vector search disabled", path)
            return
        uri = f"{path.resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.row_factory = sqlite3.Row
        self.conn = conn
        logger.info("Vector store opened | path={}", path)

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    def embed_query(self, text: str) -> list[float]:
        """Generate an embedding vector for a query string."""
        try:
            response = self.embedding_client.embeddings.create(
                input=text,
                model=self.embedding_model,
                dimensions=self.embedding_dimensions,
            )
        except openai.APIError as exc:
            raise ExternalServiceError("vector search", f"embedding failed ({exc})") from exc
        return [float(x) for x in response.data[0].embedding]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 5) -> list[VectorSearchResult]:
        """Return the *limit* chunks nearest to *query*, closest first."""
        if not self.conn:
            raise ExternalServiceError("vector search", "the document store is not available")

        embedding = self.embed_query(query)
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                SELECT c.chunk_id, c.document_name, c.section_header,
                       c.generation_chunk, v.distance
                FROM vec_chunks v
                JOIN document_chunks c ON v.chunk_id = c.chunk_id
                WHERE v.embedding MATCH ? AND v.k = ?
                ORDER BY v.distance
                """,
                (serialize_float32(embedding), limit),
            )
            rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise ExternalServiceError("vector search", str(exc)) from exc

        logger.debug("Vector search | query={} | results={}", query[:80], len(rows))
        return [
            VectorSearchResult(
                chunk_id=row["chunk_id"],
                document_name=row["document_name"],
                section_header=row["section_header"],
                content=row["generation_chunk"],
                distance=row["distance"],
            )
            for row in rows
        ]
