"""Retrieval service orchestrating chunking, embedding, indexing and lookup.

Handles:
- Lazy or explicit embedder warm-up
- All-or-nothing document ingestion
- Query embedding, vector search and chunk resolution
- Clearing index and store together
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import asyncio
import structlog

from notebook_rag import config
from notebook_rag.rag.chunker import Chunk, Document, TextChunker
from notebook_rag.rag.document_store import DocumentStore
from notebook_rag.rag.embedder import Embedder
from notebook_rag.rag.errors import (
    ChunkNotFoundError,
    EmbeddingUnavailableError,
    InitializationFailedError,
    InvalidArgumentError,
)
from notebook_rag.rag.vector_index import VectorIndex, create_index

logger = structlog.get_logger()


class ServiceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass
class SearchResult:
    """A retrieved chunk. Higher score means more similar."""

    chunk_id: str
    content: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str:
        """Get a formatted source string for display."""
        title = self.metadata.get("title") or "Untitled"
        return f"{title} #{self.metadata.get('chunk_index', 0)}"


class RetrievalService:
    """Semantic index over ingested documents.

    Construct one per collection in the host and share it. Queries may run
    concurrently; ingestion commits are serialized behind a single lock.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: Optional[VectorIndex] = None,
        store: Optional[DocumentStore] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the retrieval service.

        Args:
            embedder: Embedding backend
            index: Vector index (configured default if not provided)
            store: Chunk store (a fresh one if not provided)
            chunk_size: Words per chunk (default from config)
            chunk_overlap: Words of overlap between chunks (default from config)
        """
        self.embedder = embedder
        self.index = index if index is not None else create_index()
        self.store = store if store is not None else DocumentStore()
        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self.state = ServiceState.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

        logger.info(
            "retrieval_service_created",
            embedder=embedder.name,
            index=self.index.kind,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    @property
    def is_ready(self) -> bool:
        return self.state is ServiceState.READY

    async def init(self) -> None:
        """Warm up the embedder. Safe to call repeatedly.

        Raises:
            InitializationFailedError: If warm-up fails (state stays uninitialized)
        """
        if self.is_ready:
            return

        async with self._init_lock:
            if self.is_ready:
                return

            try:
                await self.embedder.warm_up()
            except Exception as e:
                logger.error(
                    "retrieval_service_init_failed",
                    embedder=self.embedder.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise InitializationFailedError(
                    f"Failed to initialize embedder '{self.embedder.name}': {e}"
                ) from e

            self.state = ServiceState.READY
            logger.info("retrieval_service_ready", embedder=self.embedder.name)

    async def close(self) -> None:
        """Drop all indexed data and release the embedder."""
        await self.clear()
        await self.embedder.close()
        self.state = ServiceState.UNINITIALIZED
        logger.info("retrieval_service_closed")

    async def _embed(self, text: str) -> List[float]:
        try:
            return await self.embedder.embed(text)
        except EmbeddingUnavailableError:
            raise
        except Exception as e:
            raise EmbeddingUnavailableError(f"Embedder failed: {e}") from e

    async def ingest(self, document: Document) -> List[Chunk]:
        """Chunk, embed and index a document.

        Either every chunk of the document becomes searchable or none does:
        vectors are computed first and committed in one batch.

        Args:
            document: Document to ingest

        Returns:
            The chunks that were indexed (empty for text without words)

        Raises:
            InvalidArgumentError: If the document id is already indexed
            InitializationFailedError: If the embedder cannot be warmed up
            EmbeddingUnavailableError: If any chunk fails to embed
            DimensionMismatchError: If the embedder changes dimensionality
        """
        await self.init()

        if self.store.has_document(document.id):
            raise InvalidArgumentError(f"Document '{document.id}' is already indexed")

        chunks = self.chunker.chunk_document(document)
        if not chunks:
            logger.warning("no_chunks_created", document_id=document.id)
            return []

        vectors = []
        for chunk in chunks:
            try:
                vectors.append(await self._embed(chunk.text))
            except EmbeddingUnavailableError as e:
                logger.error(
                    "document_embedding_failed",
                    document_id=document.id,
                    chunk_index=chunk.index,
                    error=str(e),
                )
                raise

        # No await between add and put: the batch lands as a unit
        async with self._write_lock:
            if self.store.has_document(document.id):
                raise InvalidArgumentError(
                    f"Document '{document.id}' is already indexed"
                )
            self.index.add([(chunk.chunk_id, vector) for chunk, vector in zip(chunks, vectors)])
            for chunk in chunks:
                self.store.put(chunk.chunk_id, chunk.text, chunk.metadata)

        logger.info(
            "document_ingested",
            document_id=document.id,
            chunk_count=len(chunks),
            total_chunks=len(self.store),
        )

        return chunks

    async def query(self, query_text: str, limit: Optional[int] = None) -> List[SearchResult]:
        """Retrieve the chunks most similar to a query.

        Args:
            query_text: User query text
            limit: Maximum number of results (default from config)

        Returns:
            Results sorted best first; empty when nothing is indexed

        Raises:
            InvalidArgumentError: If the query is blank or limit < 1
            InitializationFailedError: If the embedder cannot be warmed up
            EmbeddingUnavailableError: If the query cannot be embedded
        """
        if not query_text or not query_text.strip():
            raise InvalidArgumentError("Query text must not be empty")

        limit = config.RETRIEVAL_TOP_K if limit is None else limit
        if limit < 1:
            raise InvalidArgumentError(f"Limit must be positive, got {limit}")

        await self.init()

        if len(self.index) == 0:
            logger.info("empty_index_no_results")
            return []

        embedding = await self._embed(query_text)
        hits = self.index.search(embedding, limit)

        results = []
        for chunk_id, score in hits:
            try:
                stored = self.store.get(chunk_id)
            except ChunkNotFoundError:
                logger.warning("chunk_missing_from_store", chunk_id=chunk_id)
                continue

            results.append(
                SearchResult(
                    chunk_id=chunk_id,
                    content=stored.content,
                    score=score,
                    metadata=dict(stored.metadata),
                )
            )

        logger.info(
            "retrieval_completed",
            query_length=len(query_text),
            limit=limit,
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    async def clear(self) -> None:
        """Remove every indexed chunk from both the index and the store."""
        async with self._write_lock:
            self.index.clear()
            self.store.clear()
        logger.info("retrieval_service_cleared")

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "embedder": self.embedder.name,
            "document_count": len(self.store.document_ids()),
            "chunk_count": len(self.store),
            **self.index.get_stats(),
        }
