"""In-memory chunk store mapping chunk ids to text and metadata."""
from typing import Any, Dict, Iterator, List, Set
from dataclasses import dataclass
import structlog

from notebook_rag.rag.errors import ChunkNotFoundError

logger = structlog.get_logger()


@dataclass(frozen=True)
class StoredChunk:
    """Text and metadata of an indexed chunk."""

    content: str
    metadata: Dict[str, Any]


class DocumentStore:
    """Key-value store of chunk contents keyed by chunk id."""

    def __init__(self):
        self._chunks: Dict[str, StoredChunk] = {}
        self._document_ids: Set[str] = set()

    def __len__(self) -> int:
        return len(self._chunks)

    def __contains__(self, chunk_id: str) -> bool:
        return chunk_id in self._chunks

    def __iter__(self) -> Iterator[str]:
        return iter(self._chunks)

    def put(self, chunk_id: str, content: str, metadata: Dict[str, Any]) -> None:
        """Store a chunk's text and metadata (overwrites an existing id)."""
        self._chunks[chunk_id] = StoredChunk(content=content, metadata=dict(metadata))

        document_id = metadata.get("document_id")
        if document_id is not None:
            self._document_ids.add(document_id)

    def get(self, chunk_id: str) -> StoredChunk:
        """Look up a chunk.

        Raises:
            ChunkNotFoundError: If the id was never stored or has been cleared
        """
        try:
            return self._chunks[chunk_id]
        except KeyError:
            raise ChunkNotFoundError(chunk_id) from None

    def has_document(self, document_id: str) -> bool:
        return document_id in self._document_ids

    def document_ids(self) -> List[str]:
        return sorted(self._document_ids)

    def clear(self) -> None:
        self._chunks = {}
        self._document_ids = set()
