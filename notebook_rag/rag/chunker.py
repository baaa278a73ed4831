"""Word-window chunking with overlap for the RAG pipeline.

Windows are counted in whitespace-separated words so chunk sizes do not
depend on any tokenizer.
"""
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import structlog

from notebook_rag import config
from notebook_rag.rag.errors import InvalidArgumentError

logger = structlog.get_logger()


@dataclass
class Document:
    """A logical unit of ingested content, owned by the caller."""

    id: str
    title: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """A contiguous word window of a document."""

    chunk_id: str
    document_id: str
    index: int
    text: str
    metadata: Dict[str, Any]


def make_chunk_id(document_id: str, index: int) -> str:
    """Build the deterministic identifier of a document's n-th chunk."""
    return f"{document_id}_chunk_{index}"


def validate_window(window_size: int, overlap: int) -> None:
    """Reject window parameters that would never advance."""
    if window_size <= 0:
        raise InvalidArgumentError(
            f"Window size must be positive, got {window_size}"
        )
    if overlap < 0 or overlap >= window_size:
        raise InvalidArgumentError(
            f"Overlap ({overlap}) must be in [0, window size ({window_size}))"
        )


def chunk_text(text: str, window_size: int, overlap: int) -> List[str]:
    """Split text into overlapping word windows.

    Args:
        text: Text to chunk
        window_size: Number of words per window (must be > 0)
        overlap: Words shared by neighbouring windows (0 <= overlap < window_size)

    Returns:
        Ordered list of chunk strings; empty when the text has no words

    Raises:
        InvalidArgumentError: If the window parameters cannot advance
    """
    validate_window(window_size, overlap)

    words = text.split()
    if not words:
        return []

    step = window_size - overlap
    chunks = []
    start = 0

    while True:
        end = start + window_size
        chunks.append(" ".join(words[start:end]))
        # The last window already reached the final word
        if end >= len(words):
            break
        start += step

    return chunks


class TextChunker:
    """Word-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Words per chunk (default from config)
            chunk_overlap: Words of overlap between chunks (default from config)

        Raises:
            InvalidArgumentError: If overlap is not smaller than chunk size
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )

        validate_window(self.chunk_size, self.chunk_overlap)

        logger.debug(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_document(self, document: Document) -> List[Chunk]:
        """Split a document into immutable Chunk records.

        Args:
            document: Document to chunk

        Returns:
            Chunks in document order
        """
        pieces = chunk_text(document.text, self.chunk_size, self.chunk_overlap)

        chunks = []
        for index, piece in enumerate(pieces):
            metadata = dict(document.metadata)
            metadata.update(
                title=document.title,
                document_id=document.id,
                chunk_index=index,
            )
            chunks.append(
                Chunk(
                    chunk_id=make_chunk_id(document.id, index),
                    document_id=document.id,
                    index=index,
                    text=piece,
                    metadata=metadata,
                )
            )

        logger.info(
            "document_chunked",
            document_id=document.id,
            word_count=len(document.text.split()),
            chunk_count=len(chunks),
        )

        return chunks
