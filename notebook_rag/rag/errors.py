"""Exceptions raised by the retrieval core.

Every error derives from RetrievalError so hosts can catch the whole
family when they only need to decide between retrieval and fallback.
"""


class RetrievalError(Exception):
    """Base class for retrieval core failures."""


class InvalidArgumentError(RetrievalError, ValueError):
    """Malformed parameters from the caller. Not retryable."""


class DimensionMismatchError(RetrievalError):
    """A vector's length disagrees with the index dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class EmbeddingUnavailableError(RetrievalError):
    """The embedder could not produce a vector. Retryable with backoff."""


class InitializationFailedError(RetrievalError):
    """Warming up the embedder failed. Retried lazily on the next call."""


class ChunkNotFoundError(RetrievalError, KeyError):
    """The document store has no entry for a chunk id."""

    def __init__(self, chunk_id: str):
        self.chunk_id = chunk_id
        super().__init__(chunk_id)

    def __str__(self) -> str:
        return f"Chunk not found: {self.chunk_id}"
