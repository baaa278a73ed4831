"""Embedding backends for the retrieval core.

The core only relies on the Embedder interface. Implementations must
return unit-length vectors of a fixed dimensionality and report
failures as EmbeddingUnavailableError.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
import hashlib
import re
import numpy as np
import structlog

from notebook_rag import config
from notebook_rag.llm_client import OllamaClient
from notebook_rag.rag.errors import EmbeddingUnavailableError

logger = structlog.get_logger()

TOKEN_PATTERN = re.compile(r"\w+")


def normalize(vector: np.ndarray) -> List[float]:
    """Scale a vector to unit length (zero vectors are returned as-is)."""
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        vector = vector / norm
    return vector.astype(np.float32).tolist()


class Embedder(ABC):
    """Text to fixed-length vector."""

    name = "embedder"

    async def warm_up(self) -> None:
        """Load the model or check the remote service is reachable."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a piece of text.

        Raises:
            EmbeddingUnavailableError: If no vector could be produced
        """

    async def close(self) -> None:
        """Release resources held by the backend."""


class HashEmbedder(Embedder):
    """Deterministic bag-of-words embedding via feature hashing.

    Each lowercased alphanumeric token is hashed into one of `dimension`
    buckets with a hash-derived sign. Texts sharing words get positive
    cosine similarity, which is enough for offline runs and tests.
    """

    name = "hash"

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension or config.HASH_EMBEDDING_DIM

    def _bucket(self, token: str):
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    async def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimension, dtype=np.float64)
        for token in TOKEN_PATTERN.findall(text.lower()):
            bucket, sign = self._bucket(token)
            vector[bucket] += sign
        return normalize(vector)


class OllamaEmbedder(Embedder):
    """Embeddings from a model served by Ollama."""

    name = "ollama"

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the Ollama embedder.

        Args:
            client: Ollama client (a default one is created if omitted)
            model: Embedding model name (default from config)
            timeout: Per-request timeout in seconds (default from config)
        """
        self.client = client or OllamaClient()
        self.model = model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self.dimension: Optional[int] = None

    async def warm_up(self) -> None:
        """Probe the model once to detect its dimensionality.

        Raises:
            EmbeddingUnavailableError: If the probe fails
        """
        logger.info("detecting_embedding_dimension", model=self.model)
        probe = await self.embed("test")
        self.dimension = len(probe)
        logger.info("embedding_dimension_detected", model=self.model, dimension=self.dimension)

    async def embed(self, text: str) -> List[float]:
        try:
            embedding = await self.client.embeddings(
                prompt=text, model=self.model, timeout=self.timeout
            )
        except Exception as e:
            raise EmbeddingUnavailableError(
                f"Embedding request to {self.model} failed: {e}"
            ) from e

        if not embedding:
            raise EmbeddingUnavailableError(f"Empty embedding returned by {self.model}")

        return normalize(np.asarray(embedding, dtype=np.float64))


def create_embedder(backend: Optional[str] = None) -> Embedder:
    """Build the configured embedder ("ollama" or "hash")."""
    backend = backend or config.EMBEDDING_BACKEND
    if backend == HashEmbedder.name:
        return HashEmbedder()
    if backend == OllamaEmbedder.name:
        return OllamaEmbedder()
    raise ValueError(f"Unknown embedding backend '{backend}'")
