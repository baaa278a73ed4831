"""Nearest-neighbour indexes over embedding vectors.

Two implementations share one contract:
- FlatVectorIndex: exact brute-force scan over a numpy matrix
- HNSWVectorIndex: faiss HNSW graph for larger corpora

Scores are inner products between the query and stored vectors. The
embedder produces unit-length vectors, so the score is the cosine
similarity and higher is better. Vectors are never renormalized here.
Ties are broken by insertion order.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import faiss
import structlog

from notebook_rag import config
from notebook_rag.rag.errors import DimensionMismatchError, InvalidArgumentError

logger = structlog.get_logger()

Vector = Sequence[float]


class VectorIndex(ABC):
    """Approximate nearest-neighbour index keyed by chunk id."""

    kind = "abstract"

    def __init__(self):
        self.dimension: Optional[int] = None
        self._ids: List[str] = []

    def __len__(self) -> int:
        return len(self._ids)

    def _validate_batch(self, entries: Sequence[Tuple[str, Vector]]) -> np.ndarray:
        """Check every vector of a batch before anything is mutated.

        Returns:
            float32 matrix with one row per entry

        Raises:
            InvalidArgumentError: If a vector is empty
            DimensionMismatchError: If lengths disagree with the index or each other
        """
        expected = self.dimension
        for chunk_id, vector in entries:
            if len(vector) == 0:
                raise InvalidArgumentError(f"Empty vector for {chunk_id}")
            if expected is None:
                expected = len(vector)
            elif len(vector) != expected:
                raise DimensionMismatchError(expected, len(vector))

        return np.asarray([vector for _, vector in entries], dtype=np.float32)

    def _validate_query(self, query_vector: Vector) -> np.ndarray:
        if len(query_vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(query_vector))
        return np.asarray(query_vector, dtype=np.float32)

    def add(self, entries: Sequence[Tuple[str, Vector]]) -> None:
        """Add a batch of (chunk_id, vector) pairs.

        The first vector ever added fixes the dimensionality. A batch that
        fails validation leaves the index unchanged.

        Raises:
            DimensionMismatchError: If any vector has the wrong length
        """
        if not entries:
            return

        matrix = self._validate_batch(entries)
        if self.dimension is None:
            self.dimension = matrix.shape[1]
            self._reset_structure()

        self._add_matrix(matrix)
        self._ids.extend(chunk_id for chunk_id, _ in entries)

        logger.debug(
            "vectors_added",
            index=self.kind,
            count=len(entries),
            total_vectors=len(self._ids),
        )

    def search(self, query_vector: Vector, k: int) -> List[Tuple[str, float]]:
        """Return up to k (chunk_id, score) pairs, best first.

        An empty index returns an empty list regardless of the query.

        Raises:
            InvalidArgumentError: If k is not positive
            DimensionMismatchError: If the query has the wrong length
        """
        if k <= 0:
            raise InvalidArgumentError(f"k must be positive, got {k}")
        if not self._ids:
            return []

        query = self._validate_query(query_vector)
        k = min(k, len(self._ids))

        positions, scores = self._search(query, k)

        # Stable ordering: score descending, then insertion position
        ranked = sorted(zip(positions, scores), key=lambda item: (-item[1], item[0]))
        return [(self._ids[pos], float(score)) for pos, score in ranked[:k]]

    def clear(self) -> None:
        """Drop all entries and forget the dimensionality."""
        self.dimension = None
        self._ids = []
        self._reset_structure()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "index_type": self.kind,
            "vector_count": len(self._ids),
            "dimension": self.dimension,
        }

    @abstractmethod
    def _reset_structure(self) -> None:
        """Rebuild an empty internal structure for the current dimension."""

    @abstractmethod
    def _add_matrix(self, matrix: np.ndarray) -> None:
        """Append validated rows to the internal structure."""

    @abstractmethod
    def _search(self, query: np.ndarray, k: int) -> Tuple[List[int], List[float]]:
        """Return insertion positions and scores of up to k neighbours."""


class FlatVectorIndex(VectorIndex):
    """Exact cosine scan. Fine up to tens of thousands of chunks."""

    kind = "flat"

    def __init__(self):
        super().__init__()
        self._matrix: Optional[np.ndarray] = None

    def _reset_structure(self) -> None:
        self._matrix = None

    def _add_matrix(self, matrix: np.ndarray) -> None:
        if self._matrix is None:
            self._matrix = matrix
        else:
            self._matrix = np.vstack([self._matrix, matrix])

    def _search(self, query: np.ndarray, k: int) -> Tuple[List[int], List[float]]:
        scores = self._matrix @ query
        order = np.argsort(-scores, kind="stable")[:k]
        return order.tolist(), scores[order].tolist()


class HNSWVectorIndex(VectorIndex):
    """faiss HNSW graph over inner product."""

    kind = "hnsw"

    def __init__(
        self,
        m: Optional[int] = None,
        ef_construction: Optional[int] = None,
        ef_search: Optional[int] = None,
    ):
        """Initialize the HNSW index.

        Args:
            m: Graph neighbours per node (default from config)
            ef_construction: Build-time candidate list size (default from config)
            ef_search: Query-time candidate list size (default from config)
        """
        super().__init__()
        self.m = m or config.HNSW_M
        self.ef_construction = ef_construction or config.HNSW_EF_CONSTRUCTION
        self.ef_search = ef_search or config.HNSW_EF_SEARCH
        self.index: Optional[faiss.Index] = None

    def _reset_structure(self) -> None:
        if self.dimension is None:
            self.index = None
            return

        self.index = faiss.IndexHNSWFlat(
            self.dimension, self.m, faiss.METRIC_INNER_PRODUCT
        )
        self.index.hnsw.efConstruction = self.ef_construction

        logger.info(
            "hnsw_index_initialized",
            dimension=self.dimension,
            m=self.m,
            ef_construction=self.ef_construction,
        )

    def _add_matrix(self, matrix: np.ndarray) -> None:
        self.index.add(np.ascontiguousarray(matrix))

    def _search(self, query: np.ndarray, k: int) -> Tuple[List[int], List[float]]:
        self.index.hnsw.efSearch = max(self.ef_search, k)
        scores, positions = self.index.search(query.reshape(1, -1), k)

        hits = [
            (int(pos), float(score))
            for pos, score in zip(positions[0], scores[0])
            if pos >= 0
        ]
        return [pos for pos, _ in hits], [score for _, score in hits]

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats.update(m=self.m, ef_search=self.ef_search)
        return stats


INDEX_TYPES = {
    FlatVectorIndex.kind: FlatVectorIndex,
    HNSWVectorIndex.kind: HNSWVectorIndex,
}


def create_index(kind: Optional[str] = None, **params) -> VectorIndex:
    """Build a vector index by name ("flat" or "hnsw", default from config).

    Raises:
        InvalidArgumentError: If the index kind is unknown
    """
    kind = kind or config.VECTOR_INDEX
    try:
        index_cls = INDEX_TYPES[kind]
    except KeyError:
        raise InvalidArgumentError(
            f"Unknown vector index '{kind}', expected one of {sorted(INDEX_TYPES)}"
        ) from None
    return index_cls(**params)
