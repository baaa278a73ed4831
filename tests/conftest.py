"""Pytest configuration and shared fixtures for the test suite."""
import pytest

from notebook_rag.rag.chunker import Document
from notebook_rag.rag.embedder import HashEmbedder
from notebook_rag.rag.service import RetrievalService
from notebook_rag.rag.vector_index import FlatVectorIndex


@pytest.fixture
def hash_embedder() -> HashEmbedder:
    """Deterministic offline embedder."""
    return HashEmbedder(dimension=384)


@pytest.fixture
def service(hash_embedder) -> RetrievalService:
    """Retrieval service over an exact index with default chunking."""
    return RetrievalService(embedder=hash_embedder, index=FlatVectorIndex())


@pytest.fixture
def small_chunk_service() -> RetrievalService:
    """Retrieval service producing three-word chunks without overlap."""
    return RetrievalService(
        embedder=HashEmbedder(dimension=384),
        index=FlatVectorIndex(),
        chunk_size=3,
        chunk_overlap=0,
    )


@pytest.fixture
def france_document() -> Document:
    return Document(
        id="geo",
        title="Geography notes",
        text="The capital of France is Paris.",
        metadata={"source_type": "text"},
    )


@pytest.fixture
def fruit_document() -> Document:
    return Document(
        id="fruit",
        title="Fruit notes",
        text="Bananas are yellow fruit rich in potassium.",
        metadata={"source_type": "text"},
    )
