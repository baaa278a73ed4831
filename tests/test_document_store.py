"""Tests for the document store module."""
import pytest

from notebook_rag.rag.document_store import DocumentStore
from notebook_rag.rag.errors import ChunkNotFoundError


class TestDocumentStore:
    """Tests for DocumentStore."""

    def test_put_and_get(self):
        store = DocumentStore()
        store.put("d_chunk_0", "hello world", {"document_id": "d", "chunk_index": 0})

        stored = store.get("d_chunk_0")

        assert stored.content == "hello world"
        assert stored.metadata["chunk_index"] == 0
        assert "d_chunk_0" in store
        assert len(store) == 1

    def test_metadata_is_copied(self):
        store = DocumentStore()
        metadata = {"document_id": "d"}
        store.put("d_chunk_0", "x", metadata)
        metadata["document_id"] = "changed"

        assert store.get("d_chunk_0").metadata["document_id"] == "d"

    def test_missing_chunk(self):
        store = DocumentStore()
        with pytest.raises(ChunkNotFoundError) as excinfo:
            store.get("nope")
        assert excinfo.value.chunk_id == "nope"
        assert "nope" in str(excinfo.value)

    def test_missing_chunk_is_key_error(self):
        with pytest.raises(KeyError):
            DocumentStore().get("nope")

    def test_document_tracking(self):
        store = DocumentStore()
        store.put("b_chunk_0", "x", {"document_id": "b"})
        store.put("a_chunk_0", "y", {"document_id": "a"})
        store.put("a_chunk_1", "z", {"document_id": "a"})
        store.put("loose", "w", {})

        assert store.has_document("a")
        assert not store.has_document("c")
        assert store.document_ids() == ["a", "b"]
        assert sorted(store) == ["a_chunk_0", "a_chunk_1", "b_chunk_0", "loose"]

    def test_clear_is_total_and_idempotent(self):
        store = DocumentStore()
        store.put("a_chunk_0", "x", {"document_id": "a"})

        store.clear()
        store.clear()

        assert len(store) == 0
        assert not store.has_document("a")
        with pytest.raises(ChunkNotFoundError):
            store.get("a_chunk_0")
