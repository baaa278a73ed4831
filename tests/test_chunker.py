"""Tests for the chunker module."""
import pytest

from notebook_rag import config
from notebook_rag.rag.chunker import Document, TextChunker, chunk_text, make_chunk_id
from notebook_rag.rag.errors import InvalidArgumentError


class TestChunkText:
    """Tests for chunk_text function."""

    def test_overlapping_windows(self):
        """Windows advance by window size minus overlap."""
        assert chunk_text("a b c d e", 3, 1) == ["a b c", "c d e"]

    def test_deterministic(self):
        text = " ".join(f"word{i}" for i in range(1234))
        assert chunk_text(text, 100, 10) == chunk_text(text, 100, 10)

    def test_text_shorter_than_window(self):
        assert chunk_text("just four words here", 500, 50) == ["just four words here"]

    def test_final_chunk_may_be_shorter(self):
        chunks = chunk_text("a b c d e f g", 3, 0)
        assert chunks == ["a b c", "d e f", "g"]

    def test_no_trailing_chunk_inside_previous_window(self):
        """Once a window reaches the last word, chunking stops."""
        chunks = chunk_text(" ".join(["w"] * 10), 5, 4)
        assert len(chunks) == 6
        assert all(len(c.split()) == 5 for c in chunks)

    def test_whitespace_is_normalized(self):
        assert chunk_text("  alpha\n\nbeta\tgamma  ", 2, 0) == ["alpha beta", "gamma"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    def test_empty_text_yields_no_chunks(self, text):
        assert chunk_text(text, 3, 1) == []

    @pytest.mark.parametrize(
        "window_size,overlap",
        [(0, 0), (3, 3), (3, 5), (-1, 0), (3, -1)],
    )
    def test_invalid_parameters_rejected(self, window_size, overlap):
        with pytest.raises(InvalidArgumentError):
            chunk_text("a b c d", window_size, overlap)

    def test_invalid_parameters_are_value_errors(self):
        with pytest.raises(ValueError):
            chunk_text("a b c", 0, 0)

    @pytest.mark.parametrize("window_size,overlap", [(1, 0), (3, 1), (7, 3), (50, 49)])
    def test_coverage_in_order(self, window_size, overlap):
        """Dropping each later chunk's overlap rebuilds the word sequence."""
        words = [f"w{i}" for i in range(103)]
        chunks = chunk_text(" ".join(words), window_size, overlap)

        rebuilt = chunks[0].split()
        for chunk in chunks[1:]:
            rebuilt.extend(chunk.split()[overlap:])

        assert rebuilt == words


class TestTextChunker:
    """Tests for TextChunker."""

    def test_defaults_from_config(self):
        chunker = TextChunker()
        assert chunker.chunk_size == config.CHUNK_SIZE
        assert chunker.chunk_overlap == config.CHUNK_OVERLAP

    def test_zero_overlap_is_kept(self):
        assert TextChunker(chunk_size=10, chunk_overlap=0).chunk_overlap == 0

    def test_invalid_configuration_fails_early(self):
        with pytest.raises(InvalidArgumentError):
            TextChunker(chunk_size=10, chunk_overlap=10)

    def test_chunk_document_ids_and_metadata(self):
        document = Document(
            id="doc-1",
            title="Doc",
            text="one two three four five",
            metadata={"source_type": "url"},
        )
        chunks = TextChunker(chunk_size=3, chunk_overlap=1).chunk_document(document)

        assert [c.chunk_id for c in chunks] == ["doc-1_chunk_0", "doc-1_chunk_1"]
        assert [c.index for c in chunks] == [0, 1]
        assert chunks[1].text == "three four five"
        assert chunks[1].document_id == "doc-1"
        assert chunks[1].metadata == {
            "source_type": "url",
            "title": "Doc",
            "document_id": "doc-1",
            "chunk_index": 1,
        }
        # Parent metadata is copied, not shared
        assert document.metadata == {"source_type": "url"}

    def test_chunks_are_immutable(self):
        chunk = TextChunker(chunk_size=3, chunk_overlap=0).chunk_document(
            Document(id="d", title="t", text="a b c")
        )[0]
        with pytest.raises(AttributeError):
            chunk.text = "changed"

    def test_make_chunk_id(self):
        assert make_chunk_id("notes/a.md", 7) == "notes/a.md_chunk_7"
