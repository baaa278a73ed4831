"""Tests for generation context assembly and fallback."""
from unittest.mock import AsyncMock

import pytest

from notebook_rag.rag.chunker import Document
from notebook_rag.rag.context import (
    CHAT_SYSTEM_PROMPT,
    MODE_FULL_CONTEXT,
    MODE_RETRIEVAL,
    GenerationOrchestrator,
    Source,
    format_full_context,
)
from notebook_rag.rag.service import RetrievalService
from notebook_rag.rag.vector_index import FlatVectorIndex

from tests.fakes import ScriptedEmbedder

SOURCES = [
    Source(id="s1", title="Geography", type="text", content="The capital of France is Paris."),
    Source(id="s2", title="Wiki page", type="url", content="Paris has many museums."),
    Source(id="s3", title="Sales", type="data", content="region,total\nEU,10"),
    Source(id="s4", title="app.py", type="code", content="print('hi')"),
]


class TestFormatFullContext:
    """Tests for full-context stuffing."""

    def test_only_text_like_sources(self):
        text = format_full_context(SOURCES)

        assert text == (
            "SOURCE (TEXT): Geography\nCONTENT: The capital of France is Paris."
            "\n\n---\n\n"
            "SOURCE (URL): Wiki page\nCONTENT: Paris has many museums."
        )

    def test_truncated_to_max_chars(self):
        text = format_full_context(SOURCES, max_chars=20)
        assert text == "SOURCE (TEXT): Geogr..."

    def test_no_sources(self):
        assert format_full_context([]) == ""


class TestGenerationOrchestrator:
    """Tests for GenerationOrchestrator."""

    @pytest.mark.asyncio
    async def test_uses_retrieved_excerpts(self, service, france_document):
        await service.ingest(france_document)
        orchestrator = GenerationOrchestrator(service, top_k=5)

        context = await orchestrator.build_context(SOURCES, query="What is the capital of France?")

        assert context.mode == MODE_RETRIEVAL
        assert context.text.startswith("RELEVANT_EXCERPT_1 (Score: ")
        assert context.text.endswith("):\nThe capital of France is Paris.")
        assert len(context.results) == 1

    @pytest.mark.asyncio
    async def test_excerpts_are_numbered_and_separated(self, small_chunk_service):
        await small_chunk_service.ingest(
            Document(id="d", title="D", text="red green blue cyan magenta yellow")
        )
        orchestrator = GenerationOrchestrator(small_chunk_service, top_k=2)

        context = await orchestrator.build_context([], query="red green")

        assert context.text.count("RELEVANT_EXCERPT_") == 2
        assert "\n\n---\n\nRELEVANT_EXCERPT_2" in context.text

    @pytest.mark.asyncio
    async def test_empty_index_falls_back(self, service):
        orchestrator = GenerationOrchestrator(service)

        context = await orchestrator.build_context(SOURCES, query="capital of France")

        assert context.mode == MODE_FULL_CONTEXT
        assert context.text == format_full_context(SOURCES)
        assert context.results == []

    @pytest.mark.asyncio
    async def test_failed_retrieval_falls_back(self, france_document):
        embedder = ScriptedEmbedder(fail_on_calls={2})
        service = RetrievalService(embedder=embedder, index=FlatVectorIndex())
        await service.ingest(france_document)
        orchestrator = GenerationOrchestrator(service)

        context = await orchestrator.build_context(SOURCES, query="capital of France")

        assert context.mode == MODE_FULL_CONTEXT
        assert "SOURCE (TEXT): Geography" in context.text

    @pytest.mark.asyncio
    async def test_failed_initialization_falls_back(self):
        service = RetrievalService(embedder=ScriptedEmbedder(fail_warm_up=1))
        orchestrator = GenerationOrchestrator(service)

        context = await orchestrator.build_context(SOURCES, query="anything")

        assert context.mode == MODE_FULL_CONTEXT

    @pytest.mark.asyncio
    async def test_no_query_uses_full_context(self, service, france_document):
        await service.ingest(france_document)
        orchestrator = GenerationOrchestrator(service)

        context = await orchestrator.build_context(SOURCES)

        assert context.mode == MODE_FULL_CONTEXT

    @pytest.mark.asyncio
    async def test_answer_calls_completion(self, service, france_document):
        await service.ingest(france_document)
        complete = AsyncMock(return_value="Paris.")
        orchestrator = GenerationOrchestrator(service, complete=complete)

        answer, context = await orchestrator.answer("What is the capital of France?", SOURCES)

        assert answer == "Paris."
        assert context.mode == MODE_RETRIEVAL
        complete.assert_awaited_once_with(
            "What is the capital of France?", context.text, CHAT_SYSTEM_PROMPT
        )

    @pytest.mark.asyncio
    async def test_answer_requires_completion(self, service):
        with pytest.raises(RuntimeError):
            await GenerationOrchestrator(service).answer("question", SOURCES)
