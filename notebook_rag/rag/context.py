"""Context assembly for generation, with full-context fallback.

Chat questions are grounded in retrieved excerpts. When retrieval returns
nothing or fails, the raw text of the notebook sources is stuffed into the
prompt instead. Other generation modes always use the full sources.
"""
from typing import Awaitable, Callable, List, Optional, Tuple
from dataclasses import dataclass, field
import structlog

from notebook_rag import config
from notebook_rag.rag.errors import RetrievalError
from notebook_rag.rag.service import RetrievalService, SearchResult

logger = structlog.get_logger()

SEPARATOR = "\n\n---\n\n"
TEXT_SOURCE_TYPES = ("text", "url", "ppt")

MODE_RETRIEVAL = "retrieval"
MODE_FULL_CONTEXT = "full_context"

CHAT_SYSTEM_PROMPT = """You are a research assistant answering questions about the user's notebook sources.
- Answer from the provided context; say so when the context does not contain the answer.
- Mention which excerpt or source supports each claim when it helps the reader.
- Be concise."""

Completion = Callable[[str, str, str], Awaitable[str]]


@dataclass
class Source:
    """A notebook source as supplied by the host application."""

    id: str
    title: str
    type: str
    content: str


@dataclass
class GenerationContext:
    """Prompt context plus how it was produced."""

    text: str
    mode: str
    results: List[SearchResult] = field(default_factory=list)


def format_excerpts(results: List[SearchResult]) -> str:
    return SEPARATOR.join(
        f"RELEVANT_EXCERPT_{i} (Score: {result.score:.2f}):\n{result.content}"
        for i, result in enumerate(results, 1)
    )


def format_full_context(sources: List[Source], max_chars: Optional[int] = None) -> str:
    """Concatenate text-like sources, truncated to max_chars."""
    max_chars = max_chars or config.MAX_CONTEXT_CHARS
    text = SEPARATOR.join(
        f"SOURCE ({source.type.upper()}): {source.title}\nCONTENT: {source.content}"
        for source in sources
        if source.type in TEXT_SOURCE_TYPES
    )
    if len(text) > max_chars:
        logger.warning("full_context_truncated", length=len(text), max_chars=max_chars)
        text = text[:max_chars] + "..."
    return text


class GenerationOrchestrator:
    """Builds grounded prompts and asks the LLM to answer them."""

    def __init__(
        self,
        service: RetrievalService,
        complete: Optional[Completion] = None,
        top_k: Optional[int] = None,
        max_chars: Optional[int] = None,
    ):
        """Initialize the orchestrator.

        Args:
            service: Retrieval service to ground chat answers
            complete: Async LLM call taking (prompt, context, system_prompt)
            top_k: Number of excerpts to retrieve (default from config)
            max_chars: Cap on full-context length (default from config)
        """
        self.service = service
        self.complete = complete
        self.top_k = top_k or config.RETRIEVAL_TOP_K
        self.max_chars = max_chars or config.MAX_CONTEXT_CHARS

    async def build_context(
        self,
        sources: List[Source],
        query: Optional[str] = None,
    ) -> GenerationContext:
        """Assemble context for a chat query, or full context without one.

        Retrieval failures never propagate: they are logged and the full
        sources are used instead.
        """
        if not query:
            return GenerationContext(
                text=format_full_context(sources, self.max_chars),
                mode=MODE_FULL_CONTEXT,
            )

        try:
            results = await self.service.query(query, self.top_k)
        except RetrievalError as e:
            logger.warning(
                "retrieval_failed_using_full_context",
                error=str(e),
                error_type=type(e).__name__,
            )
            results = []
        else:
            if not results:
                logger.info("no_relevant_chunks_using_full_context")

        if results:
            logger.info("retrieval_context_built", excerpt_count=len(results))
            return GenerationContext(
                text=format_excerpts(results),
                mode=MODE_RETRIEVAL,
                results=results,
            )

        return GenerationContext(
            text=format_full_context(sources, self.max_chars),
            mode=MODE_FULL_CONTEXT,
        )

    async def answer(self, query: str, sources: List[Source]) -> Tuple[str, GenerationContext]:
        """Answer a chat question.

        Returns:
            Tuple of (answer text, GenerationContext used)

        Raises:
            RuntimeError: If no completion function was configured
        """
        if self.complete is None:
            raise RuntimeError("No LLM completion function configured")

        context = await self.build_context(sources, query=query)
        answer = await self.complete(query, context.text, CHAT_SYSTEM_PROMPT)

        logger.info(
            "chat_answered",
            mode=context.mode,
            context_length=len(context.text),
            answer_length=len(answer),
        )

        return answer, context
