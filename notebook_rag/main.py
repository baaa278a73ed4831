"""Quart application exposing the retrieval core over HTTP."""
import logging
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError
from quart import Quart, jsonify, request

from notebook_rag import config
from notebook_rag.llm_client import OllamaClient
from notebook_rag.rag.chunker import Document
from notebook_rag.rag.context import GenerationOrchestrator, Source
from notebook_rag.rag.embedder import create_embedder
from notebook_rag.rag.errors import (
    DimensionMismatchError,
    EmbeddingUnavailableError,
    InitializationFailedError,
    InvalidArgumentError,
)
from notebook_rag.rag.service import RetrievalService, SearchResult


def configure_logging() -> None:
    """Configure structured JSON logging on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", level=config.LOG_LEVEL)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()


class IngestRequest(BaseModel):
    id: str = Field(min_length=1)
    title: str = "Untitled"
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=2000)
    limit: int = Field(default=config.RETRIEVAL_TOP_K, ge=1, le=50)


class SourceModel(BaseModel):
    id: str
    title: str = "Untitled"
    type: str = "text"
    content: str = ""


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    sources: List[SourceModel] = Field(default_factory=list)


def _result_payload(result: SearchResult) -> Dict[str, Any]:
    return {
        "chunk_id": result.chunk_id,
        "content": result.content,
        "score": round(result.score, 4),
        "source": result.source,
        "metadata": result.metadata,
    }


def create_app(
    service: Optional[RetrievalService] = None,
    orchestrator: Optional[GenerationOrchestrator] = None,
    llm_client: Optional[OllamaClient] = None,
) -> Quart:
    """Build the Quart app around one shared retrieval service.

    Args:
        service: Retrieval service (configured default if not provided)
        orchestrator: Generation orchestrator (built around the service if not provided)
        llm_client: Ollama client for chat answers and readiness checks
    """
    llm_client = llm_client or OllamaClient()
    service = service or RetrievalService(embedder=create_embedder())
    orchestrator = orchestrator or GenerationOrchestrator(
        service, complete=llm_client.complete
    )

    app = Quart(__name__)
    app.config["RETRIEVAL_SERVICE"] = service

    @app.before_serving
    async def startup():
        try:
            await service.init()
        except InitializationFailedError as e:
            # Retried lazily on the first ingest or query
            logger.warning("startup_init_failed", error=str(e))

    @app.after_serving
    async def shutdown():
        await service.close()

    @app.errorhandler(ValidationError)
    async def validation_error(error):
        details = [
            {"loc": [str(part) for part in e["loc"]], "msg": e["msg"]}
            for e in error.errors()
        ]
        return jsonify({"error": "Invalid request", "details": details}), 400

    @app.errorhandler(InvalidArgumentError)
    async def invalid_argument(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(EmbeddingUnavailableError)
    async def embedding_unavailable(error):
        logger.error("embedding_unavailable", error=str(error))
        return jsonify({"error": "Embedding service unavailable"}), 503

    @app.errorhandler(InitializationFailedError)
    async def initialization_failed(error):
        return jsonify({"error": "Retrieval service not initialized"}), 503

    @app.errorhandler(DimensionMismatchError)
    async def dimension_mismatch(error):
        logger.error("dimension_mismatch", expected=error.expected, actual=error.actual)
        return jsonify({"error": str(error)}), 500

    @app.route("/api/documents", methods=["POST"])
    async def ingest_document():
        """Ingest one document.

        Expects JSON body: {"id": "...", "title": "...", "text": "...", "metadata": {...}}
        Returns 201 with the created chunk ids.
        """
        body = IngestRequest.model_validate(await request.get_json(silent=True) or {})
        chunks = await service.ingest(
            Document(id=body.id, title=body.title, text=body.text, metadata=body.metadata)
        )
        return jsonify({
            "document_id": body.id,
            "chunk_count": len(chunks),
            "chunk_ids": [chunk.chunk_id for chunk in chunks],
        }), 201

    @app.route("/api/documents", methods=["DELETE"])
    async def clear_documents():
        await service.clear()
        return "", 204

    @app.route("/api/query", methods=["POST"])
    async def query():
        """Return the excerpts most similar to a query, best first."""
        body = QueryRequest.model_validate(await request.get_json(silent=True) or {})
        results = await service.query(body.query, body.limit)
        return jsonify({"results": [_result_payload(r) for r in results]})

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a question from retrieved excerpts or the full sources.

        Returns JSON:
        {
            "response": "assistant response text",
            "mode": "retrieval" | "full_context",
            "sources": [...]  // excerpts used, when retrieval succeeded
        }
        """
        body = ChatRequest.model_validate(await request.get_json(silent=True) or {})
        sources = [Source(**s.model_dump()) for s in body.sources]

        try:
            answer, context = await orchestrator.answer(body.message, sources)
        except Exception as e:
            logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({
                "error": "An error occurred processing your request. Please try again."
            }), 500

        return jsonify({
            "response": answer,
            "model": config.CHAT_MODEL,
            "mode": context.mode,
            "sources": [_result_payload(r) for r in context.results],
        })

    @app.route("/api/stats")
    async def stats():
        return jsonify(service.stats())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe: the embedder is warmed up and Ollama answers."""
        checks = {"status": "healthy", "retrieval": service.is_ready, "ollama": False}

        try:
            await llm_client.list_models()
            checks["ollama"] = True
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            checks["error"] = str(e)

        if not (checks["retrieval"] and checks["ollama"]):
            checks["status"] = "unhealthy"
        return jsonify(checks), 200 if checks["status"] == "healthy" else 503

    @app.route("/health/live")
    async def health_live():
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app


def run() -> None:
    configure_logging()
    create_app().run(host="127.0.0.1", port=5001)


if __name__ == "__main__":
    run()
