#!/usr/bin/env python
"""Index a notes directory in memory and answer one retrieval query.

Usage:
    python scripts/ask.py "What is the capital of France?"
    python scripts/ask.py --notes-dir ./notes --top-k 3 "query text"
    python scripts/ask.py --embedder hash --index hnsw "query text"
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from notebook_rag import config
from notebook_rag.rag.embedder import create_embedder
from notebook_rag.rag.errors import RetrievalError
from notebook_rag.rag.md_parser import MarkdownParser, discover_notes
from notebook_rag.rag.service import RetrievalService
from notebook_rag.rag.vector_index import create_index
import structlog

logger = structlog.get_logger()


async def index_notes(service: RetrievalService, notes_dir: Path) -> None:
    """Parse and ingest every note; notes that fail are counted and skipped."""
    await service.init()

    parser = MarkdownParser(root=notes_dir)
    stats = {"documents_indexed": 0, "documents_failed": 0, "chunks_created": 0}
    started = datetime.now()

    for path in discover_notes(notes_dir):
        try:
            chunks = await service.ingest(parser.parse_file(path))
        except (OSError, UnicodeDecodeError, RetrievalError) as e:
            logger.error("file_ingestion_failed", path=str(path), error=str(e))
            stats["documents_failed"] += 1
            continue
        stats["documents_indexed"] += 1
        stats["chunks_created"] += len(chunks)

    elapsed = (datetime.now() - started).total_seconds()
    print(
        f"\n  Indexed {stats['documents_indexed']} note(s), "
        f"{stats['chunks_created']} chunk(s) in {elapsed:.1f}s"
    )
    if stats["documents_failed"]:
        print(f"  Warning: {stats['documents_failed']} note(s) failed to index.")


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(
        description="Ask a question against a notes directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("query", help="Question to retrieve excerpts for")
    parser.add_argument(
        "--notes-dir",
        type=Path,
        default=config.NOTES_DIR,
        help=f"Notes directory (default: {config.NOTES_DIR})",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=config.RETRIEVAL_TOP_K,
        help="Number of excerpts to return",
    )
    parser.add_argument(
        "--embedder",
        choices=["ollama", "hash"],
        default=config.EMBEDDING_BACKEND,
        help="Embedding backend",
    )
    parser.add_argument(
        "--index",
        choices=["flat", "hnsw"],
        default=config.VECTOR_INDEX,
        help="Vector index implementation",
    )

    args = parser.parse_args()

    service = RetrievalService(
        embedder=create_embedder(args.embedder),
        index=create_index(args.index),
    )

    try:
        await index_notes(service, args.notes_dir)
        results = await service.query(args.query, args.top_k)

        print(f"\n{'=' * 60}")
        print(f"  {len(results)} result(s) for: {args.query}")
        print(f"{'=' * 60}\n")

        for rank, result in enumerate(results, 1):
            preview = result.content[:300] + ("..." if len(result.content) > 300 else "")
            print(f"  [{rank}] {result.source}  (score {result.score:.3f})")
            print(f"      {preview}\n")

    except KeyboardInterrupt:
        print("\n\n  Cancelled by user.\n")
        sys.exit(1)
    except (FileNotFoundError, RetrievalError) as e:
        print(f"\n  Error: {e}\n")
        sys.exit(1)
    finally:
        await service.close()


if __name__ == "__main__":
    asyncio.run(main())
