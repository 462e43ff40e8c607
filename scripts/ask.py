#!/usr/bin/env python
"""Load a PDF and ask questions about it from the command line.

Usage:
    python scripts/ask.py paper.pdf -q "What is the main result?"
    python scripts/ask.py paper.pdf --strategy fixed     # fixed-size chunks
    python scripts/ask.py paper.pdf                      # interactive prompt
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from docqa import config
from docqa.errors import DocQAError, InputError, ProviderQuotaExceeded
from docqa.llm_client import GeminiClient
from docqa.rag.chunker import get_chunker
from docqa.rag.composer import AnswerComposer
from docqa.rag.embedder import EmbeddingClient
from docqa.rag.ingest import IngestPipeline
from docqa.rag.qa import QAService
from docqa.rag.retriever import Retriever
from docqa.rag.store import VectorStore

logger = structlog.get_logger()


def print_load_summary(result, elapsed_seconds: float) -> None:
    print(f"\n{'=' * 60}")
    print(f"  Document loaded: {result.document_id}")
    print(f"{'=' * 60}\n")
    print(f"  📝 Chunks created:   {result.chunks_created}")
    print(f"  🧮 Chunks embedded:  {result.chunks_embedded}")
    print(f"  ❌ Chunks skipped:   {result.chunks_failed}")
    print(f"  ⏱️  Time elapsed:     {elapsed_seconds:.1f}s")
    print(f"\n{'=' * 60}\n")

    if result.chunks_failed > 0:
        print(f"⚠️  Warning: {result.chunks_failed} chunk(s) could not be embedded.")
        print(f"   Check logs for details.\n")


def print_answer(question: str, answer) -> None:
    print(f"❓ {question}")
    print(f"   [{answer.tier}]")
    for source in answer.sources:
        print(f"   • {source['heading']} ({source['similarity']:.3f})")
    print(f"\n{answer.text}\n")


async def interactive_loop(qa_service, read=input) -> int:
    """Answer questions from a prompt until a blank line or EOF.

    A rejected question (empty, too long) is reported and the loop goes on.

    Returns:
        Number of questions answered
    """
    answered = 0
    while True:
        try:
            question = read("Question (blank to quit): ").strip()
        except EOFError:
            break
        if not question:
            break

        try:
            answer = await qa_service.ask(question)
        except InputError as e:
            print(f"⚠️  {e}\n")
            continue

        print_answer(question, answer)
        answered += 1

    return answered


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(
        description="Ask questions about a PDF document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ask.py paper.pdf -q "What is the main result?"
  python scripts/ask.py paper.pdf --strategy fixed
        """,
    )

    parser.add_argument("path", type=Path, help="PDF file to load")

    parser.add_argument(
        "--question",
        "-q",
        action="append",
        default=[],
        help="Question to ask (repeatable); interactive if omitted",
    )

    parser.add_argument(
        "--strategy",
        choices=["heading", "fixed"],
        default=None,
        help=f"Chunking strategy (default: {config.CHUNK_STRATEGY})",
    )

    args = parser.parse_args()

    print("\n📋 Configuration:")
    print(f"   Embedding model:      {config.EMBEDDING_MODEL}")
    print(f"   Chat model:           {config.CHAT_MODEL}")
    print(f"   Chunk strategy:       {args.strategy or config.CHUNK_STRATEGY}")
    print(f"   Relevance threshold:  {config.RELEVANCE_THRESHOLD}")
    print(f"   Partial threshold:    {config.PARTIAL_THRESHOLD}")

    provider = GeminiClient()
    store = VectorStore()
    embedder = EmbeddingClient(provider)
    pipeline = IngestPipeline(store, embedder, chunker=get_chunker(args.strategy))
    retriever = Retriever(store)
    qa_service = QAService(embedder, retriever, AnswerComposer(provider, policy=retriever.policy))

    try:
        start_time = datetime.now()
        result = await pipeline.load_document(args.path)
        print_load_summary(result, (datetime.now() - start_time).total_seconds())

        questions = args.question
        if questions:
            for question in questions:
                print_answer(question, await qa_service.ask(question))
            return

        await interactive_loop(qa_service)

    except KeyboardInterrupt:
        print("\n\n⚠️  Cancelled by user.\n")
        sys.exit(1)

    except ProviderQuotaExceeded as e:
        print(f"\n❌ {e}\n")
        sys.exit(2)

    except DocQAError as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ask_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
