"""Ingest pipeline for loading a document into the vector store.

Orchestrates:
- PDF text extraction
- Text chunking
- Embedding generation (sequential by default, bounded concurrency optional)
- Publishing the finished document to the store

A chunk whose embedding fails is skipped and logged. Quota exhaustion
aborts the load, since every following call would fail the same way.
Nothing is published until every chunk has been processed.
"""
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from docqa import config
from docqa.errors import ExtractionError, ProviderError, ProviderOther, ProviderQuotaExceeded
from docqa.rag.chunker import Chunker, TextChunk, get_chunk_stats, get_chunker
from docqa.rag.embedder import EmbeddingClient
from docqa.rag.pdf_text import extract_file
from docqa.rag.store import StoredChunk, VectorStore

logger = structlog.get_logger()

STATUS_LOADED = "loaded"
STATUS_SKIPPED = "skipped"


@dataclass
class LoadResult:
    """Outcome of a load request."""

    status: str
    document_id: str
    chunks_created: int = 0
    chunks_embedded: int = 0
    chunks_failed: int = 0


class IngestPipeline:
    """Pipeline for loading documents into the RAG system."""

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingClient,
        chunker: Optional[Chunker] = None,
        extractor: Callable[[Path], str] = extract_file,
        single_document: bool = None,
        concurrency: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            store: Vector store that receives loaded documents
            embedder: Embedding client used for every chunk
            chunker: Chunking strategy (default from config)
            extractor: Function turning a file path into text
            single_document: Skip any load once the store holds a document
                (default from config)
            concurrency: Max embedding calls in flight (default from config)
        """
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or get_chunker()
        self.extractor = extractor
        self.single_document = (
            config.SINGLE_DOCUMENT if single_document is None else single_document
        )
        self.concurrency = max(1, concurrency or config.EMBED_CONCURRENCY)

        logger.info(
            "ingest_pipeline_initialized",
            chunk_strategy=self.chunker.name,
            single_document=self.single_document,
            concurrency=self.concurrency,
        )

    def _should_skip(self, document_id: str) -> bool:
        if self.store.has_document(document_id):
            logger.info("document_already_loaded", document_id=document_id)
            return True
        if self.single_document and not self.store.is_empty:
            logger.info(
                "single_document_store_occupied",
                document_id=document_id,
                loaded=[doc.id for doc in self.store.documents],
            )
            return True
        return False

    async def load_document(self, path: Path) -> LoadResult:
        """Extract, chunk, embed and store a PDF.

        Args:
            path: Path to the PDF file

        Returns:
            LoadResult with status "loaded", or "skipped" for a no-op

        Raises:
            DocumentNotFound: If the file does not exist
            ExtractionError: If the file cannot be parsed or holds no text
            ProviderQuotaExceeded: If the embedding quota is exhausted
            ProviderError: If every chunk failed to embed
        """
        document_id = str(path)

        async with self.store.write_lock:
            if self._should_skip(document_id):
                return LoadResult(status=STATUS_SKIPPED, document_id=document_id)

            logger.info("loading_document", document_id=document_id)
            text = await asyncio.to_thread(self.extractor, Path(path))
            return await self._ingest_locked(document_id, text)

    async def load_text(self, document_id: str, text: str) -> LoadResult:
        """Chunk, embed and store text that has already been extracted.

        Same skip rules and errors as ``load_document``.
        """
        async with self.store.write_lock:
            if self._should_skip(document_id):
                return LoadResult(status=STATUS_SKIPPED, document_id=document_id)
            return await self._ingest_locked(document_id, text)

    async def _ingest_locked(self, document_id: str, text: str) -> LoadResult:
        chunks = self.chunker.chunk_text(text)
        if not chunks:
            raise ExtractionError(f"No text to index in {document_id}")

        logger.info("document_chunked", document_id=document_id, **get_chunk_stats(chunks))

        embeddings = await self._embed_chunks(chunks)

        staged = [
            StoredChunk(heading=chunk.heading, text=chunk.text, embedding=embedding)
            for chunk, embedding in zip(chunks, embeddings)
            if not isinstance(embedding, ProviderError)
        ]
        failures = [e for e in embeddings if isinstance(e, ProviderError)]

        if not staged:
            logger.error(
                "document_load_failed",
                document_id=document_id,
                chunks_failed=len(failures),
            )
            raise failures[-1]

        try:
            self.store.add_locked(document_id, staged)
        except ValueError as e:
            # Mixed dimensions mean the embedding model changed between loads
            logger.error("document_dimension_mismatch", document_id=document_id, error=str(e))
            raise ProviderOther(str(e)) from e

        result = LoadResult(
            status=STATUS_LOADED,
            document_id=document_id,
            chunks_created=len(chunks),
            chunks_embedded=len(staged),
            chunks_failed=len(failures),
        )

        logger.info(
            "document_loaded",
            document_id=document_id,
            chunks_created=result.chunks_created,
            chunks_embedded=result.chunks_embedded,
            chunks_failed=result.chunks_failed,
        )

        return result

    async def _embed_chunks(self, chunks: List[TextChunk]) -> list:
        """Embed chunks in order; failed chunks yield their ProviderError."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def embed_one(chunk: TextChunk):
            async with semaphore:
                logger.info(
                    "embedding_chunk",
                    chunk=f"{chunk.chunk_index + 1}/{len(chunks)}",
                    heading=chunk.heading,
                )
                try:
                    embedding = await self.embedder.embed(chunk.text)
                except ProviderQuotaExceeded:
                    raise
                except ProviderError as e:
                    logger.warning(
                        "chunk_embedding_skipped",
                        chunk_index=chunk.chunk_index,
                        heading=chunk.heading,
                        error=str(e),
                        kind=e.kind,
                    )
                    return e

                logger.debug(
                    "chunk_embedded",
                    chunk_index=chunk.chunk_index,
                    dimension=len(embedding),
                )
                return embedding

        if self.concurrency == 1:
            return [await embed_one(chunk) for chunk in chunks]

        # embed_one raises only on quota; cancel whatever is still queued
        tasks = [asyncio.create_task(embed_one(chunk)) for chunk in chunks]
        try:
            return await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
