"""In-memory vector store for loaded documents.

Handles:
- Publishing fully embedded documents
- Flat, ordered access to every stored chunk
- Write exclusion between concurrent loads

Readers never take the lock: they read an immutable tuple of documents
that is swapped in one assignment when a document is published.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class StoredChunk:
    """A chunk together with its embedding."""

    heading: str
    text: str
    embedding: np.ndarray


@dataclass(frozen=True)
class Document:
    """A loaded document and its chunks in source order."""

    id: str
    chunks: Tuple[StoredChunk, ...]

    @property
    def dimension(self) -> Optional[int]:
        return self.chunks[0].embedding.shape[0] if self.chunks else None


def _freeze(embedding) -> np.ndarray:
    vector = np.array(embedding, dtype=np.float64)
    if vector.ndim != 1 or vector.size == 0:
        raise ValueError("Embedding must be a non-empty 1-D vector")
    vector.setflags(write=False)
    return vector


class VectorStore:
    """Process-wide store of documents, created empty at startup."""

    def __init__(self):
        self._documents: Tuple[Document, ...] = ()
        self._write_lock = asyncio.Lock()

    @property
    def documents(self) -> Tuple[Document, ...]:
        """Snapshot of the published documents in load order."""
        return self._documents

    @property
    def is_empty(self) -> bool:
        return not self._documents

    @property
    def dimension(self) -> Optional[int]:
        """Embedding dimension shared by every stored chunk (None when empty)."""
        for doc in self._documents:
            if doc.dimension is not None:
                return doc.dimension
        return None

    @property
    def write_lock(self) -> asyncio.Lock:
        """Lock held by loads for their whole check-embed-publish sequence."""
        return self._write_lock

    def has_document(self, document_id: str) -> bool:
        return any(doc.id == document_id for doc in self._documents)

    async def add(self, document_id: str, chunks: Iterable[Any]) -> Document:
        """Publish a document.

        Args:
            document_id: Source path or identifier
            chunks: Objects with ``heading``, ``text`` and ``embedding``

        Returns:
            The published Document

        Raises:
            ValueError: On an empty embedding or mixed dimensions
        """
        async with self._write_lock:
            return self.add_locked(document_id, chunks)

    def add_locked(self, document_id: str, chunks: Iterable[Any]) -> Document:
        """Publish a document; the caller must hold ``write_lock``."""
        stored = tuple(
            StoredChunk(heading=c.heading, text=c.text, embedding=_freeze(c.embedding))
            for c in chunks
        )

        dimensions = {c.embedding.shape[0] for c in stored}
        if len(dimensions) > 1:
            raise ValueError(
                f"Embedding dimension mismatch in document {document_id}: "
                f"{sorted(dimensions)}"
            )
        if self.dimension is not None and dimensions and dimensions != {self.dimension}:
            raise ValueError(
                f"Embedding dimension mismatch: document {document_id} has "
                f"{dimensions.pop()}, store holds {self.dimension}"
            )

        document = Document(id=document_id, chunks=stored)
        self._documents = self._documents + (document,)

        logger.info(
            "document_stored",
            document_id=document_id,
            chunk_count=len(stored),
            dimension=document.dimension,
            total_documents=len(self._documents),
        )

        return document

    def all_chunks(self) -> List[Tuple[str, str, np.ndarray]]:
        """Every stored chunk as (heading, text, embedding), load order then chunk order."""
        return [
            (chunk.heading, chunk.text, chunk.embedding)
            for doc in self._documents
            for chunk in doc.chunks
        ]

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the store.

        Returns:
            Dictionary with store statistics
        """
        return {
            "document_count": len(self._documents),
            "chunk_count": sum(len(doc.chunks) for doc in self._documents),
            "documents": [
                {"id": doc.id, "chunks": len(doc.chunks), "dimension": doc.dimension}
                for doc in self._documents
            ],
        }

    def clear(self) -> None:
        """Drop every document (process shutdown)."""
        self._documents = ()
        logger.info("vector_store_cleared")
