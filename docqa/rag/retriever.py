"""Retriever for similarity search over the in-memory store.

Handles:
- Cosine similarity between the query and every stored chunk
- Threshold filtering and ranking
- Tracking the best similarity seen, for the fallback tiers
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import structlog

from docqa import config
from docqa.rag.policy import RetrievalPolicy
from docqa.rag.store import VectorStore

logger = structlog.get_logger()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, 0.0 when either has zero magnitude.

    Raises:
        ValueError: If the vectors have different dimensions
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Dimension mismatch: {vec_a.shape[0]} vs {vec_b.shape[0]}"
        )

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


@dataclass(frozen=True)
class ScoredChunk:
    """A stored chunk with its similarity to the query."""

    document_id: str
    chunk_index: int
    heading: str
    text: str
    similarity: float


@dataclass
class RetrievalResult:
    """Relevant chunks (best first) and the best similarity over all chunks."""

    ranked: List[ScoredChunk] = field(default_factory=list)
    max_similarity: float = 0.0

    @property
    def has_relevant(self) -> bool:
        return bool(self.ranked)


class Retriever:
    """Ranks stored chunks against a query embedding."""

    def __init__(self, store: VectorStore, policy: Optional[RetrievalPolicy] = None):
        """Initialize the retriever.

        Args:
            store: Vector store to search
            policy: Retrieval policy (default from config)
        """
        self.store = store
        self.policy = policy or config.get_retrieval_policy()

        logger.info(
            "retriever_initialized",
            relevance_threshold=self.policy.relevance_threshold,
            partial_threshold=self.policy.partial_threshold,
        )

    def retrieve(self, query_embedding: Sequence[float]) -> RetrievalResult:
        """Score every stored chunk and keep the relevant ones.

        A chunk is relevant when its similarity is strictly above the
        relevance threshold. Ties keep document/chunk order. Documents
        embedded with a different dimension than the query are skipped.

        Args:
            query_embedding: Query vector

        Returns:
            RetrievalResult; ``max_similarity`` is 0.0 for an empty store
        """
        query_dimension = len(query_embedding)
        scored: List[ScoredChunk] = []
        for doc in self.store.documents:
            if doc.chunks and doc.dimension != query_dimension:
                logger.warning(
                    "document_dimension_mismatch",
                    document_id=doc.id,
                    document_dimension=doc.dimension,
                    query_dimension=query_dimension,
                )
                continue
            for index, chunk in enumerate(doc.chunks):
                scored.append(
                    ScoredChunk(
                        document_id=doc.id,
                        chunk_index=index,
                        heading=chunk.heading,
                        text=chunk.text,
                        similarity=cosine_similarity(query_embedding, chunk.embedding),
                    )
                )

        if not scored:
            logger.warning("empty_store_no_results")
            return RetrievalResult()

        for item in scored:
            logger.debug("chunk_scored", similarity=round(item.similarity, 3), heading=item.heading)

        threshold = self.policy.relevance_threshold
        relevant = [item for item in scored if item.similarity > threshold]
        relevant.sort(key=lambda item: item.similarity, reverse=True)
        max_similarity = max(item.similarity for item in scored)

        logger.info(
            "retrieval_completed",
            chunks_scored=len(scored),
            relevant_count=len(relevant),
            max_similarity=round(max_similarity, 4),
            top_matches=[
                {"heading": item.heading, "similarity": round(item.similarity, 3)}
                for item in relevant[: self.policy.top_k]
            ],
        )

        return RetrievalResult(ranked=relevant, max_similarity=max_similarity)
