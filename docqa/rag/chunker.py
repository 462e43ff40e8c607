"""Text chunking strategies for the RAG pipeline.

Two strategies are available:
- ``heading``: blank-line separated blocks grouped under the nearest
  preceding heading-like line; the heading is prepended to the chunk
  text so it biases the embedding.
- ``fixed``: plain character windows, for documents where heading
  detection does more harm than good.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import structlog

from docqa import config

logger = structlog.get_logger()

BLOCK_SEPARATOR = re.compile(r"\n\s*\n")

MAX_HEADING_LENGTH = 80
MIN_CAPITALIZED_RATIO = 0.6


@dataclass(frozen=True)
class TextChunk:
    """A heading-labeled span of document text, not yet embedded."""

    heading: str
    text: str
    chunk_index: int


def is_heading(line: str) -> bool:
    """Check whether a single line looks like a section heading.

    A heading is at most 80 characters, does not end with a period and
    has at least 60% of its words starting with an uppercase letter.
    """
    line = line.strip()
    if not line or len(line) > MAX_HEADING_LENGTH or line.endswith("."):
        return False

    words = line.split()
    capitalized = [w for w in words if w[0].isupper()]
    return len(capitalized) / len(words) >= MIN_CAPITALIZED_RATIO


def split_blocks(text: str) -> List[str]:
    """Split text on blank lines, trimming blocks and dropping empty ones."""
    blocks = (block.strip() for block in BLOCK_SEPARATOR.split(text))
    return [block for block in blocks if block]


class Chunker(ABC):
    """Base class for chunking strategies."""

    name = "base"

    @abstractmethod
    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into chunks.

        Args:
            text: Document text

        Returns:
            List of TextChunk objects in source order
        """


class HeadingChunker(Chunker):
    """Groups paragraphs under the nearest preceding heading-like line."""

    name = "heading"

    def __init__(self, default_heading: str = None):
        """Initialize the heading chunker.

        Args:
            default_heading: Label for text before the first heading
                (default from config)
        """
        self.default_heading = default_heading or config.DEFAULT_HEADING

    def chunk_text(self, text: str) -> List[TextChunk]:
        if not text:
            return []

        chunks: List[TextChunk] = []
        current_heading = self.default_heading
        body: List[str] = []

        def flush() -> None:
            if body:
                chunks.append(
                    TextChunk(
                        heading=current_heading,
                        text=current_heading + "\n" + " ".join(body),
                        chunk_index=len(chunks),
                    )
                )

        for block in split_blocks(text):
            lines = block.split("\n")
            if len(lines) == 1 and is_heading(lines[0]):
                flush()
                current_heading = lines[0].strip()
                body = []
            else:
                body.append(block)

        flush()

        logger.info(
            "text_chunked",
            strategy=self.name,
            text_length=len(text),
            chunk_count=len(chunks),
            headings=[c.heading for c in chunks],
        )

        return chunks


class FixedSizeChunker(Chunker):
    """Character windows without overlap, short slices dropped."""

    name = "fixed"

    def __init__(
        self,
        chunk_size: int = None,
        min_length: int = None,
        default_heading: str = None,
    ):
        """Initialize the fixed-size chunker.

        Args:
            chunk_size: Window size in characters (default from config)
            min_length: Slices of this length or shorter are dropped
                (default from config)
            default_heading: Label attached to every chunk (default from config)
        """
        self.chunk_size = chunk_size or config.FIXED_CHUNK_SIZE
        self.min_length = config.FIXED_CHUNK_MIN_LENGTH if min_length is None else min_length
        self.default_heading = default_heading or config.DEFAULT_HEADING

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

    def chunk_text(self, text: str) -> List[TextChunk]:
        if not text:
            return []

        chunks: List[TextChunk] = []
        for start in range(0, len(text), self.chunk_size):
            piece = text[start : start + self.chunk_size].strip()
            if len(piece) <= self.min_length:
                continue
            chunks.append(
                TextChunk(
                    heading=self.default_heading,
                    text=piece,
                    chunk_index=len(chunks),
                )
            )

        logger.info(
            "text_chunked",
            strategy=self.name,
            text_length=len(text),
            chunk_count=len(chunks),
            chunk_size=self.chunk_size,
        )

        return chunks


CHUNKERS = {
    HeadingChunker.name: HeadingChunker,
    FixedSizeChunker.name: FixedSizeChunker,
}


def get_chunker(strategy: str = None) -> Chunker:
    """Build a chunker for the given strategy name.

    Args:
        strategy: "heading" or "fixed" (default from config)

    Returns:
        Chunker instance with default settings

    Raises:
        ValueError: If the strategy is unknown
    """
    strategy = strategy or config.CHUNK_STRATEGY
    try:
        chunker_cls = CHUNKERS[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown chunking strategy '{strategy}' "
            f"(expected one of: {', '.join(sorted(CHUNKERS))})"
        ) from None
    return chunker_cls()


def get_chunk_stats(chunks: List[TextChunk]) -> dict:
    """Get statistics about a set of chunks.

    Args:
        chunks: List of TextChunk objects

    Returns:
        Dictionary with chunk statistics
    """
    if not chunks:
        return {
            "chunk_count": 0,
            "total_chars": 0,
            "avg_chunk_size": 0,
            "min_chunk_size": 0,
            "max_chunk_size": 0,
        }

    chunk_sizes = [len(c.text) for c in chunks]

    return {
        "chunk_count": len(chunks),
        "total_chars": sum(chunk_sizes),
        "avg_chunk_size": sum(chunk_sizes) // len(chunks),
        "min_chunk_size": min(chunk_sizes),
        "max_chunk_size": max(chunk_sizes),
    }
