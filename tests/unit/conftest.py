"""Pytest configuration and fixtures for unit tests.

No test talks to the network: the provider is replaced by FakeProvider,
and retry sleeps are recorded instead of awaited.
"""
from typing import Dict, List, Optional

import pytest

from docqa.errors import ProviderOther
from docqa.rag.policy import RetrievalPolicy
from docqa.rag.store import VectorStore
from docqa.retry import RetryPolicy


SAMPLE_TEXT = """Hello world.

Methods

We did X."""


class FakeProvider:
    """Stand-in for GeminiClient.

    Embeddings are looked up by exact text first, then by substring in
    insertion order; ``embed_errors``/``generate_errors`` map a text (or
    "*" for any prompt) to errors raised on successive calls.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        default_vector: Optional[List[float]] = None,
        answer: str = "generated answer",
    ):
        self.vectors = vectors or {}
        self.default_vector = default_vector if default_vector is not None else [1.0, 0.0, 0.0]
        self.answer = answer
        self.embed_errors: Dict[str, list] = {}
        self.generate_errors: List[Exception] = []
        self.embed_calls: List[str] = []
        self.prompts: List[str] = []
        self.models_available = True

    async def embed_text(self, text: str, model: str = None) -> List[float]:
        self.embed_calls.append(text)
        for key in (text, "*"):
            errors = self.embed_errors.get(key)
            if errors:
                raise errors.pop(0)
        if text in self.vectors:
            return self.vectors[text]
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return self.default_vector

    async def generate(self, prompt: str, model: str = None) -> str:
        self.prompts.append(prompt)
        if self.generate_errors:
            raise self.generate_errors.pop(0)
        return self.answer

    async def list_models(self) -> List[str]:
        if not self.models_available:
            raise ProviderOther("Provider unreachable: connection refused")
        return ["gemini-2.5-flash", "gemini-embedding-001"]


class RecordingSleep:
    """Awaitable sleep that records delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sample_text() -> str:
    """Two-section document: untitled intro plus a "Methods" section."""
    return SAMPLE_TEXT


@pytest.fixture
def provider() -> FakeProvider:
    """Provider placing the intro and the methods chunk on orthogonal axes."""
    return FakeProvider(
        vectors={
            "Introduction\nHello world.": [1.0, 0.0, 0.0],
            "Methods\nWe did X.": [0.0, 1.0, 0.0],
            "about methods": [0.0, 1.0, 0.0],
            "half match": [0.0, 0.6, 0.8],
            "unrelated": [0.0, 0.0, 1.0],
        }
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Default delays, no per-call timeout."""
    return RetryPolicy(max_attempts=5, base_delay=5.0, max_delay=30.0)


@pytest.fixture
def retrieval_policy() -> RetrievalPolicy:
    return RetrievalPolicy(relevance_threshold=0.7, partial_threshold=0.5, top_k=3)


@pytest.fixture
def store() -> VectorStore:
    return VectorStore()
