"""Embedding client: one provider call per text, wrapped in the retry policy."""
from typing import List, Optional

import structlog

from docqa import config
from docqa.errors import ProviderOther
from docqa.llm_client import GeminiClient
from docqa.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger()


class EmbeddingClient:
    """Embeds texts through the provider with overload-aware retry.

    Nothing is cached: every call goes to the provider.
    """

    def __init__(
        self,
        provider: GeminiClient,
        retry_policy: Optional[RetryPolicy] = None,
        model: str = None,
        sleep=None,
    ):
        """Initialize the embedding client.

        Args:
            provider: Object exposing ``embed_text(text, model=...)``
            retry_policy: Retry policy (default from config)
            model: Embedding model name (default from config)
            sleep: Optional awaitable sleep used between retries
        """
        self.provider = provider
        self.retry_policy = retry_policy or config.get_retry_policy()
        self.model = model or config.EMBEDDING_MODEL
        self._sleep = sleep

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            RetriesExhausted: If the provider stayed overloaded
            ProviderQuotaExceeded: If the quota is exhausted
            ProviderOther: On any other failure, including an empty vector
        """
        embedding = await call_with_retry(
            lambda: self.provider.embed_text(text, model=self.model),
            self.retry_policy,
            operation="embed",
            sleep=self._sleep,
        )

        if not embedding:
            raise ProviderOther("Empty embedding returned for text")

        logger.debug(
            "text_embedded",
            model=self.model,
            text_preview=text[:50],
            dimension=len(embedding),
        )

        return list(embedding)
