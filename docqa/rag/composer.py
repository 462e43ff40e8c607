"""Answer composition with a three-tier fallback.

- grounded: at least one chunk is relevant; the top-K chunk texts are
  injected and the model is told to answer only from them
- partial: nothing is relevant but the best similarity clears the
  partial threshold; the question is answered directly and flagged
- none: no usable match; a brief general answer is requested
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from docqa import config
from docqa.llm_client import GeminiClient
from docqa.rag.policy import RetrievalPolicy
from docqa.rag.retriever import RetrievalResult, ScoredChunk
from docqa.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger()

TIER_GROUNDED = "grounded"
TIER_PARTIAL = "partial"
TIER_NONE = "none"

GROUNDED_TEMPLATE = (
    "Answer based ONLY on this PDF context. If unsure, say so.\n\n"
    "Context: {context}\n\n"
    "Question: {question}\n\n"
    "Answer:"
)
PARTIAL_TEMPLATE = "Answer: {question}. Note: Partial PDF match."
NO_MATCH_TEMPLATE = "Answer briefly: {question}. (No PDF info found)"

CONTEXT_SEPARATOR = "\n\n"


@dataclass
class ComposedPrompt:
    """Prompt text plus the tier and chunks that produced it."""

    tier: str
    prompt: str
    chunks_used: List[ScoredChunk] = field(default_factory=list)


@dataclass
class Answer:
    """Generated answer returned to the caller."""

    text: str
    tier: str
    sources: List[Dict[str, Any]] = field(default_factory=list)


class AnswerComposer:
    """Builds the prompt for a question and forwards it to the generator."""

    def __init__(
        self,
        provider: GeminiClient,
        policy: Optional[RetrievalPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        model: str = None,
        sleep=None,
    ):
        """Initialize the composer.

        Args:
            provider: Object exposing ``generate(prompt, model=...)``
            policy: Retrieval policy (default from config)
            retry_policy: Retry policy for generation (default from config)
            model: Generation model name (default from config)
            sleep: Optional awaitable sleep used between retries
        """
        self.provider = provider
        self.policy = policy or config.get_retrieval_policy()
        self.retry_policy = retry_policy or config.get_retry_policy()
        self.model = model or config.CHAT_MODEL
        self._sleep = sleep

    def build_prompt(self, question: str, result: RetrievalResult) -> ComposedPrompt:
        """Pick the tier for a retrieval result and build its prompt.

        Args:
            question: User question
            result: Output of the retriever

        Returns:
            ComposedPrompt with at most ``top_k`` chunks injected
        """
        if result.ranked:
            top = result.ranked[: self.policy.top_k]
            context = CONTEXT_SEPARATOR.join(chunk.text for chunk in top)
            return ComposedPrompt(
                tier=TIER_GROUNDED,
                prompt=GROUNDED_TEMPLATE.format(context=context, question=question),
                chunks_used=top,
            )

        if result.max_similarity > self.policy.partial_threshold:
            return ComposedPrompt(
                tier=TIER_PARTIAL,
                prompt=PARTIAL_TEMPLATE.format(question=question),
            )

        return ComposedPrompt(
            tier=TIER_NONE,
            prompt=NO_MATCH_TEMPLATE.format(question=question),
        )

    async def answer(self, question: str, result: RetrievalResult) -> Answer:
        """Generate the answer for a question.

        Args:
            question: User question
            result: Output of the retriever

        Returns:
            Answer whose text is the generator output, unmodified

        Raises:
            ProviderError: If generation fails (see ``call_with_retry``)
        """
        composed = self.build_prompt(question, result)

        logger.info(
            "prompt_composed",
            tier=composed.tier,
            chunks_used=len(composed.chunks_used),
            prompt_length=len(composed.prompt),
            max_similarity=round(result.max_similarity, 4),
        )

        text = await call_with_retry(
            lambda: self.provider.generate(composed.prompt, model=self.model),
            self.retry_policy,
            operation="generate",
            sleep=self._sleep,
        )

        sources = [
            {
                "document_id": chunk.document_id,
                "heading": chunk.heading,
                "similarity": round(chunk.similarity, 3),
            }
            for chunk in composed.chunks_used
        ]

        return Answer(text=text, tier=composed.tier, sources=sources)
