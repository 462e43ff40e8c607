"""Question answering over the loaded documents."""
import structlog

from docqa import config
from docqa.errors import InputError
from docqa.rag.composer import Answer, AnswerComposer
from docqa.rag.embedder import EmbeddingClient
from docqa.rag.retriever import Retriever

logger = structlog.get_logger()


class QAService:
    """Embeds a question, retrieves context and generates the answer."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        retriever: Retriever,
        composer: AnswerComposer,
        max_question_length: int = None,
    ):
        self.embedder = embedder
        self.retriever = retriever
        self.composer = composer
        self.max_question_length = max_question_length or config.MAX_QUESTION_LENGTH

    async def ask(self, question: str) -> Answer:
        """Answer a question.

        Raises:
            InputError: If the question is missing, empty or too long
            ProviderError: If embedding or generation fails
        """
        if not isinstance(question, str) or not question.strip():
            raise InputError("No message provided")

        question = question.strip()
        if len(question) > self.max_question_length:
            raise InputError(
                f"Message too long (max {self.max_question_length} characters)"
            )

        logger.info("question_received", question_preview=question[:100])

        query_embedding = await self.embedder.embed(question)
        result = self.retriever.retrieve(query_embedding)
        answer = await self.composer.answer(question, result)

        logger.info(
            "question_answered",
            tier=answer.tier,
            sources=len(answer.sources),
            answer_length=len(answer.text),
        )

        return answer
