"""Main Quart application for the document question answering service."""
import logging
from pathlib import Path
from typing import Optional

import structlog
from quart import Quart, jsonify, request

from docqa import config
from docqa.errors import (
    DocQAError,
    DocumentNotFound,
    ExtractionError,
    InputError,
    ProviderOther,
    ProviderQuotaExceeded,
    RetriesExhausted,
)
from docqa.llm_client import GeminiClient
from docqa.rag.chunker import get_chunker
from docqa.rag.composer import AnswerComposer
from docqa.rag.embedder import EmbeddingClient
from docqa.rag.ingest import IngestPipeline
from docqa.rag.qa import QAService
from docqa.rag.retriever import Retriever
from docqa.rag.store import VectorStore

# Configure structured logging
logging.basicConfig(format="%(message)s", level=config.LOG_LEVEL)
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

# Most specific first
ERROR_STATUS = [
    (DocumentNotFound, 404),
    (InputError, 400),
    (ExtractionError, 422),
    (ProviderQuotaExceeded, 429),
    (RetriesExhausted, 503),
    (ProviderOther, 502),
]


def _status_for(error: DocQAError) -> int:
    for error_cls, status in ERROR_STATUS:
        if isinstance(error, error_cls):
            return status
    return 500


def create_app(
    provider: Optional[GeminiClient] = None,
    store: Optional[VectorStore] = None,
    document_path: Optional[Path] = None,
    sleep=None,
) -> Quart:
    """Build the application and wire its components around one store.

    Args:
        provider: Embedding/generation provider (default: GeminiClient())
        store: Vector store (default: a new empty store)
        document_path: PDF served by /load-pdf (default from config)
        sleep: Optional awaitable sleep used between retries
    """
    provider = provider or GeminiClient()
    store = store if store is not None else VectorStore()
    document_path = Path(document_path or config.DOCUMENT_PATH)

    embedder = EmbeddingClient(provider, sleep=sleep)
    pipeline = IngestPipeline(store, embedder, chunker=get_chunker())
    retriever = Retriever(store)
    composer = AnswerComposer(provider, policy=retriever.policy, sleep=sleep)
    qa_service = QAService(embedder, retriever, composer)

    app = Quart(__name__)
    app.extensions["docqa"] = {
        "store": store,
        "pipeline": pipeline,
        "qa_service": qa_service,
    }

    @app.before_serving
    async def load_on_startup():
        if not config.LOAD_ON_STARTUP:
            return
        try:
            await pipeline.load_document(document_path)
        except DocQAError as e:
            # Service stays up; /load-pdf can be retried by hand
            logger.error("startup_load_failed", error=str(e), error_type=type(e).__name__)

    @app.after_serving
    async def teardown_store():
        store.clear()

    @app.route("/")
    async def index():
        return "Server running! POST to /chat, GET /load-pdf."

    @app.route("/load-pdf", methods=["GET"])
    async def load_pdf():
        """Load the configured PDF into the store.

        Returns JSON:
        {
            "status": "loaded" | "skipped",
            "document_id": "path",
            "chunks": 12
        }
        """
        result = await pipeline.load_document(document_path)
        return jsonify({
            "status": result.status,
            "document_id": result.document_id,
            "chunks": result.chunks_embedded,
        })

    @app.route("/chat", methods=["POST"])
    async def chat():
        """Answer a question about the loaded document.

        Expects JSON body:
        {
            "message": "user question"
        }

        Returns JSON:
        {
            "answer": "answer text",
            "response": "answer text",
            "tier": "grounded" | "partial" | "none",
            "sources": [...]
        }
        """
        data = await request.get_json(silent=True)
        if not isinstance(data, dict) or not data.get("message"):
            logger.error("missing_message_field", data=data)
            raise InputError("No message provided")

        answer = await qa_service.ask(data["message"])
        return jsonify({
            "answer": answer.text,
            "response": answer.text,  # key read by the web frontend
            "tier": answer.tier,
            "sources": answer.sources,
        })

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - a document is loaded and the provider answers."""
        checks = {
            "status": "healthy",
            "document_loaded": not store.is_empty,
            "provider": False,
        }

        try:
            await provider.list_models()
            checks["provider"] = True
        except DocQAError as e:
            logger.error("health_check_failed", error=str(e))
            checks["error"] = str(e)

        if not (checks["document_loaded"] and checks["provider"]):
            checks["status"] = "unhealthy"

        status_code = 200 if checks["status"] == "healthy" else 503
        return jsonify(checks), status_code

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(DocQAError)
    async def docqa_error(error: DocQAError):
        status = _status_for(error)
        logger.error(
            "request_failed",
            path=request.path,
            status_code=status,
            error=str(error),
            error_type=type(error).__name__,
        )
        return jsonify({"error": str(error)}), status

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn docqa.main:app in production
    app.run(host="0.0.0.0", port=5000, debug=True)
