"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from docqa.retry import RetryPolicy
from docqa.rag.policy import RetrievalPolicy

# Paths
BASE_DIR = Path(__file__).parent.parent
DOCUMENT_PATH = Path(os.getenv("DOCUMENT_PATH", str(BASE_DIR / "sample.pdf")))

# Gemini configuration
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemini-2.5-flash")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "gemini-embedding-001")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60.0"))

# Retry parameters (seconds; linear backoff capped at RETRY_MAX_DELAY)
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "5"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "5.0"))
RETRY_MAX_DELAY = float(os.getenv("RETRY_MAX_DELAY", "30.0"))

# Chunking: "heading" (heading-anchored blocks) or "fixed" (character windows)
CHUNK_STRATEGY = os.getenv("CHUNK_STRATEGY", "heading")
DEFAULT_HEADING = os.getenv("DEFAULT_HEADING", "Introduction")
FIXED_CHUNK_SIZE = int(os.getenv("FIXED_CHUNK_SIZE", "500"))
FIXED_CHUNK_MIN_LENGTH = int(os.getenv("FIXED_CHUNK_MIN_LENGTH", "10"))

# Retrieval parameters (thresholds shift with the chunking strategy)
RELEVANCE_THRESHOLD = float(os.getenv("RELEVANCE_THRESHOLD", "0.7"))
PARTIAL_THRESHOLD = float(os.getenv("PARTIAL_THRESHOLD", "0.5"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))

# Loading
SINGLE_DOCUMENT = os.getenv("SINGLE_DOCUMENT", "true").lower() in ("1", "true", "yes")
EMBED_CONCURRENCY = int(os.getenv("EMBED_CONCURRENCY", "1"))
LOAD_ON_STARTUP = os.getenv("LOAD_ON_STARTUP", "false").lower() in ("1", "true", "yes")

# Request limits
MAX_QUESTION_LENGTH = int(os.getenv("MAX_QUESTION_LENGTH", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_retry_policy() -> RetryPolicy:
    """Build the retry policy shared by embedding and generation calls."""
    return RetryPolicy(
        max_attempts=RETRY_MAX_ATTEMPTS,
        base_delay=RETRY_BASE_DELAY,
        max_delay=RETRY_MAX_DELAY,
        timeout=REQUEST_TIMEOUT,
    )


def get_retrieval_policy() -> RetrievalPolicy:
    """Build the retrieval policy from environment settings."""
    return RetrievalPolicy(
        relevance_threshold=RELEVANCE_THRESHOLD,
        partial_threshold=PARTIAL_THRESHOLD,
        top_k=RETRIEVAL_TOP_K,
    )
