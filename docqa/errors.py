"""Exception taxonomy for document loading and question answering.

Provider errors carry a ``kind`` so callers can tell transient overload
apart from quota exhaustion without inspecting status codes:

- ``overloaded``: the service is temporarily unavailable (retryable)
- ``rate_limited``: the quota is exhausted (terminal, needs a human)
- ``other``: anything else the provider rejected (terminal)
"""
from typing import Optional

QUOTA_GUIDANCE = (
    "Quota exceeded: do not retry automatically. "
    "Check usage at https://aistudio.google.com/usage or upgrade the tier."
)


class DocQAError(Exception):
    """Base exception for the docqa package."""


class InputError(DocQAError):
    """Raised for a missing or empty question, or a missing source file."""


class ExtractionError(DocQAError):
    """Raised when a source document cannot be read or parsed."""


class ProviderError(DocQAError):
    """Base class for failures reported by the embedding/generation provider."""

    kind = "other"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderOverloaded(ProviderError):
    """The provider is temporarily unavailable (HTTP 503 or a call timeout)."""

    kind = "overloaded"


class ProviderQuotaExceeded(ProviderError):
    """The provider quota is exhausted (HTTP 429)."""

    kind = "rate_limited"

    def __init__(self, message: str = QUOTA_GUIDANCE, status_code: Optional[int] = 429):
        super().__init__(message, status_code)


class ProviderOther(ProviderError):
    """Any other provider failure; never retried."""

    kind = "other"


class RetriesExhausted(ProviderError):
    """Raised after every retry of an overloaded call has failed."""

    kind = "overloaded"

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Max retries exceeded due to overload ({operation}, {attempts} attempts)",
            status_code=503,
        )
        self.operation = operation
        self.attempts = attempts


class DocumentNotFound(InputError):
    """Raised when the source file to load does not exist."""
