"""Gemini API client wrapper with provider error mapping.

Status codes are translated into the docqa error taxonomy here so the
rest of the pipeline never looks at HTTP details:

- 503 -> ProviderOverloaded (retryable)
- 429 -> ProviderQuotaExceeded (terminal)
- anything else non-2xx -> ProviderOther (terminal)
"""
from typing import Any, Dict, List, Optional

import httpx
import structlog

from docqa import config
from docqa.errors import ProviderOther, ProviderOverloaded, ProviderQuotaExceeded

logger = structlog.get_logger()


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    status = response.status_code
    if response.is_success:
        return

    try:
        body = response.json()
        detail = body.get("error", {}).get("message", "") if isinstance(body, dict) else ""
    except ValueError:
        detail = response.text[:200]

    logger.error(
        "gemini_http_error",
        operation=operation,
        status_code=status,
        detail=detail,
    )

    if status == 503:
        raise ProviderOverloaded(f"Provider overloaded: {detail or 'service unavailable'}", status)
    if status == 429:
        raise ProviderQuotaExceeded()
    raise ProviderOther(f"Provider error {status}: {detail or response.reason_phrase}", status)


def _decode(response: httpx.Response, operation: str) -> Dict[str, Any]:
    """Parse a successful response body, which must be a JSON object."""
    try:
        data = response.json()
    except ValueError as e:
        logger.error("gemini_malformed_response", operation=operation, error=str(e))
        raise ProviderOther(f"Malformed provider response: {e}", response.status_code) from e

    if not isinstance(data, dict):
        logger.error("gemini_malformed_response", operation=operation, body_type=type(data).__name__)
        raise ProviderOther(
            f"Malformed provider response: expected an object, got {type(data).__name__}",
            response.status_code,
        )
    return data


class GeminiClient:
    """Async client for the Gemini embedding and generation endpoints."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini client.

        Args:
            api_key: API key (defaults to config.GEMINI_API_KEY)
            base_url: API base URL (defaults to config.GEMINI_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.REQUEST_TIMEOUT)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self, timeout: float = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            headers={"x-goog-api-key": self.api_key},
            transport=self._transport,
        )

    async def _post(self, path: str, payload: Dict[str, Any], operation: str) -> Dict:
        try:
            async with self._client() as client:
                response = await client.post(path, json=payload)
        except httpx.TimeoutException as e:
            logger.warning("gemini_timeout", operation=operation, error=str(e))
            raise ProviderOverloaded(f"Provider request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("gemini_connection_error", operation=operation, error=str(e), base_url=self.base_url)
            raise ProviderOther(f"Provider unreachable: {e}") from e

        _raise_for_status(response, operation)
        return _decode(response, operation)

    async def embed_text(self, text: str, model: str = None) -> List[float]:
        """Generate an embedding vector for a text.

        Args:
            text: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Embedding values

        Raises:
            ProviderError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug("gemini_embedding_request", model=model, text_length=len(text))

        data = await self._post(
            f"/models/{model}:embedContent",
            {"content": {"parts": [{"text": text}]}},
            operation="embed",
        )
        try:
            values = [float(v) for v in data["embedding"]["values"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderOther(f"Malformed provider response: no embedding values ({e!r})") from e

        logger.debug("gemini_embedding_response", model=model, dimension=len(values))

        return values

    async def generate(self, prompt: str, model: str = None) -> str:
        """Send a single-prompt generation request.

        Args:
            prompt: Prompt text
            model: Model to use (defaults to config.CHAT_MODEL)

        Returns:
            Generated text (parts of the first candidate, concatenated)

        Raises:
            ProviderError: On API errors or an empty candidate list
        """
        model = model or config.CHAT_MODEL

        logger.info("gemini_generate_request", model=model, prompt_length=len(prompt))

        data = await self._post(
            f"/models/{model}:generateContent",
            {"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
            operation="generate",
        )

        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderOther("Provider returned no candidates")

        try:
            parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(part.get("text", "") for part in parts)
        except (AttributeError, KeyError, TypeError) as e:
            raise ProviderOther(f"Malformed provider response: unexpected candidate shape ({e})") from e

        logger.info("gemini_generate_response", model=model, response_length=len(text))

        return text

    async def list_models(self) -> List[str]:
        """List models visible to the API key.

        Returns:
            Model names without the "models/" prefix

        Raises:
            ProviderError: On API errors
        """
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/models")
        except httpx.HTTPError as e:
            logger.error("gemini_list_models_error", error=str(e))
            raise ProviderOther(f"Provider unreachable: {e}") from e

        _raise_for_status(response, "list_models")
        data = _decode(response, "list_models")
        try:
            return [m["name"].removeprefix("models/") for m in data.get("models", [])]
        except (KeyError, TypeError, AttributeError) as e:
            raise ProviderOther(f"Malformed provider response: unexpected model list ({e!r})") from e
