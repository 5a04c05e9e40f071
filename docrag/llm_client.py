"""Ollama HTTP client wrapper with error handling."""
import httpx
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
import structlog

from docrag import config
from docrag.errors import ProviderError

logger = structlog.get_logger()


class OllamaClient:
    """Async client for interacting with the Ollama API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.REQUEST_TIMEOUT)
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        num_ctx: Optional[int] = None,
    ) -> Dict:
        """Send a non-streaming chat completion request to Ollama.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (0.0-2.0)
            num_ctx: Context window budget in tokens

        Returns:
            Response dict with 'message' containing 'content'

        Raises:
            httpx.HTTPError: On API errors
            httpx.ConnectError: If Ollama service is unavailable
        """
        model = model or config.CHAT_MODEL

        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": False,
        }

        options = {}
        if temperature is not None:
            options["temperature"] = temperature
        if num_ctx is not None:
            options["num_ctx"] = num_ctx
        if options:
            payload["options"] = options

        try:
            async with self._client() as client:
                logger.info(
                    "ollama_chat_request",
                    model=model,
                    message_count=len(messages),
                )

                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()

                data = response.json()

                logger.info(
                    "ollama_chat_response",
                    model=model,
                    response_length=len(data.get("message", {}).get("content", "")),
                )

                return data

        except httpx.ConnectError as e:
            logger.error("ollama_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "ollama_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def embeddings(
        self,
        prompt: str,
        model: Optional[str] = None,
    ) -> Dict:
        """Generate embeddings for a text prompt.

        Args:
            prompt: Text to embed (already role-prefixed)
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with 'embedding' list

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        payload = {
            "model": model,
            "prompt": prompt,
        }

        try:
            async with self._client() as client:
                logger.debug(
                    "ollama_embedding_request",
                    model=model,
                    prompt_length=len(prompt),
                )

                response = await client.post("/api/embeddings", json=payload)
                response.raise_for_status()

                data = response.json()

                logger.debug(
                    "ollama_embedding_response",
                    model=model,
                    dimension=len(data.get("embedding") or []),
                )

                return data

        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", error=str(e))
            raise

    async def list_models(self) -> List[Dict[str, Any]]:
        """List all available Ollama models.

        Returns:
            List of dicts with 'name' and 'size' (bytes)

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/api/tags")
                response.raise_for_status()
                data = response.json()
                return [
                    {"name": m["name"], "size": m.get("size", 0)}
                    for m in data.get("models", [])
                ]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise


@dataclass
class ProviderReport:
    """Outcome of a provider health check, one entry per step."""

    connected: bool = False
    models: List[Dict[str, Any]] = field(default_factory=list)
    embedding_dimension: Optional[int] = None
    chat_reply: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.connected and not self.errors


async def check_provider(
    client: OllamaClient,
    embedding_model: Optional[str] = None,
    chat_model: Optional[str] = None,
) -> ProviderReport:
    """Probe Ollama: list models, embed a sample, ask for a one-word reply.

    Never raises; failures are recorded per step in the report.
    """
    report = ProviderReport()

    try:
        report.models = await client.list_models()
        report.connected = True
    except httpx.HTTPError as e:
        report.errors["connection"] = str(e) or type(e).__name__
        return report

    try:
        data = await client.embeddings("Hello world", model=embedding_model)
        embedding = data.get("embedding") or []
        if not embedding:
            raise ProviderError("Empty embedding returned from Ollama")
        report.embedding_dimension = len(embedding)
    except (httpx.HTTPError, ProviderError) as e:
        report.errors["embedding"] = str(e) or type(e).__name__

    try:
        data = await client.chat(
            [{"role": "user", "content": "Say hello in one word."}],
            model=chat_model,
        )
        report.chat_reply = data.get("message", {}).get("content", "")
    except httpx.HTTPError as e:
        report.errors["chat"] = str(e) or type(e).__name__

    logger.info(
        "provider_checked",
        connected=report.connected,
        model_count=len(report.models),
        failed_steps=list(report.errors),
    )

    return report
