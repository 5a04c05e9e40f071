"""Sequential embedding of chunks and queries through Ollama.

Calls go out one at a time with a fixed pause in between so a local
inference backend is never flooded. A failed call yields UNEMBEDDED for
that slot and the batch carries on.
"""
import asyncio
from enum import Enum
from typing import List, Optional, Sequence
import structlog

from docrag import config
from docrag.llm_client import OllamaClient
from docrag.models import EmbeddingResult, UNEMBEDDED, embedded

logger = structlog.get_logger()


class EmbeddingRole(str, Enum):
    """Which side of an asymmetric embedding a text is on."""

    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingOrchestrator:
    """Embeds texts in order, one provider call at a time."""

    def __init__(
        self,
        client: OllamaClient,
        embedding_model: Optional[str] = None,
        delay_ms: Optional[int] = None,
        document_prefix: Optional[str] = None,
        query_prefix: Optional[str] = None,
    ):
        """Initialize the orchestrator.

        Args:
            client: Provider client exposing async embeddings(prompt, model)
            embedding_model: Embedding model name (default from config)
            delay_ms: Pause between calls in milliseconds (default from config)
            document_prefix: Instruction prepended to document texts
            query_prefix: Instruction prepended to query texts
        """
        self.client = client
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.delay_ms = config.EMBED_DELAY_MS if delay_ms is None else delay_ms
        self.prefixes = {
            EmbeddingRole.DOCUMENT: (
                config.DOCUMENT_PREFIX if document_prefix is None else document_prefix
            ),
            EmbeddingRole.QUERY: (
                config.QUERY_PREFIX if query_prefix is None else query_prefix
            ),
        }
        # Set by the first successful call; later vectors must match it
        self.dimension: Optional[int] = None

    def prefix(self, text: str, role: EmbeddingRole) -> str:
        return f"{self.prefixes[EmbeddingRole(role)]}{text}"

    async def embed_one(self, text: str, role: EmbeddingRole) -> EmbeddingResult:
        """Embed a single text, returning UNEMBEDDED instead of raising."""
        try:
            response = await self.client.embeddings(
                self.prefix(text, role), model=self.embedding_model
            )
            vector = response.get("embedding") or []
        except Exception as e:
            logger.error(
                "embedding_generation_failed",
                role=EmbeddingRole(role).value,
                text_preview=text[:100],
                error=str(e),
                error_type=type(e).__name__,
            )
            return UNEMBEDDED

        if not vector:
            logger.warning(
                "empty_embedding_returned",
                role=EmbeddingRole(role).value,
                text_preview=text[:100],
            )
            return UNEMBEDDED

        if self.dimension is None:
            self.dimension = len(vector)
        elif len(vector) != self.dimension:
            logger.warning(
                "embedding_dimension_mismatch",
                expected=self.dimension,
                got=len(vector),
            )
            return UNEMBEDDED

        return embedded(vector)

    async def embed(
        self, texts: Sequence[str], role: EmbeddingRole
    ) -> List[EmbeddingResult]:
        """Embed texts in order.

        Args:
            texts: Texts to embed
            role: EmbeddingRole.DOCUMENT or EmbeddingRole.QUERY

        Returns:
            One EmbeddingResult per input text, same order
        """
        results: List[EmbeddingResult] = []

        for i, text in enumerate(texts):
            if i > 0 and self.delay_ms > 0:
                await asyncio.sleep(self.delay_ms / 1000)
            results.append(await self.embed_one(text, role))

        failed = sum(1 for r in results if not r.is_embedded)
        logger.info(
            "embeddings_generated",
            role=EmbeddingRole(role).value,
            count=len(texts),
            failed=failed,
            dimension=self.dimension,
        )

        return results
