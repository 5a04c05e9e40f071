"""Retrieval pipeline: ingest documents, answer questions against them.

Ingest:  text -> chunks -> document embeddings -> one transactional write
Query:   question -> query embedding -> ranked chunks -> context -> chat model

Both flows report failures as messages in their result objects instead of
raising to the caller.
"""
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse
import structlog

from docrag import config
from docrag.db import DocumentStore
from docrag.errors import ValidationError
from docrag.llm_client import OllamaClient
from docrag.models import Answer, Chunk, Document, IngestResult
from docrag.rag.chunker import TextChunker
from docrag.rag.embedder import EmbeddingOrchestrator, EmbeddingRole
from docrag.rag.extractors import TextExtractor
from docrag.rag.similarity import BruteForceIndex, ScoredChunk, SimilarityIndex
from docrag.rag.web import CrawlOptions, WebScraper, validate_url

logger = structlog.get_logger()

COULD_NOT_PROCESS = "Sorry, I couldn't process your question. Please try again."
NO_RELEVANT_INFORMATION = (
    "I don't have any relevant information to answer your question. "
    "Please add some documents first."
)
NO_RESPONSE = "Sorry, I couldn't generate a response."

PROMPT_TEMPLATE = """Based on the following context, please answer the question. If the answer is not in the context, say so.

Context:
{context}
Question: {question}

Answer:"""


def build_context(hits: Iterable[ScoredChunk]) -> Tuple[str, List[str]]:
    """Concatenate ranked chunks with their source labels.

    Returns:
        Tuple of (context block, unique sources in first-seen order)
    """
    parts = []
    sources: List[str] = []

    for hit in hits:
        label = hit.chunk.source or "unknown"
        parts.append(f"Source: {label}\n{hit.chunk.text}\n\n")
        if label not in sources:
            sources.append(label)

    return "".join(parts), sources


class RetrievalPipeline:
    """Composes chunking, embedding, storage and similarity search."""

    def __init__(
        self,
        store: DocumentStore,
        client: OllamaClient,
        embedder: Optional[EmbeddingOrchestrator] = None,
        chunker: Optional[TextChunker] = None,
        extractor: Optional[TextExtractor] = None,
        scraper: Optional[WebScraper] = None,
        index_factory: Callable[[List[Chunk]], SimilarityIndex] = BruteForceIndex,
        max_context_chunks: Optional[int] = None,
        chat_model: Optional[str] = None,
        temperature: Optional[float] = None,
        num_ctx: Optional[int] = None,
    ):
        """Initialize the pipeline.

        Args:
            store: Document store
            client: Provider client used for chat completions
            embedder: Embedding orchestrator (built on client if not provided)
            chunker: Text chunker (configured sizes if not provided)
            extractor: File text extractor
            scraper: Web scraper for URL ingestion
            index_factory: Builds a similarity index from candidate chunks
            max_context_chunks: Chunks retrieved per question (default from config)
            chat_model: Chat model name (default from config)
            temperature: Sampling temperature (default from config)
            num_ctx: Context window budget (default config.MAX_TOKENS)
        """
        self.store = store
        self.client = client
        self.embedder = embedder or EmbeddingOrchestrator(client)
        self.chunker = chunker or TextChunker()
        self.extractor = extractor or TextExtractor()
        self.scraper = scraper or WebScraper()
        self.index_factory = index_factory
        self.max_context_chunks = max_context_chunks or config.MAX_CONTEXT_CHUNKS
        self.chat_model = chat_model or config.CHAT_MODEL
        self.temperature = config.CHAT_TEMPERATURE if temperature is None else temperature
        self.num_ctx = num_ctx or config.MAX_TOKENS

    async def ingest_text(
        self,
        text: str,
        filename: str,
        filepath: str,
        filetype: str,
        label: str = "document",
    ) -> IngestResult:
        """Chunk, embed and store already-extracted text.

        Chunks whose embedding failed are stored unembedded and never
        returned by search. The document and its chunks are written in one
        transaction.
        """
        try:
            if not text or not text.strip():
                return IngestResult(message=f"No content extracted from {label}", success=False)

            chunk_texts = self.chunker.chunk_text(text)
            logger.info(
                "document_chunked",
                filename=filename,
                **self.chunker.get_chunk_stats(chunk_texts),
            )

            embeddings = await self.embedder.embed(chunk_texts, EmbeddingRole.DOCUMENT)

            document = Document(
                filename=filename,
                filepath=filepath,
                content=text,
                filetype=filetype,
            )
            document.attach_chunks([
                Chunk(text=chunk, index=i, embedding=embedding)
                for i, (chunk, embedding) in enumerate(zip(chunk_texts, embeddings))
            ])

            document_id = self.store.create_with_chunks(document)

        except Exception as e:
            logger.error(
                "ingest_failed",
                filename=filename,
                error=str(e),
                error_type=type(e).__name__,
            )
            return IngestResult(message=f"Error processing {label}: {e}", success=False)

        chunk_count = len(document.chunks)
        unembedded = document.unembedded_count
        message = (
            f"Successfully processed {label} '{filename}' with ID {document_id}. "
            f"Created {chunk_count} chunks."
        )
        if unembedded:
            message += f" {unembedded} chunk(s) could not be embedded and won't be searchable."

        return IngestResult(
            message=message,
            success=True,
            document_id=document_id,
            chunk_count=chunk_count,
            unembedded_count=unembedded,
        )

    async def ingest_file(self, file_path: Union[str, Path]) -> IngestResult:
        """Extract a local file and ingest it."""
        try:
            text = self.extractor.extract(file_path)
        except Exception as e:
            logger.error("file_extraction_failed", path=str(file_path), error=str(e))
            return IngestResult(message=f"Error processing document: {e}", success=False)

        path = Path(file_path)
        return await self.ingest_text(
            text,
            filename=path.name,
            filepath=str(path),
            filetype=path.suffix.lstrip(".").lower(),
        )

    async def ingest_url(
        self,
        url: str,
        crawl: bool = False,
        options: Optional[CrawlOptions] = None,
        selector: Optional[str] = None,
    ) -> IngestResult:
        """Scrape (or crawl from) a URL and ingest the text."""
        try:
            url = validate_url(url)
            if crawl:
                text = await self.scraper.crawl(url, options)
            else:
                text = await self.scraper.scrape(url, selector=selector)
        except Exception as e:
            logger.error("url_extraction_failed", url=url, error=str(e))
            return IngestResult(message=f"Error processing website: {e}", success=False)

        return await self.ingest_text(
            text,
            filename=urlparse(url).netloc,
            filepath=url,
            filetype="web",
            label="website",
        )

    async def ask(self, question: str) -> Answer:
        """Answer a question from the most similar stored chunks.

        Returns:
            Answer with the model's reply and the unique source filenames
            in rank order, or a fixed/diagnostic message on failure
        """
        try:
            if not question or not question.strip():
                raise ValidationError("Question cannot be empty")

            [query_embedding] = await self.embedder.embed([question], EmbeddingRole.QUERY)
            if not query_embedding.is_embedded:
                return Answer(content=COULD_NOT_PROCESS, success=False)

            index = self.index_factory(self.store.fetch_all_embedded_chunks())
            hits = index.search(query_embedding.vector, self.max_context_chunks)

            if not hits:
                logger.info("no_relevant_context_found", candidates=len(index))
                return Answer(content=NO_RELEVANT_INFORMATION)

            context, sources = build_context(hits)

            logger.info(
                "retrieval_completed",
                question_length=len(question),
                results_returned=len(hits),
                top_score=hits[0].score,
                sources=sources,
            )

            prompt = PROMPT_TEMPLATE.format(context=context, question=question)
            response = await self.client.chat(
                [{"role": "user", "content": prompt}],
                model=self.chat_model,
                temperature=self.temperature,
                num_ctx=self.num_ctx,
            )
            content = response.get("message", {}).get("content") or NO_RESPONSE

            return Answer(content=content, sources=sources, context=context)

        except Exception as e:
            logger.error(
                "question_failed",
                error=str(e),
                error_type=type(e).__name__,
                question_preview=(question or "")[:100],
            )
            return Answer(content=f"Error generating response: {e}", success=False)

    def list_documents(self) -> List[Document]:
        """Documents newest first. Raises StorageError on failure."""
        return self.store.list_documents()

    def delete_document(self, document_id: int) -> bool:
        """Delete a document and its chunks. Raises StorageError on failure."""
        if document_id <= 0:
            raise ValidationError(f"Invalid document ID: {document_id}")
        return self.store.delete_document(document_id)
