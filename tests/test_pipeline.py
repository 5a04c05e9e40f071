"""Tests for ingestion and question answering end to end."""
import pytest

from docrag import config
from docrag.errors import StorageError, ValidationError
from docrag.models import Chunk, embedded
from docrag.rag.chunker import TextChunker
from docrag.rag.embedder import EmbeddingOrchestrator
from docrag.rag.pipeline import (
    COULD_NOT_PROCESS,
    NO_RELEVANT_INFORMATION,
    RetrievalPipeline,
    build_context,
)
from docrag.rag.similarity import ScoredChunk

from conftest import FakeOllama

GEOGRAPHY = (
    "Paris is the capital of France. "
    "Berlin is the capital of Germany. "
    "Bananas are a yellow fruit."
)


def make_pipeline(store, client):
    return RetrievalPipeline(
        store,
        client,
        embedder=EmbeddingOrchestrator(client, delay_ms=0),
        chunker=TextChunker(chunk_size=40, chunk_overlap=0),
        max_context_chunks=3,
    )


class FakeScraper:
    def __init__(self, text="Scraped page text. It mentions Lisbon."):
        self.text = text
        self.calls = []

    async def scrape(self, url, selector=None):
        self.calls.append(("scrape", url))
        return self.text

    async def crawl(self, url, options=None):
        self.calls.append(("crawl", url))
        return self.text


class TestIngest:
    async def test_ingest_text_stores_document_and_chunks(self, pipeline, store):
        result = await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/docs/geo.txt", "txt")

        assert result.success
        assert result.chunk_count == 3
        assert result.unembedded_count == 0
        assert result.message == (
            f"Successfully processed document 'geo.txt' with ID {result.document_id}. "
            "Created 3 chunks."
        )
        document = store.get_document(result.document_id)
        assert [c.text for c in document.chunks] == [
            "Paris is the capital of France.",
            "Berlin is the capital of Germany.",
            "Bananas are a yellow fruit.",
        ]

    async def test_chunks_are_embedded_with_document_prefix(self, pipeline, fake_ollama):
        await pipeline.ingest_text("Short text.", "a.txt", "/a.txt", "txt")
        assert fake_ollama.prompts == ["search_document: Short text."]

    async def test_empty_text_is_rejected(self, pipeline, store):
        result = await pipeline.ingest_text("   \n", "blank.txt", "/blank.txt", "txt")

        assert not result.success
        assert result.message == "No content extracted from document"
        assert store.list_documents() == []

    async def test_partially_embedded_document_is_still_stored(self, store):
        pipeline = make_pipeline(store, FakeOllama(fail_on=["Bananas"]))

        result = await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        assert result.success
        assert result.chunk_count == 3
        assert result.unembedded_count == 1
        assert "1 chunk(s) could not be embedded" in result.message
        assert store.get_chunk_count() == 3
        assert len(store.fetch_all_embedded_chunks()) == 2

    async def test_storage_failure_is_reported(self, pipeline, store, monkeypatch):
        def fail(document):
            raise StorageError("disk full")

        monkeypatch.setattr(store, "create_with_chunks", fail)

        result = await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        assert not result.success
        assert result.message == "Error processing document: disk full"

    async def test_ingest_file(self, pipeline, store, tmp_path):
        path = tmp_path / "geo.txt"
        path.write_text(GEOGRAPHY, encoding="utf-8")

        result = await pipeline.ingest_file(str(path))

        assert result.success
        [document] = store.list_documents()
        assert document.filename == "geo.txt"
        assert document.filetype == "txt"
        assert document.filepath == str(path)

    async def test_ingest_file_unsupported_type(self, pipeline, tmp_path):
        path = tmp_path / "data.xyz"
        path.write_text("whatever")

        result = await pipeline.ingest_file(path)

        assert not result.success
        assert result.message == "Error processing document: File type .xyz is not supported"

    async def test_ingest_missing_file(self, pipeline, tmp_path):
        result = await pipeline.ingest_file(tmp_path / "missing.txt")

        assert not result.success
        assert result.message.startswith("Error processing document: File not found")

    async def test_ingest_url(self, store, fake_ollama):
        scraper = FakeScraper()
        pipeline = make_pipeline(store, fake_ollama)
        pipeline.scraper = scraper

        result = await pipeline.ingest_url("https://example.com/page")

        assert result.success
        assert result.message.startswith("Successfully processed website 'example.com'")
        assert scraper.calls == [("scrape", "https://example.com/page")]
        [document] = store.list_documents()
        assert document.filetype == "web"
        assert document.filepath == "https://example.com/page"

    async def test_ingest_url_crawl(self, store, fake_ollama):
        scraper = FakeScraper()
        pipeline = make_pipeline(store, fake_ollama)
        pipeline.scraper = scraper

        result = await pipeline.ingest_url("https://example.com", crawl=True)

        assert result.success
        assert scraper.calls == [("crawl", "https://example.com")]

    async def test_ingest_invalid_url(self, pipeline):
        result = await pipeline.ingest_url("ftp://example.com")

        assert not result.success
        assert result.message == "Error processing website: Invalid URL format: ftp://example.com"

    async def test_ingest_url_with_no_text(self, store, fake_ollama):
        pipeline = make_pipeline(store, fake_ollama)
        pipeline.scraper = FakeScraper(text="")

        result = await pipeline.ingest_url("https://example.com")

        assert not result.success
        assert result.message == "No content extracted from website"


class TestAsk:
    async def test_answers_from_most_similar_chunk(self, pipeline, fake_ollama):
        await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        answer = await pipeline.ask("What is the capital of France?")

        assert answer.success
        assert answer.content == "Paris"
        assert answer.sources == ["geo.txt"]
        assert answer.context.startswith("Source: geo.txt\nParis is the capital of France.\n\n")
        assert fake_ollama.prompts[-1] == "search_query: What is the capital of France?"

    async def test_prompt_and_generation_settings(self, pipeline, fake_ollama):
        await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        await pipeline.ask("What is the capital of France?")

        [call] = fake_ollama.chat_calls
        [message] = call["messages"]
        assert message["role"] == "user"
        assert message["content"].startswith(
            "Based on the following context, please answer the question."
        )
        assert "Paris is the capital of France." in message["content"]
        assert message["content"].endswith(
            "Question: What is the capital of France?\n\nAnswer:"
        )
        assert call["model"] == config.CHAT_MODEL
        assert call["temperature"] == config.CHAT_TEMPERATURE
        assert call["num_ctx"] == config.MAX_TOKENS

    async def test_sources_are_unique_in_rank_order(self, pipeline):
        await pipeline.ingest_text("The capital of France is Paris.", "france.txt", "/f", "txt")
        await pipeline.ingest_text("Paris is in France.", "cities.txt", "/c", "txt")
        await pipeline.ingest_text("France has a capital.", "france2.txt", "/f2", "txt")

        answer = await pipeline.ask("capital of France Paris")

        assert len(answer.sources) == len(set(answer.sources))
        assert answer.sources[0] == "france.txt"

    async def test_no_documents(self, pipeline, fake_ollama):
        answer = await pipeline.ask("What is the capital of France?")

        assert answer.content == NO_RELEVANT_INFORMATION
        assert answer.sources == []
        assert fake_ollama.chat_calls == []

    async def test_query_embedding_failure_skips_chat(self, store):
        client = FakeOllama(fail_on=["search_query"])
        pipeline = make_pipeline(store, client)
        await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        answer = await pipeline.ask("What is the capital of France?")

        assert not answer.success
        assert answer.content == COULD_NOT_PROCESS
        assert client.chat_calls == []

    async def test_chat_failure_is_reported(self, pipeline, fake_ollama):
        await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")
        fake_ollama.fail_chat = True

        answer = await pipeline.ask("What is the capital of France?")

        assert not answer.success
        assert answer.content == "Error generating response: timed out"

    async def test_empty_question(self, pipeline, fake_ollama):
        answer = await pipeline.ask("   ")

        assert not answer.success
        assert answer.content == "Error generating response: Question cannot be empty"
        assert fake_ollama.prompts == []

    async def test_deleted_document_is_no_longer_retrieved(self, pipeline):
        result = await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        assert pipeline.delete_document(result.document_id) is True
        answer = await pipeline.ask("What is the capital of France?")

        assert answer.content == NO_RELEVANT_INFORMATION

    async def test_unembedded_chunks_never_reach_the_context(self, store):
        pipeline = make_pipeline(store, FakeOllama(fail_on=["France"]))
        await pipeline.ingest_text(GEOGRAPHY, "geo.txt", "/geo.txt", "txt")

        answer = await pipeline.ask("Which city is the capital?")

        assert "Paris" not in answer.context
        assert "Berlin is the capital of Germany." in answer.context


class TestDocumentManagement:
    async def test_list_documents(self, pipeline):
        await pipeline.ingest_text("One.", "one.txt", "/one", "txt")
        await pipeline.ingest_text("Two.", "two.txt", "/two", "txt")

        assert [d.filename for d in pipeline.list_documents()] == ["two.txt", "one.txt"]

    def test_delete_rejects_invalid_id(self, pipeline):
        with pytest.raises(ValidationError):
            pipeline.delete_document(0)

    def test_delete_missing_document(self, pipeline):
        assert pipeline.delete_document(42) is False


def test_build_context_formats_and_dedupes_sources():
    hits = [
        ScoredChunk(Chunk(text="alpha", index=0, embedding=embedded([1.0]), source="a.txt"), 0.9),
        ScoredChunk(Chunk(text="beta", index=1, embedding=embedded([1.0]), source="b.txt"), 0.8),
        ScoredChunk(Chunk(text="gamma", index=2, embedding=embedded([1.0]), source="a.txt"), 0.7),
    ]

    context, sources = build_context(hits)

    assert context == (
        "Source: a.txt\nalpha\n\n"
        "Source: b.txt\nbeta\n\n"
        "Source: a.txt\ngamma\n\n"
    )
    assert sources == ["a.txt", "b.txt"]
