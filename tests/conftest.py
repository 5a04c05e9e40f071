"""Pytest configuration and fixtures for docrag tests."""
import hashlib
import re
from typing import Dict, List, Optional

import httpx
import pytest

from docrag.db import DocumentStore
from docrag.rag.chunker import TextChunker
from docrag.rag.embedder import EmbeddingOrchestrator
from docrag.rag.pipeline import RetrievalPipeline

EMBEDDING_DIM = 256
TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


def bag_of_words(text: str, dim: int = EMBEDDING_DIM) -> List[float]:
    """Deterministic hashed bag-of-words vector."""
    vector = [0.0] * dim
    for token in TOKEN_PATTERN.findall(text.lower()):
        bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dim
        vector[bucket] += 1.0
    return vector


class FakeOllama:
    """Stands in for OllamaClient: hashed embeddings, canned chat replies."""

    def __init__(self, reply: str = "Paris", fail_on: Optional[List[str]] = None):
        self.reply = reply
        self.fail_on = fail_on or []
        self.fail_chat = False
        self.prompts: List[str] = []
        self.chat_calls: List[Dict] = []

    async def embeddings(self, prompt: str, model: Optional[str] = None) -> Dict:
        self.prompts.append(prompt)
        if any(marker in prompt for marker in self.fail_on):
            raise httpx.ConnectError("connection refused")
        return {"embedding": bag_of_words(prompt)}

    async def chat(self, messages, model=None, temperature=None, num_ctx=None) -> Dict:
        self.chat_calls.append(
            {"messages": messages, "model": model, "temperature": temperature, "num_ctx": num_ctx}
        )
        if self.fail_chat:
            raise httpx.ReadTimeout("timed out")
        return {"message": {"role": "assistant", "content": self.reply}}


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def store(tmp_path) -> DocumentStore:
    """Fresh sqlite store in a temp directory."""
    store = DocumentStore(tmp_path / "test.sqlite")
    store.init_database()
    return store


@pytest.fixture
def embedder(fake_ollama) -> EmbeddingOrchestrator:
    return EmbeddingOrchestrator(fake_ollama, delay_ms=0)


@pytest.fixture
def pipeline(store, fake_ollama, embedder) -> RetrievalPipeline:
    """Pipeline wired to the fake provider and a small chunk size."""
    return RetrievalPipeline(
        store,
        fake_ollama,
        embedder=embedder,
        chunker=TextChunker(chunk_size=40, chunk_overlap=0),
        max_context_chunks=3,
    )
