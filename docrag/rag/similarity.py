"""Exact nearest-neighbour ranking of chunks under cosine similarity.

BruteForceIndex scans every candidate per query (O(N*D)). It is meant for
small corpora; anything implementing SimilarityIndex can replace it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Sequence
import numpy as np
import structlog

from docrag.models import Chunk

logger = structlog.get_logger()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 when the dimensions differ or either vector has zero norm.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


@dataclass(frozen=True)
class ScoredChunk:
    """A retrieved chunk with its similarity to the query."""

    chunk: Chunk
    score: float


class SimilarityIndex(ABC):
    """Holds embedded chunks and ranks them against a query vector."""

    @abstractmethod
    def add(self, chunks: Iterable[Chunk]) -> int:
        """Add chunks; unembedded ones are skipped. Returns how many were kept."""

    @abstractmethod
    def search(self, query_vector: Sequence[float], k: int) -> List[ScoredChunk]:
        """Top-k chunks by descending similarity."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class BruteForceIndex(SimilarityIndex):
    """In-memory linear scan, no index structure."""

    def __init__(self, chunks: Iterable[Chunk] = ()):
        self._chunks: List[Chunk] = []
        self.add(chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def add(self, chunks: Iterable[Chunk]) -> int:
        kept = 0
        for chunk in chunks:
            if not chunk.embedding.is_embedded:
                continue
            self._chunks.append(chunk)
            kept += 1
        return kept

    def search(self, query_vector: Sequence[float], k: int) -> List[ScoredChunk]:
        """Rank every candidate and return the best k.

        Ties keep insertion order (stable sort). Fewer than k results are
        returned when there are fewer candidates.
        """
        if k <= 0 or not self._chunks:
            return []

        scored = [
            ScoredChunk(chunk=c, score=cosine_similarity(query_vector, c.embedding.vector))
            for c in self._chunks
        ]
        ranked = sorted(scored, key=lambda s: s.score, reverse=True)[:k]

        logger.debug(
            "similarity_search_completed",
            candidates=len(self._chunks),
            top_k=k,
            results=len(ranked),
            top_score=ranked[0].score if ranked else None,
        )

        return ranked
