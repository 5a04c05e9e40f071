"""Domain objects shared by the store, the pipeline and the CLI."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Embedded:
    """A successfully produced embedding vector."""

    vector: Tuple[float, ...]

    @property
    def is_embedded(self) -> bool:
        return True

    @property
    def dimension(self) -> int:
        return len(self.vector)


class Unembedded:
    """Marker for a text whose embedding call failed.

    Kept distinct from an empty or all-zero vector so a legitimate zero
    embedding is never mistaken for a failure.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def is_embedded(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNEMBEDDED"


UNEMBEDDED = Unembedded()

EmbeddingResult = Union[Embedded, Unembedded]


def embedded(vector: Sequence[float]) -> Embedded:
    """Build an Embedded result from any float sequence."""
    return Embedded(tuple(float(v) for v in vector))


@dataclass(frozen=True)
class Chunk:
    """A bounded span of a document's text plus its embedding."""

    text: str
    index: int
    embedding: EmbeddingResult = UNEMBEDDED
    id: Optional[int] = None
    document_id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    source: Optional[str] = None  # owning document's filename, set when loaded for search


@dataclass
class Document:
    """An ingested file or web page and the chunks it owns."""

    filename: str
    filepath: str
    content: str
    filetype: str
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    chunks: List[Chunk] = field(default_factory=list)

    def attach_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Attach chunks during ingestion.

        Raises:
            ValueError: If chunk indices are not contiguous from 0
        """
        indices = [c.index for c in chunks]
        if indices != list(range(len(chunks))):
            raise ValueError(f"Chunk indices must be contiguous from 0, got {indices}")
        self.chunks = list(chunks)

    @property
    def unembedded_count(self) -> int:
        return sum(1 for c in self.chunks if not c.embedding.is_embedded)


@dataclass
class Answer:
    """Result of a question against the corpus."""

    content: str
    sources: List[str] = field(default_factory=list)
    context: str = ""
    success: bool = True


@dataclass
class IngestResult:
    """Outcome of an ingest command."""

    message: str
    success: bool
    document_id: Optional[int] = None
    chunk_count: int = 0
    unembedded_count: int = 0
