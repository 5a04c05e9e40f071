"""Sentence-aware text chunking with overlap for the RAG pipeline.

Character-based sizes avoid tokenizer dependencies. Text is split into
sentence units line by line, units are packed greedily into chunks, and
each new chunk is seeded with the tail of the previous one.
"""
from typing import List, Optional
import structlog

from docrag import config

logger = structlog.get_logger()

SENTENCE_ENDERS = ".!?"

# Lines shorter than this are never split (headings, list items, code)
ATOMIC_LINE_LENGTH = 100


class TextChunker:
    """Greedy sentence packer with overlap seeding."""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum chunk size in characters (default from config)
            chunk_overlap: Characters carried over between chunks (default from config)

        Raises:
            ValueError: If chunk_size <= 0 or overlap is not in [0, chunk_size)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be in [0, "
                f"chunk size ({self.chunk_size}))"
            )

        # A line that cannot fit in one chunk is split even when short
        self.atomic_line_length = min(ATOMIC_LINE_LENGTH, self.chunk_size)

        logger.debug(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str) -> List[str]:
        """Split text into overlapping, size-bounded chunks.

        A single sentence longer than the chunk size becomes its own
        oversized chunk; sentences are never cut.

        Args:
            text: Text to chunk

        Returns:
            Chunk strings in source order, trimmed and non-empty
        """
        if not text or not text.strip():
            return []

        chunks: List[str] = []
        buffer = ""

        for unit in self.split_sentences(text):
            if buffer and len(buffer) + len(unit) > self.chunk_size:
                chunks.append(buffer.strip())
                buffer = self._overlap_seed(buffer)

            buffer += unit

        if buffer:
            chunks.append(buffer.strip())

        chunks = [c for c in chunks if c]

        logger.debug(
            "text_chunked",
            text_length=len(text),
            chunk_count=len(chunks),
        )

        return chunks

    def split_sentences(self, text: str) -> List[str]:
        """Turn text into sentence units, each ending with a single space.

        Blank lines are dropped. A line is kept whole when it is short or
        does not end in terminal punctuation; otherwise it is cut after
        every '.', '!' or '?' followed by whitespace or end of line.
        """
        units: List[str] = []

        for line in text.split("\n"):
            line = line.strip()
            if not line:
                continue

            if len(line) < self.atomic_line_length or line[-1] not in SENTENCE_ENDERS:
                units.append(line + " ")
                continue

            current = []
            for i, char in enumerate(line):
                current.append(char)
                if char in SENTENCE_ENDERS and (i == len(line) - 1 or line[i + 1].isspace()):
                    units.append("".join(current).strip() + " ")
                    current = []

            if current:
                remainder = "".join(current).strip()
                if remainder:
                    units.append(remainder + " ")

        return units

    def _overlap_seed(self, finished: str) -> str:
        """Build the start of the next chunk from the tail of the finished one.

        The tail is re-split into sentence units and the first (likely
        partial) unit is dropped. When the tail holds only one unit it is
        reused verbatim, even if that starts mid-sentence.
        """
        if self.chunk_overlap == 0:
            return ""

        if len(finished) <= self.chunk_overlap:
            return finished

        tail = finished[-self.chunk_overlap:]
        units = self.split_sentences(tail)

        if len(units) > 1:
            return "".join(units[1:])

        return tail

    def get_chunk_stats(self, chunks: List[str]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: Chunk strings

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


def chunk_text(
    text: str,
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
) -> List[str]:
    """Chunk text with the given (or configured) sizes (convenience function).

    Args:
        text: Text to chunk
        chunk_size: Maximum chunk size in characters
        chunk_overlap: Overlap in characters

    Returns:
        List of chunk strings
    """
    return TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap).chunk_text(text)
