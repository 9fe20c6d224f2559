"""Document, chunk and vector record schemas.

Documents come from the corpus, chunks live only for one indexing run, and
vector records are what the store persists.
"""

from __future__ import annotations

from collections.abc import Sequence

from vector_index.schemas.base import StrictModel

__all__ = [
    'Chunk',
    'DocumentEntry',
    'LineRange',
    'VectorRecord',
]


class DocumentEntry(StrictModel):
    """One corpus listing entry. Content is read separately on demand."""

    path: str  # POSIX-style, relative to corpus root
    mtime: float  # Epoch seconds


class LineRange(StrictModel):
    """1-based inclusive line span of a chunk within its document."""

    start_line: int
    end_line: int


class Chunk(StrictModel):
    """Line-ranged slice of a document, the unit submitted for embedding."""

    path: str
    content: str
    start_line: int
    end_line: int
    mtime: float  # Owning document's mtime when the chunk was cut


class VectorRecord(StrictModel):
    """Persisted embedding of one chunk.

    Unique per model by (path, start_line, end_line).
    """

    path: str
    mtime: float
    content: str
    embedding: Sequence[float]
    metadata: LineRange

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: Sequence[float]) -> VectorRecord:
        return cls(
            path=chunk.path,
            mtime=chunk.mtime,
            content=chunk.content,
            embedding=list(embedding),
            metadata=LineRange(start_line=chunk.start_line, end_line=chunk.end_line),
        )

    @property
    def key(self) -> tuple[str, int, int]:
        """Identity within one model's vectors."""
        return (self.path, self.metadata.start_line, self.metadata.end_line)
