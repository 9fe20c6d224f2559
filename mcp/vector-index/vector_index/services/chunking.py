"""Chunking service - splits documents into embeddable, line-ranged chunks.

Markdown-aware recursive splitting: boundaries prefer headings, then
paragraphs, then lines, then words, and only cut mid-word as a last resort.
No overlap, so chunk line ranges are disjoint and increasing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from langchain_text_splitters import Language, RecursiveCharacterTextSplitter

from vector_index.schemas.documents import Chunk

__all__ = [
    'ChunkingService',
    'DEFAULT_CHUNK_SIZE',
]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000  # Characters

# Merged same-line pieces are cut at this multiple of chunk_size by default
MAX_CHUNK_FACTOR = 2


class ChunkingService:
    """Cuts one document into ordered chunks of at most ~chunk_size characters.

    A single line longer than chunk_size may be split by the underlying
    splitter into pieces sharing that line. Those pieces are merged back into
    one chunk so no two chunks of a document cover the same line. A merged
    chunk longer than max_chunk_chars keeps its line range but its content is
    cut at the limit.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, max_chunk_chars: int | None = None) -> None:
        """Initialize chunking service.

        Args:
            chunk_size: Target chunk size in characters.
            max_chunk_chars: Hard cap on chunk content. Defaults to
                MAX_CHUNK_FACTOR * chunk_size.
        """
        self._chunk_size = chunk_size
        self._max_chunk_chars = max_chunk_chars or chunk_size * MAX_CHUNK_FACTOR
        self._splitter = RecursiveCharacterTextSplitter.from_language(
            Language.MARKDOWN,
            chunk_size=chunk_size,
            chunk_overlap=0,
            add_start_index=True,
        )

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def max_chunk_chars(self) -> int:
        return self._max_chunk_chars

    def chunk_document(self, path: str, content: str, mtime: float) -> Sequence[Chunk]:
        """Split a document into chunks.

        Args:
            path: Document key, copied onto every chunk.
            content: Full document text.
            mtime: Document mtime, copied onto every chunk.

        Returns:
            Chunks in document order. Empty for empty or whitespace-only text.
        """
        if not content.strip():
            return []

        spans = self._merge_shared_lines(content, self._split_spans(content))

        chunks: list[Chunk] = []
        for start, end in spans:
            text = content[start:end]
            if len(text) > self._max_chunk_chars:
                logger.warning(
                    f'[CHUNK] {path}:{_line_at(content, start)} chunk of {len(text)} chars '
                    f'cut to {self._max_chunk_chars}'
                )
                text = text[: self._max_chunk_chars]
            chunks.append(
                Chunk(
                    path=path,
                    content=text,
                    start_line=_line_at(content, start),
                    end_line=_line_at(content, end - 1),
                    mtime=mtime,
                )
            )
        logger.debug(f'[CHUNK] {path}: {len(chunks)} chunks')
        return chunks

    def _split_spans(self, content: str) -> list[tuple[int, int]]:
        """Character spans [start, end) of each split, in order."""
        spans: list[tuple[int, int]] = []
        for doc in self._splitter.create_documents([content]):
            start = doc.metadata['start_index']
            if start < 0:
                # Splitter could not locate the piece; fall back to scanning forward
                search_from = spans[-1][1] if spans else 0
                start = content.find(doc.page_content, search_from)
            spans.append((start, start + len(doc.page_content)))
        return spans

    @staticmethod
    def _merge_shared_lines(content: str, spans: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Join consecutive spans whose line ranges touch the same line."""
        merged: list[tuple[int, int]] = []
        for start, end in spans:
            if merged and _line_at(content, start) <= _line_at(content, merged[-1][1] - 1):
                prev_start, prev_end = merged[-1]
                merged[-1] = (prev_start, max(prev_end, end))
            else:
                merged.append((start, end))
        return merged


def _line_at(content: str, offset: int) -> int:
    """1-based line number of the character at `offset`."""
    return content.count('\n', 0, offset) + 1
