"""Indexing run schemas.

Models for the change set, live progress, and the outcome of a run.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Literal

from vector_index.schemas.base import StrictModel

__all__ = [
    'IndexDelta',
    'IndexProgress',
    'IndexRunOutcome',
    'IndexRunResult',
    'ProgressCallback',
]


class IndexProgress(StrictModel):
    """Progress snapshot. Totals are fixed at run start."""

    completed_chunks: int
    total_chunks: int
    total_files: int


# Coroutine callbacks are awaited before the pipeline moves on
type ProgressCallback = Callable[[IndexProgress], Awaitable[None] | None]


class IndexDelta(StrictModel):
    """Corpus changes since the last successful run."""

    new: Sequence[str] = ()
    modified: Sequence[str] = ()
    deleted: Sequence[str] = ()

    @property
    def to_index(self) -> Sequence[str]:
        """Paths needing (re)embedding, new first, each group sorted."""
        return [*self.new, *self.modified]

    @property
    def is_empty(self) -> bool:
        return not (self.new or self.modified or self.deleted)


# indexed: vectors written
# up_to_date: nothing to do
# configuration_required: provider settings must be fixed before retrying
# rate_limited: provider throttled us past the retry budget
type IndexRunOutcome = Literal['indexed', 'up_to_date', 'configuration_required', 'rate_limited']


class IndexRunResult(StrictModel):
    """Result of an indexing run."""

    outcome: IndexRunOutcome
    files_indexed: int = 0
    chunks_indexed: int = 0
    files_deleted: int = 0
    files_skipped_empty: int = 0
    elapsed_seconds: float = 0.0
    message: str | None = None

    @property
    def needs_attention(self) -> bool:
        """True when the caller should surface a warning or settings prompt."""
        return self.outcome in ('configuration_required', 'rate_limited')
