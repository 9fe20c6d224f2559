"""Delta detection - what changed in the corpus since the last run.

Compares the live corpus listing with what the vector store already holds
for a model. Cost is one store lookup per selected path plus one content read
per path that has no vectors yet (to skip empty documents).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import PurePosixPath

from vector_index.repositories.corpus import Corpus
from vector_index.repositories.protocols import VectorStore
from vector_index.schemas.config import IndexSettings
from vector_index.schemas.documents import DocumentEntry
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.indexing import IndexDelta

__all__ = [
    'detect_changes',
    'matches_any',
    'select_paths',
]

logger = logging.getLogger(__name__)


def matches_any(path: str, patterns: Sequence[str]) -> bool:
    """True if the path matches at least one glob.

    `*` stays within one path segment, `**` spans any number of segments.
    """
    pure = PurePosixPath(path)
    return any(pure.full_match(pattern) for pattern in patterns)


def select_paths(
    entries: Sequence[DocumentEntry],
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
) -> Sequence[DocumentEntry]:
    """Apply exclude globs, then include globs (if any)."""
    selected = [e for e in entries if not matches_any(e.path, exclude_patterns)]
    if include_patterns:
        selected = [e for e in selected if matches_any(e.path, include_patterns)]
    return selected


async def detect_changes(
    entries: Sequence[DocumentEntry],
    corpus: Corpus,
    store: VectorStore,
    model: EmbeddingModel,
    settings: IndexSettings,
    *,
    reindex_all: bool = False,
) -> IndexDelta:
    """Compute new, modified and deleted paths for a model.

    With reindex_all, every selected non-empty path is reported as new and
    nothing is compared against stored mtimes; the caller rebuilds the model
    from scratch.

    Args:
        entries: Current corpus listing.
        corpus: Content source for paths without vectors.
        store: Vector store holding the model's current records.
        model: Embedding model whose records are compared.
        settings: Include/exclude globs.
        reindex_all: Treat every selected document as needing indexing.

    Returns:
        Sorted new, modified and deleted path lists.
    """
    live_paths = {e.path for e in entries}
    indexed_paths = await store.list_indexed_paths(model)

    deleted = sorted(p for p in indexed_paths if p not in live_paths)
    selected = select_paths(entries, settings.include_patterns, settings.exclude_patterns)

    new: list[str] = []
    modified: list[str] = []
    skipped_empty = 0

    for entry in selected:
        stored = [] if reindex_all else await store.get_vectors_by_path(entry.path, model)
        if not stored:
            content = await corpus.read_content(entry.path)
            if not content.strip():
                skipped_empty += 1
                continue
            new.append(entry.path)
        elif entry.mtime > stored[0].mtime:
            modified.append(entry.path)

    logger.info(
        f'[DELTA] {model.identity}: {len(entries)} documents, {len(selected)} selected, '
        f'new={len(new)} modified={len(modified)} deleted={len(deleted)} empty={skipped_empty}'
        + (' (reindex all)' if reindex_all else '')
    )
    return IndexDelta(new=sorted(new), modified=sorted(modified), deleted=deleted)
