"""Similarity ranking over stored vector records.

Exact cosine similarity with numpy. Used directly by the in-memory store and
for the final ordering of hits from any store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np
import numpy.typing as npt

from vector_index.schemas.documents import VectorRecord
from vector_index.schemas.search import SimilarityHit, SimilarityQuery

__all__ = [
    'cosine_similarities',
    'order_hits',
    'rank_records',
    'to_hit',
]

logger = logging.getLogger(__name__)


def cosine_similarities(query: Sequence[float], matrix: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Cosine similarity of `query` against each row of `matrix`.

    Rows (or a query) with zero norm score 0.0 rather than NaN.

    Raises:
        ValueError: If the query length differs from the row length.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        raise ValueError(f'Query has dimension {q.shape[0]}, stored vectors have {matrix.shape[1]}')

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    with np.errstate(divide='ignore', invalid='ignore'):
        scores = np.where(norms > 0, dots / norms, 0.0)
    return scores


def order_hits(hits: Iterable[SimilarityHit]) -> list[SimilarityHit]:
    """Score descending, then path ascending, then position in file."""
    return sorted(hits, key=lambda h: (-h.similarity, h.path, h.metadata.start_line))


def to_hit(record: VectorRecord, similarity: float) -> SimilarityHit:
    return SimilarityHit(
        path=record.path,
        mtime=record.mtime,
        content=record.content,
        metadata=record.metadata,
        similarity=similarity,
    )


def rank_records(records: Sequence[VectorRecord], query: SimilarityQuery) -> list[SimilarityHit]:
    """Rank records against a query.

    Applies scope, then the min_similarity threshold, then ordering, then limit.

    Args:
        records: Candidate records, all from the query's model.
        query: Query vector, threshold, limit and optional scope.

    Returns:
        At most `query.limit` hits, best first.
    """
    scope = query.scope
    candidates = [r for r in records if scope is None or scope.matches(r.path)]
    if not candidates:
        return []

    matrix = np.asarray([r.embedding for r in candidates], dtype=np.float64)
    scores = cosine_similarities(query.query_vector, matrix)

    hits = [
        to_hit(record, float(score))
        for record, score in zip(candidates, scores, strict=True)
        if score >= query.min_similarity
    ]
    ranked = order_hits(hits)[: query.limit]
    logger.debug(f'[SEARCH] {len(candidates)} candidates, {len(hits)} above {query.min_similarity}, {len(ranked)} returned')
    return ranked
