"""Pydantic schemas for the vector index."""

from __future__ import annotations

from vector_index.schemas.base import StrictModel
from vector_index.schemas.documents import Chunk, DocumentEntry, LineRange, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.indexing import IndexDelta, IndexProgress, IndexRunOutcome, IndexRunResult, ProgressCallback
from vector_index.schemas.search import SearchScope, SimilarityHit, SimilarityQuery

__all__ = [
    'Chunk',
    'DocumentEntry',
    'EmbeddingModel',
    'IndexDelta',
    'IndexProgress',
    'IndexRunOutcome',
    'IndexRunResult',
    'LineRange',
    'ProgressCallback',
    'SearchScope',
    'SimilarityHit',
    'SimilarityQuery',
    'StrictModel',
    'VectorRecord',
]
