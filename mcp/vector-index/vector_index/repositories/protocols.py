"""Vector store contract.

Every operation is keyed by an EmbeddingModel so vectors from different
models never mix. Implementations: InMemoryVectorStore, QdrantVectorStore.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from vector_index.schemas.documents import VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.search import SimilarityHit, SimilarityQuery

__all__ = [
    'VectorStore',
]


class VectorStore(Protocol):
    """Durable keyed storage of vector records.

    Records are unique per model by (path, start_line, end_line); inserting
    a record with an existing key replaces it. There is no cross-call
    transaction: callers that need all-or-nothing semantics must compute
    everything before the first write.
    """

    async def insert_vectors(self, records: Sequence[VectorRecord], model: EmbeddingModel) -> None:
        """Bulk insert records for a model.

        Raises:
            ValueError: If any embedding length differs from model.dimension.
        """
        ...

    async def delete_vectors_for_path(self, path: str, model: EmbeddingModel) -> None: ...

    async def delete_vectors_for_paths(self, paths: Sequence[str], model: EmbeddingModel) -> None: ...

    async def clear_all_vectors(self, model: EmbeddingModel) -> None: ...

    async def get_vectors_by_path(self, path: str, model: EmbeddingModel) -> Sequence[VectorRecord]:
        """All records for one path, ordered by start_line."""
        ...

    async def list_indexed_paths(self, model: EmbeddingModel) -> Sequence[str]:
        """Distinct paths with at least one record, sorted."""
        ...

    async def similarity_search(self, query: SimilarityQuery, model: EmbeddingModel) -> Sequence[SimilarityHit]:
        """Ranked hits: score descending, ties by path ascending."""
        ...

    async def close(self) -> None: ...
