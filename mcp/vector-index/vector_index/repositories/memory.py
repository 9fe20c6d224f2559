"""In-process vector store.

Exact cosine search over every record of a model. Suited to tests and small
corpora; contents are lost when the process exits.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from vector_index.schemas.documents import VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.search import SimilarityHit, SimilarityQuery
from vector_index.services.similarity import rank_records

__all__ = [
    'InMemoryVectorStore',
]

logger = logging.getLogger(__name__)

type RecordKey = tuple[str, int, int]


class InMemoryVectorStore:
    """VectorStore backed by nested dicts: model identity -> record key -> record."""

    def __init__(self) -> None:
        self._models: dict[str, dict[RecordKey, VectorRecord]] = {}

    def _records(self, model: EmbeddingModel) -> dict[RecordKey, VectorRecord]:
        return self._models.setdefault(model.identity, {})

    async def insert_vectors(self, records: Sequence[VectorRecord], model: EmbeddingModel) -> None:
        for record in records:
            if len(record.embedding) != model.dimension:
                raise ValueError(
                    f'Embedding for {record.path}:{record.metadata.start_line} has dimension '
                    f'{len(record.embedding)}, model {model.identity} expects {model.dimension}'
                )
        store = self._records(model)
        for record in records:
            store[record.key] = record
        logger.debug(f'[STORE] Inserted {len(records)} records for {model.identity}')

    async def delete_vectors_for_path(self, path: str, model: EmbeddingModel) -> None:
        await self.delete_vectors_for_paths([path], model)

    async def delete_vectors_for_paths(self, paths: Sequence[str], model: EmbeddingModel) -> None:
        targets = set(paths)
        store = self._records(model)
        doomed = [key for key in store if key[0] in targets]
        for key in doomed:
            del store[key]
        if doomed:
            logger.debug(f'[STORE] Deleted {len(doomed)} records across {len(targets)} paths for {model.identity}')

    async def clear_all_vectors(self, model: EmbeddingModel) -> None:
        self._models.pop(model.identity, None)

    async def get_vectors_by_path(self, path: str, model: EmbeddingModel) -> Sequence[VectorRecord]:
        records = [r for key, r in self._records(model).items() if key[0] == path]
        return sorted(records, key=lambda r: r.metadata.start_line)

    async def list_indexed_paths(self, model: EmbeddingModel) -> Sequence[str]:
        return sorted({key[0] for key in self._records(model)})

    async def similarity_search(self, query: SimilarityQuery, model: EmbeddingModel) -> Sequence[SimilarityHit]:
        return rank_records(list(self._records(model).values()), query)

    def count(self, model: EmbeddingModel) -> int:
        """Number of records stored for a model."""
        return len(self._models.get(model.identity, {}))

    async def close(self) -> None:
        self._models.clear()
