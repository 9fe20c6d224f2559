"""Qdrant-backed vector store.

Typed interface over the Qdrant client. Each embedding model gets its own
collection (named from identity and dimension), so models never share
vectors. Point ids are derived from (path, start_line, end_line), which makes
re-inserting the same chunk an overwrite rather than a duplicate.

Scope filtering relies on a `folders` payload holding every ancestor folder
of the record's path ('notes/', 'notes/daily/'), matched with MatchAny.

Search results are ordered by similarity then record identity, including
ties that straddle the requested limit.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from vector_index.clients.qdrant import QdrantClient, ScoredPointDict
from vector_index.schemas.documents import LineRange, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.search import SimilarityHit, SimilarityQuery, normalize_folder
from vector_index.services.similarity import order_hits

__all__ = [
    'QdrantVectorStore',
    'ancestor_folders',
    'point_id',
]

logger = logging.getLogger(__name__)

TIE_OVERFETCH = 16  # Extra points fetched per search so ties at the limit can be ordered


class QdrantVectorStore:
    """VectorStore over Qdrant, one collection per embedding model."""

    def __init__(self, client: QdrantClient) -> None:
        self._client = client
        self._ensured: set[str] = set()

    async def _ensure(self, model: EmbeddingModel) -> str:
        name = model.collection_name
        if name not in self._ensured:
            await self._client.ensure_collection(name, model.dimension)
            self._ensured.add(name)
        return name

    async def _existing(self, model: EmbeddingModel) -> str | None:
        """Collection name if it exists. Reads never create collections."""
        name = model.collection_name
        if name in self._ensured or await self._client.collection_exists(name):
            return name
        return None

    async def insert_vectors(self, records: Sequence[VectorRecord], model: EmbeddingModel) -> None:
        for record in records:
            if len(record.embedding) != model.dimension:
                raise ValueError(
                    f'Embedding for {record.path}:{record.metadata.start_line} has dimension '
                    f'{len(record.embedding)}, model {model.identity} expects {model.dimension}'
                )
        if not records:
            return
        name = await self._ensure(model)
        points = [(point_id(record), record.embedding, _to_payload(record)) for record in records]
        count = await self._client.upsert(name, points)
        logger.debug(f'[STORE] Upserted {count} points into {name}')

    async def delete_vectors_for_path(self, path: str, model: EmbeddingModel) -> None:
        await self.delete_vectors_for_paths([path], model)

    async def delete_vectors_for_paths(self, paths: Sequence[str], model: EmbeddingModel) -> None:
        if not paths:
            return
        name = await self._existing(model)
        if name is None:
            return
        await self._client.delete_by_paths(name, paths)
        logger.debug(f'[STORE] Deleted points for {len(paths)} paths from {name}')

    async def clear_all_vectors(self, model: EmbeddingModel) -> None:
        name = model.collection_name
        await self._client.delete_collection(name)
        self._ensured.discard(name)
        logger.info(f'[STORE] Cleared collection {name}')

    async def get_vectors_by_path(self, path: str, model: EmbeddingModel) -> Sequence[VectorRecord]:
        name = await self._existing(model)
        if name is None:
            return []
        points = await self._client.scroll(name, path=path, with_vectors=True)
        records = [_from_point(p['payload'], p['vector'] or []) for p in points]
        return sorted(records, key=lambda r: r.metadata.start_line)

    async def list_indexed_paths(self, model: EmbeddingModel) -> Sequence[str]:
        name = await self._existing(model)
        if name is None:
            return []
        points = await self._client.scroll(name, payload_fields=['path'])
        return sorted({p['payload']['path'] for p in points})

    async def similarity_search(self, query: SimilarityQuery, model: EmbeddingModel) -> Sequence[SimilarityHit]:
        name = await self._existing(model)
        if name is None:
            return []

        files: Sequence[str] = ()
        folders: Sequence[str] = ()
        if query.scope is not None:
            files = query.scope.files
            folders = [normalize_folder(f) for f in query.scope.folders]
            if '' in folders:
                # Root folder covers everything
                files, folders = (), ()

        # Qdrant breaks score ties arbitrarily, so fetch past the limit until every
        # point tied with the last kept score is in hand, then order and cut
        fetch = query.limit + TIE_OVERFETCH
        while True:
            results = await self._client.search(
                name,
                query.query_vector,
                limit=fetch,
                score_threshold=query.min_similarity,
                paths=files,
                folders=folders,
            )
            if len(results) < fetch or _ties_resolved(results, query.limit):
                break
            fetch *= 2

        hits = [
            SimilarityHit(
                path=r['payload']['path'],
                mtime=r['payload']['mtime'],
                content=r['payload']['content'],
                metadata=LineRange(start_line=r['payload']['start_line'], end_line=r['payload']['end_line']),
                similarity=r['score'],
            )
            for r in results
        ]
        return order_hits(hits)[: query.limit]

    async def close(self) -> None:
        await self._client.close()


def _ties_resolved(results: Sequence[ScoredPointDict], limit: int) -> bool:
    """True when the lowest fetched score is below the score at the cut."""
    scores = sorted((r['score'] for r in results), reverse=True)
    return len(scores) <= limit or scores[-1] < scores[limit - 1]


def point_id(record: VectorRecord) -> UUID:
    """Deterministic UUID from record identity.

    Same path + line range = same UUID, so re-inserting overwrites.
    """
    key = f'{record.path}|{record.metadata.start_line}|{record.metadata.end_line}'
    return UUID(bytes=hashlib.sha256(key.encode()).digest()[:16])


def ancestor_folders(path: str) -> Sequence[str]:
    """Every folder prefix of a path: 'a/b/c.md' -> ['a/', 'a/b/']."""
    parts = path.split('/')[:-1]
    return ['/'.join(parts[: i + 1]) + '/' for i in range(len(parts))]


def _to_payload(record: VectorRecord) -> Mapping[str, Any]:  # strict_typing_linter.py: loose-typing # Qdrant payload
    return {
        'path': record.path,
        'folders': list(ancestor_folders(record.path)),
        'mtime': record.mtime,
        'content': record.content,
        'start_line': record.metadata.start_line,
        'end_line': record.metadata.end_line,
    }


def _from_point(
    payload: Mapping[str, Any],  # strict_typing_linter.py: loose-typing # Qdrant payload
    vector: Sequence[float],
) -> VectorRecord:
    return VectorRecord(
        path=payload['path'],
        mtime=payload['mtime'],
        content=payload['content'],
        embedding=list(vector),
        metadata=LineRange(start_line=payload['start_line'], end_line=payload['end_line']),
    )
