"""Low-level Qdrant vector database client.

Thin wrapper around qdrant-client. Handles API calls only - no business logic.
Type translation happens in the repository layer.

Uses AsyncQdrantClient for non-blocking I/O in async contexts.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any, TypedDict
from uuid import UUID

import httpx
import tenacity
from local_lib import ConcurrencyTracker
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from vector_index.clients import _retry

logger = logging.getLogger(__name__)


__all__ = [
    'PointDict',
    'QdrantClient',
    'ScoredPointDict',
]


class PointDict(TypedDict):
    """Raw stored point from Qdrant."""

    id: str
    vector: Sequence[float] | None
    payload: Mapping[str, Any]  # strict_typing_linter.py: loose-typing # Qdrant payload


class ScoredPointDict(TypedDict):
    """Raw search result from Qdrant."""

    id: str
    score: float
    payload: Mapping[str, Any]  # strict_typing_linter.py: loose-typing # Qdrant payload


# Payload fields with keyword indexes for filtering
INDEXED_PAYLOAD_FIELDS = ('path', 'folders')

_qdrant_retry = tenacity.retry(
    retry=tenacity.retry_if_exception(_retry.is_retryable_qdrant_error),
    stop=tenacity.stop_after_attempt(3),
    wait=tenacity.wait_exponential(multiplier=0.5, max=5),
    before_sleep=_retry.log_qdrant_retry,
    reraise=True,
)


class QdrantClient:
    """Low-level async Qdrant client for vector operations.

    Collection name is passed explicitly to each method - no default collection.
    """

    DEFAULT_URL = 'http://localhost:6333'

    DEFAULT_MAX_CONCURRENT_UPSERTS = 8
    DEFAULT_TIMEOUT = 10
    DEFAULT_POOL_SIZE = (os.cpu_count() or 8) * 2
    SCROLL_PAGE_SIZE = 256

    def __init__(
        self,
        url: str | None = DEFAULT_URL,
        *,
        location: str | None = None,
        max_concurrent_upserts: int = DEFAULT_MAX_CONCURRENT_UPSERTS,
        timeout: int = DEFAULT_TIMEOUT,
        pool_size: int = DEFAULT_POOL_SIZE,
    ) -> None:
        """Initialize client.

        Args:
            url: Qdrant server URL. Ignored when location is given.
            location: Local mode location (':memory:' for tests).
            max_concurrent_upserts: Max concurrent upsert API calls.
            timeout: HTTP timeout in seconds.
            pool_size: HTTP connection pool size (default 2x CPU count).
        """
        if location is not None:
            self._client = AsyncQdrantClient(location=location)
        else:
            # Explicit limits override qdrant-client's localhost defaults,
            # which disable keep-alive
            limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
            self._client = AsyncQdrantClient(url=url, timeout=timeout, limits=limits)

        self._upsert_semaphore = asyncio.Semaphore(max_concurrent_upserts)
        self._tracker = ConcurrencyTracker('QDRANT_UPSERT', logger=logger)

    async def ensure_collection(self, collection_name: str, vector_dimension: int) -> None:
        """Create a cosine collection with keyword indexes if it doesn't exist.

        Args:
            collection_name: Collection name.
            vector_dimension: Size of embedding vectors.
        """
        if await self.collection_exists(collection_name):
            return

        await self._client.create_collection(
            collection_name=collection_name,
            vectors_config=VectorParams(size=vector_dimension, distance=Distance.COSINE),
        )
        for field_name in INDEXED_PAYLOAD_FIELDS:
            await self._client.create_payload_index(
                collection_name=collection_name,
                field_name=field_name,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.debug(f'[STORE] Created collection {collection_name} (dim={vector_dimension})')

    async def collection_exists(self, collection_name: str) -> bool:
        return await self._client.collection_exists(collection_name)

    async def delete_collection(self, collection_name: str) -> None:
        """Delete the entire collection. No-op if it doesn't exist."""
        if await self.collection_exists(collection_name):
            await self._client.delete_collection(collection_name)

    @_qdrant_retry
    async def upsert(
        self,
        collection_name: str,
        points: Sequence[  # strict_typing_linter.py: loose-typing # Qdrant payload
            tuple[UUID, Sequence[float], Mapping[str, Any]]
        ],
    ) -> int:
        """Insert or update points.

        Args:
            collection_name: Collection name.
            points: Sequence of (id, vector, payload) tuples.

        Returns:
            Number of points upserted.
        """
        point_structs = [
            PointStruct(id=str(point_id), vector=list(vector), payload=dict(payload))
            for point_id, vector, payload in points
        ]

        async with self._upsert_semaphore, self._tracker.track():
            await self._client.upsert(collection_name=collection_name, points=point_structs, wait=True)
        return len(point_structs)

    @_qdrant_retry
    async def search(
        self,
        collection_name: str,
        vector: Sequence[float],
        *,
        limit: int,
        score_threshold: float | None = None,
        paths: Sequence[str] = (),
        folders: Sequence[str] = (),
    ) -> Sequence[ScoredPointDict]:
        """Cosine search, optionally restricted to paths or folder prefixes.

        A point matches the scope if its `path` is in `paths` OR its
        `folders` payload shares any element with `folders`.
        """
        scope: list[FieldCondition] = []
        if paths:
            scope.append(FieldCondition(key='path', match=MatchAny(any=list(paths))))
        if folders:
            scope.append(FieldCondition(key='folders', match=MatchAny(any=list(folders))))
        query_filter = Filter(should=scope) if scope else None

        results = await self._client.query_points(
            collection_name=collection_name,
            query=list(vector),
            limit=limit,
            score_threshold=score_threshold,
            query_filter=query_filter,
            with_payload=True,
        )
        return [
            ScoredPointDict(id=str(hit.id), score=hit.score, payload=hit.payload)
            for hit in results.points
            if hit.payload is not None
        ]

    async def scroll(
        self,
        collection_name: str,
        *,
        path: str | None = None,
        with_vectors: bool = False,
        payload_fields: Sequence[str] | None = None,
    ) -> Sequence[PointDict]:
        """Read every point, optionally only those for one path.

        Pages through the collection until Qdrant reports no next offset.
        """
        scroll_filter = None
        if path is not None:
            scroll_filter = Filter(must=[FieldCondition(key='path', match=MatchValue(value=path))])

        points: list[PointDict] = []
        offset = None
        while True:
            batch, offset = await self._client.scroll(
                collection_name=collection_name,
                scroll_filter=scroll_filter,
                limit=self.SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=list(payload_fields) if payload_fields is not None else True,
                with_vectors=with_vectors,
            )
            for point in batch:
                vector = point.vector if isinstance(point.vector, list) else None
                points.append(PointDict(id=str(point.id), vector=vector, payload=point.payload or {}))
            if offset is None:
                return points

    @_qdrant_retry
    async def delete_by_paths(self, collection_name: str, paths: Sequence[str]) -> None:
        """Delete every point whose `path` is in `paths`."""
        await self._client.delete(
            collection_name=collection_name,
            points_selector=FilterSelector(
                filter=Filter(must=[FieldCondition(key='path', match=MatchAny(any=list(paths)))]),
            ),
            wait=True,
        )

    async def count(self, collection_name: str) -> int:
        """Exact point count in collection."""
        result = await self._client.count(collection_name=collection_name, exact=True)
        return result.count

    async def close(self) -> None:
        self._tracker.log_summary()
        await self._client.close()
