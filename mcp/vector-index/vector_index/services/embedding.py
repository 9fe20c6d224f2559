"""Embedding pipeline - turns chunks into vector records.

Two strategies, picked once per run from the client's capability:

- BatchCapable: fixed-size groups, strictly sequential, one batch request per
  group. Keeps a single request in flight to respect provider throughput.
- SingleOnly: one request per chunk through a BoundedTaskRunner. The first
  call to exhaust its retries cancels the run's token; queued chunks never
  issue their request and in-flight ones settle with results discarded.

Every request is wrapped in the backoff policy, together with the check of
its response shape, so a malformed reply is retried like a failed request. Nothing is persisted here:
callers insert the returned records only after the whole phase succeeds.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from local_lib import BoundedTaskRunner, CancellationToken, Timer, humanize_seconds

from vector_index.clients.protocols import EmbeddingClient
from vector_index.errors import ProviderResponseError
from vector_index.schemas.config import PipelineSettings
from vector_index.schemas.documents import Chunk, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.indexing import IndexProgress, ProgressCallback
from vector_index.services.backoff import with_backoff

__all__ = [
    'BatchCapable',
    'EmbeddingPipeline',
    'EmbeddingStrategy',
    'SingleOnly',
    'resolve_strategy',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchCapable:
    """Client can embed many texts per request."""

    embed_batch: Callable[[Sequence[str]], Awaitable[Sequence[Sequence[float]]]]


@dataclass(frozen=True)
class SingleOnly:
    """Client embeds one text per request."""

    embed: Callable[[str], Awaitable[Sequence[float]]]


type EmbeddingStrategy = BatchCapable | SingleOnly


def resolve_strategy(client: EmbeddingClient) -> EmbeddingStrategy:
    """Pick the strategy for a client from its declared capability."""
    if client.model.supports_batch:
        return BatchCapable(embed_batch=client.embed_batch)
    return SingleOnly(embed=client.embed)


class _ProgressReporter:
    """Monotonic progress counter feeding an optional callback."""

    def __init__(self, callback: ProgressCallback | None, total_chunks: int, total_files: int) -> None:
        self._callback = callback
        self._total_chunks = total_chunks
        self._total_files = total_files
        self._completed = 0

    @property
    def completed(self) -> int:
        return self._completed

    async def advance(self, count: int) -> None:
        self._completed += count
        await self._emit()

    async def start(self) -> None:
        await self._emit()

    async def _emit(self) -> None:
        if self._callback is None:
            return
        result = self._callback(
            IndexProgress(
                completed_chunks=self._completed,
                total_chunks=self._total_chunks,
                total_files=self._total_files,
            )
        )
        if inspect.isawaitable(result):
            await result


class EmbeddingPipeline:
    """Embeds chunks with retry, bounded concurrency and progress reporting."""

    def __init__(
        self,
        client: EmbeddingClient,
        settings: PipelineSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize pipeline.

        Args:
            client: Embedding provider client.
            settings: Batch sizes, concurrency ceiling and backoff policy.
            sleep: Backoff sleep. Tests pass a no-op.
        """
        self._client = client
        self._settings = settings or PipelineSettings()
        self._sleep = sleep

    @property
    def model(self) -> EmbeddingModel:
        return self._client.model

    async def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        *,
        total_files: int,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> Sequence[VectorRecord]:
        """Embed every chunk or fail as a whole.

        Args:
            chunks: Chunks to embed, in document order.
            total_files: Reported in progress snapshots.
            on_progress: Called once with zero completed, then per unit.
                Awaited when it returns an awaitable.
            token: Run-wide cancellation. Created if omitted.

        Returns:
            One record per chunk. Batch strategy preserves input order;
            single-item strategy returns records in submission order.

        Raises:
            ConfigurationError: Immediately on bad provider settings.
            OperationCancelledError: If the token was cancelled externally.
            Exception: The first error to exhaust its retries.
        """
        token = token or CancellationToken()
        progress = _ProgressReporter(on_progress, total_chunks=len(chunks), total_files=total_files)
        await progress.start()
        if not chunks:
            return []

        strategy = resolve_strategy(self._client)
        timer = Timer()
        match strategy:
            case BatchCapable():
                records = await self._embed_batches(strategy, chunks, progress, token)
            case SingleOnly():
                records = await self._embed_singly(strategy, chunks, progress, token)

        logger.info(
            f'[EMBED] {len(records)} chunks from {total_files} files with {self.model.identity} '
            f'in {humanize_seconds(timer.elapsed())}'
        )
        return records

    async def embed_query(self, text: str) -> Sequence[float]:
        """Embed a search query under the backoff policy."""

        async def attempt() -> Sequence[float]:
            return self._check_dimension(await self._client.embed(text))

        return await with_backoff(attempt, self._settings.backoff, label='query embed', sleep=self._sleep)

    async def _embed_batches(
        self,
        strategy: BatchCapable,
        chunks: Sequence[Chunk],
        progress: _ProgressReporter,
        token: CancellationToken,
    ) -> Sequence[VectorRecord]:
        batch_size = self._settings.embed_batch_size
        total_batches = (len(chunks) + batch_size - 1) // batch_size
        records: list[VectorRecord] = []

        for batch_num, start in enumerate(range(0, len(chunks), batch_size), start=1):
            token.raise_if_cancelled()
            group = chunks[start : start + batch_size]
            vectors = await with_backoff(
                functools.partial(self._embed_group, strategy, group),
                self._settings.backoff,
                label=f'batch {batch_num}/{total_batches}',
                sleep=self._sleep,
            )
            records.extend(VectorRecord.from_chunk(chunk, vector) for chunk, vector in zip(group, vectors, strict=True))
            await progress.advance(len(group))
            logger.debug(f'[BATCH] {batch_num}/{total_batches}: {len(group)} chunks embedded')

        return records

    async def _embed_group(self, strategy: BatchCapable, group: Sequence[Chunk]) -> Sequence[Sequence[float]]:
        """One batch request. A malformed response raises inside the retried call."""
        vectors = await strategy.embed_batch([c.content for c in group])
        if len(vectors) != len(group):
            raise ProviderResponseError(f'Batch returned {len(vectors)} vectors for {len(group)} chunks')
        for vector in vectors:
            self._check_dimension(vector)
        return vectors

    async def _embed_singly(
        self,
        strategy: SingleOnly,
        chunks: Sequence[Chunk],
        progress: _ProgressReporter,
        token: CancellationToken,
    ) -> Sequence[VectorRecord]:
        runner = BoundedTaskRunner[VectorRecord]('EMBED', capacity=self._settings.max_concurrent, token=token)
        for chunk in chunks:
            runner.submit(functools.partial(self._embed_one, strategy, chunk, progress, token))
        records = await runner.join()
        logger.debug(f'[EMBED] single-item peak concurrency {runner.peak_in_flight}/{runner.capacity}')
        return records

    async def _embed_one(
        self,
        strategy: SingleOnly,
        chunk: Chunk,
        progress: _ProgressReporter,
        token: CancellationToken,
    ) -> VectorRecord:
        async def attempt() -> Sequence[float]:
            # Re-checked per attempt so a retrying task stops once the run is aborted
            token.raise_if_cancelled()
            return self._check_dimension(await strategy.embed(chunk.content))

        vector = await with_backoff(
            attempt,
            self._settings.backoff,
            label=f'embed {chunk.path}:{chunk.start_line}',
            sleep=self._sleep,
        )
        await progress.advance(1)
        return VectorRecord.from_chunk(chunk, vector)

    def _check_dimension(self, vector: Sequence[float]) -> Sequence[float]:
        if len(vector) != self.model.dimension:
            raise ProviderResponseError(
                f'{self.model.identity} returned a {len(vector)}-dimensional vector, expected {self.model.dimension}'
            )
        return vector
