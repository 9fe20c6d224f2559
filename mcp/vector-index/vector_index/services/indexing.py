"""Vector index manager - orchestrates incremental indexing and search.

Corpus run: list documents, detect changes, chunk and embed everything that
changed, then commit. The commit (dropping vectors of deleted documents,
clearing or replacing old vectors, inserting new ones) only starts after
every embedding succeeded, so a failed run leaves the model's vectors
untouched.

Provider errors become run outcomes instead of exceptions where the caller
has something useful to do with them: ConfigurationError asks for settings,
RateLimitError asks for patience. Anything else is logged and re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence

from local_lib import CancellationToken, Timer, humanize_seconds

from vector_index.clients.protocols import EmbeddingClient
from vector_index.errors import ConfigurationError, RateLimitError
from vector_index.repositories.corpus import Corpus
from vector_index.repositories.protocols import VectorStore
from vector_index.schemas.config import IndexSettings, PipelineSettings
from vector_index.schemas.documents import Chunk, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.indexing import IndexRunResult, ProgressCallback
from vector_index.schemas.search import SearchScope, SimilarityHit, SimilarityQuery
from vector_index.services.chunking import ChunkingService
from vector_index.services.delta import detect_changes, select_paths
from vector_index.services.embedding import EmbeddingPipeline

__all__ = [
    'VectorIndexManager',
]

logger = logging.getLogger(__name__)


class VectorIndexManager:
    """Keeps one embedding model's vectors in sync with a corpus.

    Not safe for concurrent runs against the same corpus and model: two runs
    could interleave delete-then-insert for the same path. Callers serialize.
    """

    def __init__(
        self,
        corpus: Corpus,
        store: VectorStore,
        client: EmbeddingClient,
        settings: IndexSettings | None = None,
        pipeline_settings: PipelineSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize manager.

        Args:
            corpus: Document source.
            store: Vector store shared across models.
            client: Embedding client; its model keys every store call.
            settings: Chunk size and include/exclude globs.
            pipeline_settings: Batch sizes, concurrency and backoff.
            sleep: Backoff sleep. Tests pass a no-op.
        """
        self._corpus = corpus
        self._store = store
        self._settings = settings or IndexSettings()
        self._pipeline_settings = pipeline_settings or PipelineSettings()
        self._pipeline = EmbeddingPipeline(client, self._pipeline_settings, sleep=sleep)
        self._chunker = ChunkingService(self._settings.chunk_size, self._settings.max_chunk_chars)

    @property
    def model(self) -> EmbeddingModel:
        return self._pipeline.model

    @property
    def settings(self) -> IndexSettings:
        return self._settings

    async def update_index(
        self,
        *,
        reindex_all: bool = False,
        on_progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> IndexRunResult:
        """Bring the model's vectors up to date with the corpus.

        Args:
            reindex_all: Rebuild every selected document from scratch.
            on_progress: Progress sink for the embedding phase.
            token: Cancels the embedding phase when triggered.

        Returns:
            Run result. outcome is 'configuration_required' or 'rate_limited'
            when the provider needs attention; the store is then unchanged.

        Raises:
            Exception: Any other failure, after logging it.
        """
        return await self._guarded('update_index', self._update_index(reindex_all, on_progress, token))

    async def _update_index(
        self,
        reindex_all: bool,
        on_progress: ProgressCallback | None,
        token: CancellationToken | None,
    ) -> IndexRunResult:
        timer = Timer()
        entries = await self._corpus.list_documents()
        delta = await detect_changes(
            entries,
            self._corpus,
            self._store,
            self.model,
            self._settings,
            reindex_all=reindex_all,
        )

        paths = delta.to_index
        if not paths and not reindex_all:
            files_deleted = await self._delete_paths(delta.deleted, 'deleted')
            logger.info(f'[INDEX] {self.model.identity} is up to date')
            return IndexRunResult(
                outcome='up_to_date',
                files_deleted=files_deleted,
                elapsed_seconds=timer.elapsed(),
            )

        mtimes = {e.path: e.mtime for e in entries}
        chunks, skipped_empty = await self._chunk_paths(paths, mtimes)
        records = await self._pipeline.embed_chunks(
            chunks,
            total_files=len(paths),
            on_progress=on_progress,
            token=token,
        )

        # Commit: nothing below runs unless every embedding succeeded
        if reindex_all:
            await self._store.clear_all_vectors(self.model)
            files_deleted = len(delta.deleted)
        else:
            files_deleted = await self._delete_paths(delta.deleted, 'deleted')
            await self._delete_paths(delta.modified, 'modified')
        await self._insert(records)

        elapsed = timer.elapsed()
        logger.info(
            f'[INDEX] Indexed {len(paths) - skipped_empty} files ({len(records)} chunks) '
            f'in {humanize_seconds(elapsed)}'
        )
        return IndexRunResult(
            outcome='indexed',
            files_indexed=len(paths) - skipped_empty,
            chunks_indexed=len(records),
            files_deleted=files_deleted,
            files_skipped_empty=skipped_empty,
            elapsed_seconds=elapsed,
        )

    async def update_file(self, path: str, *, on_progress: ProgressCallback | None = None) -> IndexRunResult:
        """Re-index a single document after it changed.

        Paths excluded by the include/exclude globs are ignored. A path that
        no longer exists has its vectors removed, and counts as deleted only if it
        had any. A document that became empty
        keeps no vectors.
        """
        return await self._guarded('update_file', self._update_file(path, on_progress))

    async def _update_file(self, path: str, on_progress: ProgressCallback | None) -> IndexRunResult:
        timer = Timer()
        entry = await self._corpus.get_document(path)
        if entry is None:
            if not await self._store.get_vectors_by_path(path, self.model):
                logger.debug(f'[INDEX] {path} not in corpus and not indexed, nothing to do')
                return IndexRunResult(outcome='up_to_date', elapsed_seconds=timer.elapsed())
            await self.delete_file(path)
            return IndexRunResult(outcome='indexed', files_deleted=1, elapsed_seconds=timer.elapsed())

        if not select_paths([entry], self._settings.include_patterns, self._settings.exclude_patterns):
            logger.debug(f'[INDEX] {path} excluded by patterns, not indexing')
            return IndexRunResult(outcome='up_to_date', elapsed_seconds=timer.elapsed())

        chunks, skipped_empty = await self._chunk_paths([path], {path: entry.mtime})
        records = await self._pipeline.embed_chunks(chunks, total_files=1, on_progress=on_progress)

        await self._store.delete_vectors_for_path(path, self.model)
        await self._insert(records)
        logger.info(f'[INDEX] Re-indexed {path}: {len(records)} chunks')
        return IndexRunResult(
            outcome='indexed',
            files_indexed=0 if skipped_empty else 1,
            chunks_indexed=len(records),
            files_skipped_empty=skipped_empty,
            elapsed_seconds=timer.elapsed(),
        )

    async def delete_file(self, path: str) -> None:
        """Remove every vector for one document."""
        await self._store.delete_vectors_for_path(path, self.model)
        logger.info(f'[INDEX] Removed vectors for {path}')

    async def clean_deleted_files(self) -> Sequence[str]:
        """Remove vectors for paths no longer in the corpus.

        Returns:
            Paths whose vectors were removed, sorted.
        """
        live = {e.path for e in await self._corpus.list_documents()}
        indexed = await self._store.list_indexed_paths(self.model)
        stale = sorted(p for p in indexed if p not in live)
        await self._delete_paths(stale, 'deleted')
        return stale

    async def similarity_search(self, query: SimilarityQuery) -> Sequence[SimilarityHit]:
        """Rank stored vectors of this manager's model against a query vector."""
        hits = await self._store.similarity_search(query, self.model)
        logger.debug(f'[SEARCH] {len(hits)} hits (min_similarity={query.min_similarity}, limit={query.limit})')
        return hits

    async def search(
        self,
        text: str,
        *,
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: SearchScope | None = None,
    ) -> Sequence[SimilarityHit]:
        """Embed `text` and run a similarity search with it."""
        vector = await self._pipeline.embed_query(text)
        return await self.similarity_search(
            SimilarityQuery(
                query_vector=list(vector),
                min_similarity=min_similarity,
                limit=limit,
                scope=scope,
            )
        )

    async def _chunk_paths(self, paths: Sequence[str], mtimes: Mapping[str, float]) -> tuple[list[Chunk], int]:
        """Read and chunk documents. Returns chunks and the number of empty documents."""
        chunks: list[Chunk] = []
        skipped_empty = 0
        for path in paths:
            content = await self._corpus.read_content(path)
            doc_chunks = self._chunker.chunk_document(path, content, mtimes[path])
            if not doc_chunks:
                skipped_empty += 1
            chunks.extend(doc_chunks)
        logger.debug(f'[CHUNK] {len(paths)} files -> {len(chunks)} chunks (chunk_size={self._chunker.chunk_size})')
        return chunks, skipped_empty

    async def _delete_paths(self, paths: Sequence[str], reason: str) -> int:
        if not paths:
            return 0
        await self._store.delete_vectors_for_paths(paths, self.model)
        logger.info(f'[INDEX] Removed vectors for {len(paths)} {reason} files')
        return len(paths)

    async def _insert(self, records: Sequence[VectorRecord]) -> None:
        batch_size = self._pipeline_settings.insert_batch_size
        for start in range(0, len(records), batch_size):
            await self._store.insert_vectors(records[start : start + batch_size], self.model)

    async def _guarded(self, operation: str, run: Awaitable[IndexRunResult]) -> IndexRunResult:
        """Turn provider-attention errors into outcomes; log and re-raise the rest."""
        try:
            return await run
        except ConfigurationError as e:
            logger.warning(f'[INDEX] {operation} needs configuration: {e}')
            return IndexRunResult(outcome='configuration_required', message=str(e))
        except RateLimitError as e:
            logger.warning(f'[INDEX] {operation} rate limited: {e}')
            return IndexRunResult(outcome='rate_limited', message=str(e))
        except Exception:
            logger.exception(f'[INDEX] {operation} failed')
            raise
