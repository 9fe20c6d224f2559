"""Vector Index MCP Server.

Incremental semantic index over a local document tree.

Tools:
- index_documents: Bring the index up to date with the corpus
- index_file: Re-index one document after it changed
- delete_file: Drop one document's vectors
- search_documents: Similarity search by natural language query
- list_indexed_files: Paths that currently have vectors
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import typing
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import mcp.server.fastmcp
import mcp.types
from local_lib.utils import DualLogger, humanize_seconds

from vector_index.clients import QdrantClient, create_embedding_client
from vector_index.clients.protocols import EmbeddingClient
from vector_index.paths import CONFIG_PATH
from vector_index.repositories import FileSystemCorpus, InMemoryVectorStore, QdrantVectorStore, VectorStore
from vector_index.schemas.config import VectorIndexConfig, load_config
from vector_index.schemas.indexing import IndexProgress, IndexRunResult
from vector_index.schemas.search import SearchScope, SimilarityHit
from vector_index.services.indexing import VectorIndexManager

__all__ = [
    'ProgressRelay',
    'ServerState',
]

logger = logging.getLogger(__name__)


@dataclass
class ServerState:
    """Container for all server state - initialized once at startup."""

    config: VectorIndexConfig
    corpus: FileSystemCorpus
    store: VectorStore
    embedding_client: EmbeddingClient
    manager: VectorIndexManager

    # One indexing run at a time per process
    index_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def create(cls, config: VectorIndexConfig) -> typing.Self:
        """Build state from config. Stores in memory unless qdrant_url is set."""
        corpus = FileSystemCorpus(Path(config.corpus_root), frozenset(config.extensions))
        store: VectorStore
        if config.qdrant_url:
            store = QdrantVectorStore(QdrantClient(url=config.qdrant_url))
        else:
            store = InMemoryVectorStore()
        embedding_client = create_embedding_client(config.embedding)
        manager = VectorIndexManager(corpus, store, embedding_client, config.index, config.pipeline)
        return cls(
            config=config,
            corpus=corpus,
            store=store,
            embedding_client=embedding_client,
            manager=manager,
        )

    async def close(self) -> None:
        """Close embedding client and store connections."""
        await self.embedding_client.close()
        await self.store.close()


def register_tools(state: ServerState) -> None:
    """Register MCP tools with closure over server state."""

    @server.tool(
        annotations=mcp.types.ToolAnnotations(
            title='Index Documents',
            destructiveHint=False,
            idempotentHint=True,
            readOnlyHint=False,
            openWorldHint=True,
        ),
    )
    async def index_documents(
        reindex_all: bool = False,
        ctx: mcp.server.fastmcp.Context[typing.Any, typing.Any, typing.Any] | None = None,
    ) -> IndexRunResult:
        """Bring the semantic index up to date with the document folder.

        Only new and modified documents are embedded; vectors for deleted
        documents are removed first. If the embedding provider fails, the
        index is left exactly as it was.

        Args:
            reindex_all: Rebuild every document from scratch instead of
                indexing only what changed.

        Returns:
            IndexRunResult. outcome 'configuration_required' means the
            embedding settings must be fixed; 'rate_limited' means retry later.
        """
        relay = ProgressRelay(DualLogger(ctx, logger))
        async with state.index_lock:
            result = await state.manager.update_index(reindex_all=reindex_all, on_progress=relay)
        await relay.finish(result)
        return result

    @server.tool(
        annotations=mcp.types.ToolAnnotations(
            title='Index File',
            destructiveHint=False,
            idempotentHint=True,
            readOnlyHint=False,
            openWorldHint=True,
        ),
    )
    async def index_file(
        path: str,
        ctx: mcp.server.fastmcp.Context[typing.Any, typing.Any, typing.Any] | None = None,
    ) -> IndexRunResult:
        """Re-index one document after it was created or edited.

        Args:
            path: File path, absolute or relative to the corpus root.

        Returns:
            IndexRunResult for the single file.
        """
        relative = state.corpus.to_relative(Path(path).expanduser())
        relay = ProgressRelay(DualLogger(ctx, logger))
        async with state.index_lock:
            result = await state.manager.update_file(relative, on_progress=relay)
        await relay.finish(result)
        return result

    @server.tool(
        annotations=mcp.types.ToolAnnotations(
            title='Delete File',
            destructiveHint=True,
            idempotentHint=True,
            readOnlyHint=False,
            openWorldHint=False,
        ),
    )
    async def delete_file(path: str) -> bool:
        """Remove one document's vectors from the index.

        Args:
            path: File path, absolute or relative to the corpus root.

        Returns:
            True once the vectors are gone (also when there were none).
        """
        relative = state.corpus.to_relative(Path(path).expanduser())
        async with state.index_lock:
            await state.manager.delete_file(relative)
        return True

    @server.tool(
        annotations=mcp.types.ToolAnnotations(
            title='Search Documents',
            destructiveHint=False,
            idempotentHint=True,
            readOnlyHint=True,
            openWorldHint=True,
        ),
    )
    async def search_documents(
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        files: Sequence[str] | None = None,
        folders: Sequence[str] | None = None,
    ) -> Sequence[SimilarityHit]:
        """Search indexed documents by meaning.

        Args:
            query: Natural language query.
            limit: Maximum hits (defaults to configured search_limit).
            min_similarity: Cosine similarity floor, -1 to 1 (defaults to
                configured min_similarity).
            files: Restrict to these corpus-relative file paths.
            folders: Restrict to documents under these folders (e.g. "notes/").

        Returns:
            Hits ordered by similarity, each with path, line range and text.
        """
        scope = SearchScope(files=list(files or ()), folders=list(folders or ()))
        return await state.manager.search(
            query,
            min_similarity=state.config.min_similarity if min_similarity is None else min_similarity,
            limit=limit or state.config.search_limit,
            scope=None if scope.is_empty else scope,
        )

    @server.tool(
        annotations=mcp.types.ToolAnnotations(
            title='List Indexed Files',
            destructiveHint=False,
            idempotentHint=True,
            readOnlyHint=True,
            openWorldHint=False,
        ),
    )
    async def list_indexed_files() -> Sequence[str]:
        """List corpus-relative paths that currently have vectors."""
        return await state.store.list_indexed_paths(state.manager.model)


class ProgressRelay:
    """Forwards embedding progress to the MCP client and the server log.

    Every snapshot becomes a progress notification. The log and the client's
    log stream only see the start of the embedding phase and the final result.
    """

    def __init__(self, log: DualLogger) -> None:
        self._log = log

    async def __call__(self, progress: IndexProgress) -> None:
        message = (
            f'{progress.completed_chunks}/{progress.total_chunks} chunks from {progress.total_files} files'
        )
        if progress.completed_chunks == 0 and progress.total_chunks:
            await self._log.info(f'[INDEX] Embedding {message}')
        await self._log.progress(progress.completed_chunks, progress.total_chunks, message)

    async def finish(self, result: IndexRunResult) -> None:
        summary = (
            f'[INDEX] {result.outcome}: {result.files_indexed} files, {result.chunks_indexed} chunks indexed, '
            f'{result.files_deleted} deleted in {humanize_seconds(result.elapsed_seconds)}'
        )
        if result.needs_attention:
            await self._log.warning(summary)
        else:
            await self._log.info(summary)


@contextlib.asynccontextmanager
async def lifespan(mcp_server: mcp.server.fastmcp.FastMCP) -> AsyncIterator[None]:
    """Manage server lifecycle - initialization before requests, cleanup after shutdown."""

    # Configure logging with timestamps to stderr
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S',
        stream=sys.stderr,
    )
    # Silence noisy third-party loggers
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    config = load_config()
    if config is None:
        raise RuntimeError(f'No configuration found. Create {CONFIG_PATH} with at least {{"corpus_root": "..."}}')

    state = ServerState.create(config)
    register_tools(state)

    print('✓ Vector Index MCP server initialized', file=sys.stderr)
    print(f'  Corpus: {state.corpus.root}', file=sys.stderr)
    print(f'  Model: {state.manager.model.identity} ({state.manager.model.dimension}d)', file=sys.stderr)
    print(f'  Store: {config.qdrant_url or "in-memory"}', file=sys.stderr)

    yield

    await state.close()
    print('✓ Vector Index MCP server shutdown', file=sys.stderr)


server = mcp.server.fastmcp.FastMCP('vector-index', lifespan=lifespan)


def main() -> None:
    """Entry point for the MCP server."""
    server.run()


if __name__ == '__main__':
    main()
