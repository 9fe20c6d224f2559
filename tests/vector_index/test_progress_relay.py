"""Tests for forwarding indexing progress to the MCP client."""

from __future__ import annotations

import logging

import pytest
from local_lib import DualLogger
from vector_index.schemas.config import IndexSettings, PipelineSettings
from vector_index.schemas.indexing import IndexProgress, IndexRunResult
from vector_index.server import ProgressRelay
from vector_index.services.indexing import VectorIndexManager

from tests.vector_index.fakes import FakeBatchClient, FakeCorpus, RecordingStore, no_sleep

logger = logging.getLogger(__name__)


class RecordingContext:
    """Stands in for an MCP Context, keeping every notification."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.progress: list[tuple[float, float | None, str | None]] = []

    async def info(self, message: str) -> None:
        self.messages.append(('info', message))

    async def debug(self, message: str) -> None:
        self.messages.append(('debug', message))

    async def warning(self, message: str) -> None:
        self.messages.append(('warning', message))

    async def error(self, message: str) -> None:
        self.messages.append(('error', message))

    async def report_progress(self, progress: float, total: float | None = None, message: str | None = None) -> None:
        self.progress.append((progress, total, message))


class TestDualLogger:
    async def test_logs_to_both(self, caplog: pytest.LogCaptureFixture) -> None:
        ctx = RecordingContext()
        caplog.set_level(logging.INFO)

        await DualLogger(ctx, logger).info('hello')  # type: ignore[arg-type]
        await DualLogger(ctx, logger).warning('careful')  # type: ignore[arg-type]

        assert ctx.messages == [('info', 'hello'), ('warning', 'careful')]
        assert [r.getMessage() for r in caplog.records] == ['hello', 'careful']

    async def test_without_context(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO)
        log = DualLogger(None, logger)

        await log.info('hello')
        await log.progress(1, 2)

        assert [r.getMessage() for r in caplog.records] == ['hello']


class TestProgressRelay:
    async def test_snapshots_become_notifications(self) -> None:
        ctx = RecordingContext()
        relay = ProgressRelay(DualLogger(ctx, logger))  # type: ignore[arg-type]

        for completed in (0, 5, 10):
            await relay(IndexProgress(completed_chunks=completed, total_chunks=10, total_files=2))

        assert [(p, t) for p, t, _ in ctx.progress] == [(0, 10), (5, 10), (10, 10)]
        assert ctx.progress[-1][2] == '10/10 chunks from 2 files'
        assert ctx.messages == [('info', '[INDEX] Embedding 0/10 chunks from 2 files')]

    async def test_finish_warns_on_attention_outcomes(self) -> None:
        ctx = RecordingContext()
        relay = ProgressRelay(DualLogger(ctx, logger))  # type: ignore[arg-type]

        await relay.finish(IndexRunResult(outcome='indexed', files_indexed=1, chunks_indexed=3))
        await relay.finish(IndexRunResult(outcome='rate_limited'))

        assert [level for level, _ in ctx.messages] == ['info', 'warning']
        assert ctx.messages[0][1].startswith('[INDEX] indexed: 1 files, 3 chunks indexed')

    async def test_index_run_reports_every_batch(
        self,
        corpus: FakeCorpus,
        store: RecordingStore,
        pipeline_settings: PipelineSettings,
    ) -> None:
        for i in range(3):
            corpus.put(f'{i}.md', f'# Doc {i}\n\nbody {i}\n', 1.0)
        ctx = RecordingContext()
        settings = pipeline_settings.model_copy(update={'embed_batch_size': 1})
        manager = VectorIndexManager(
            corpus, store, FakeBatchClient(), IndexSettings(chunk_size=200), settings, sleep=no_sleep
        )

        await manager.update_index(on_progress=ProgressRelay(DualLogger(ctx, logger)))  # type: ignore[arg-type]

        assert [p for p, _, _ in ctx.progress] == [0, 1, 2, 3]
        assert all(t == 3 for _, t, _ in ctx.progress)
