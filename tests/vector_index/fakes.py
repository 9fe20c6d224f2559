"""Fake collaborators for vector index tests.

A dict-backed corpus, scripted embedding clients for both strategies, and a
store that records every write. Embeddings are deterministic functions of the
text so tests can check that each record carries its own chunk's vector.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

from vector_index.repositories import InMemoryVectorStore
from vector_index.schemas.documents import DocumentEntry, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel

DIMENSION = 4

type FailureScript = Callable[[str, int], BaseException | None]


def vector_for(text: str) -> list[float]:
    """Deterministic non-zero vector identifying `text`."""
    return [float(len(text)), float(sum(map(ord, text)) % 997), 1.0, float(text.count('\n'))]


class FakeCorpus:
    """In-memory Corpus: path -> (content, mtime)."""

    def __init__(self, documents: dict[str, tuple[str, float]] | None = None) -> None:
        self.documents: dict[str, tuple[str, float]] = dict(documents or {})
        self.reads: list[str] = []

    def put(self, path: str, content: str, mtime: float) -> None:
        self.documents[path] = (content, mtime)

    def remove(self, path: str) -> None:
        del self.documents[path]

    async def list_documents(self) -> Sequence[DocumentEntry]:
        return [DocumentEntry(path=path, mtime=mtime) for path, (_, mtime) in sorted(self.documents.items())]

    async def get_document(self, path: str) -> DocumentEntry | None:
        if path not in self.documents:
            return None
        return DocumentEntry(path=path, mtime=self.documents[path][1])

    async def read_content(self, path: str) -> str:
        self.reads.append(path)
        if path not in self.documents:
            raise FileNotFoundError(path)
        return self.documents[path][0]


class FakeBatchClient:
    """Batch-capable client. `fail` decides per call whether to raise.

    `fail(first_text, call_number)` returns an exception to raise or None.
    The first `malformed_calls` requests answer with one vector too few
    (batch) or one dimension too few (single).
    """

    def __init__(
        self,
        *,
        identity: str = 'fake/batch',
        dimension: int = DIMENSION,
        fail: FailureScript | None = None,
        vector: Callable[[str], list[float]] = vector_for,
        malformed_calls: int = 0,
    ) -> None:
        self._model = EmbeddingModel(identity=identity, dimension=dimension, supports_batch=True)
        self._fail = fail
        self._vector = vector
        self._malformed_calls = malformed_calls
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    @property
    def call_count(self) -> int:
        return len(self.batch_calls) + len(self.single_calls)

    async def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        self.batch_calls.append(list(texts))
        if self._fail is not None and (exc := self._fail(texts[0], len(self.batch_calls))) is not None:
            raise exc
        vectors = [self._vector(text) for text in texts]
        if self.call_count <= self._malformed_calls:
            return vectors[:-1]
        return vectors

    async def embed(self, text: str) -> Sequence[float]:
        self.single_calls.append(text)
        if self._fail is not None and (exc := self._fail(text, len(self.single_calls))) is not None:
            raise exc
        if self.call_count <= self._malformed_calls:
            return self._vector(text)[:-1]
        return self._vector(text)

    async def close(self) -> None:
        pass


class FakeSingleClient:
    """Single-only client that yields to the loop and tracks concurrency."""

    def __init__(
        self,
        *,
        identity: str = 'fake/single',
        dimension: int = DIMENSION,
        fail: FailureScript | None = None,
        yields: int = 3,
    ) -> None:
        self._model = EmbeddingModel(identity=identity, dimension=dimension, supports_batch=False)
        self._fail = fail
        self._yields = yields
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def embed(self, text: str) -> Sequence[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            for _ in range(self._yields):
                await asyncio.sleep(0)
            if self._fail is not None and (exc := self._fail(text, len(self.calls))) is not None:
                raise exc
            return vector_for(text)
        finally:
            self.in_flight -= 1

    async def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        raise NotImplementedError('single-only client')

    async def close(self) -> None:
        pass


class RecordingStore(InMemoryVectorStore):
    """InMemoryVectorStore that logs every mutating call."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[str, object]] = []

    async def insert_vectors(self, records: Sequence[VectorRecord], model: EmbeddingModel) -> None:
        self.writes.append(('insert', len(records)))
        await super().insert_vectors(records, model)

    async def delete_vectors_for_paths(self, paths: Sequence[str], model: EmbeddingModel) -> None:
        self.writes.append(('delete', tuple(paths)))
        await super().delete_vectors_for_paths(paths, model)

    async def clear_all_vectors(self, model: EmbeddingModel) -> None:
        self.writes.append(('clear', model.identity))
        await super().clear_all_vectors(model)

    async def snapshot(self, model: EmbeddingModel) -> dict[tuple[str, int, int], VectorRecord]:
        """Every record of a model, keyed by record identity."""
        records: dict[tuple[str, int, int], VectorRecord] = {}
        for path in await self.list_indexed_paths(model):
            for record in await self.get_vectors_by_path(path, model):
                records[record.key] = record
        return records


async def no_sleep(_: float) -> None:
    """Backoff sleep that returns immediately."""


def always(exc: BaseException) -> FailureScript:
    """Fail every call with `exc`."""
    return lambda _text, _call: exc


def first_calls(count: int, exc: BaseException) -> FailureScript:
    """Fail the first `count` calls, then succeed."""
    return lambda _text, call: exc if call <= count else None


def when_text_contains(marker: str, exc: BaseException) -> FailureScript:
    """Fail every call whose text contains `marker`."""
    return lambda text, _call: exc if marker in text else None
