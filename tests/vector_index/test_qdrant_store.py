"""Tests for QdrantVectorStore against qdrant-client's in-process local mode."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from vector_index.clients import QdrantClient
from vector_index.repositories import QdrantVectorStore
from vector_index.repositories.qdrant import TIE_OVERFETCH, ancestor_folders, point_id
from vector_index.schemas.documents import LineRange, VectorRecord
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.schemas.search import SearchScope, SimilarityQuery

MODEL = EmbeddingModel(identity='fake/qdrant', dimension=2, supports_batch=True)
OTHER = EmbeddingModel(identity='fake/other', dimension=2, supports_batch=True)


def _record(path: str, start: int, embedding: list[float], mtime: float = 1.0) -> VectorRecord:
    return VectorRecord(
        path=path,
        mtime=mtime,
        content=f'{path}:{start}',
        embedding=embedding,
        metadata=LineRange(start_line=start, end_line=start + 2),
    )


@pytest.fixture
async def store() -> AsyncIterator[QdrantVectorStore]:
    vector_store = QdrantVectorStore(QdrantClient(location=':memory:'))
    yield vector_store
    await vector_store.close()


class TestHelpers:
    def test_ancestor_folders(self) -> None:
        assert list(ancestor_folders('a/b/c.md')) == ['a/', 'a/b/']
        assert list(ancestor_folders('top.md')) == []

    def test_point_id_is_deterministic(self) -> None:
        first = _record('a.md', 1, [1.0, 0.0])
        same_key = _record('a.md', 1, [0.0, 1.0], mtime=9.0)
        other = _record('a.md', 4, [1.0, 0.0])
        assert point_id(first) == point_id(same_key)
        assert point_id(first) != point_id(other)


class TestQdrantVectorStore:
    async def test_reads_on_missing_collection(self, store: QdrantVectorStore) -> None:
        assert await store.list_indexed_paths(MODEL) == []
        assert await store.get_vectors_by_path('a.md', MODEL) == []
        assert await store.similarity_search(SimilarityQuery(query_vector=[1.0, 0.0]), MODEL) == []
        await store.delete_vectors_for_path('a.md', MODEL)

    async def test_insert_and_read_back(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors(
            [_record('notes/a.md', 4, [1.0, 0.0]), _record('notes/a.md', 1, [0.0, 1.0]), _record('b.md', 1, [1.0, 1.0])],
            MODEL,
        )

        assert await store.list_indexed_paths(MODEL) == ['b.md', 'notes/a.md']
        records = await store.get_vectors_by_path('notes/a.md', MODEL)
        assert [r.metadata.start_line for r in records] == [1, 4]
        assert records[0].content == 'notes/a.md:1'
        assert len(records[0].embedding) == 2

    async def test_reinsert_overwrites(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors([_record('a.md', 1, [1.0, 0.0], mtime=1.0)], MODEL)
        await store.insert_vectors([_record('a.md', 1, [1.0, 0.0], mtime=2.0)], MODEL)

        records = await store.get_vectors_by_path('a.md', MODEL)

        assert [r.mtime for r in records] == [2.0]

    async def test_delete_and_clear(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors([_record('a.md', 1, [1.0, 0.0]), _record('b.md', 1, [0.0, 1.0])], MODEL)
        await store.insert_vectors([_record('a.md', 1, [1.0, 0.0])], OTHER)

        await store.delete_vectors_for_paths(['a.md'], MODEL)
        assert await store.list_indexed_paths(MODEL) == ['b.md']

        await store.clear_all_vectors(MODEL)
        assert await store.list_indexed_paths(MODEL) == []
        assert await store.list_indexed_paths(OTHER) == ['a.md']

    async def test_dimension_mismatch(self, store: QdrantVectorStore) -> None:
        with pytest.raises(ValueError, match='dimension'):
            await store.insert_vectors([_record('a.md', 1, [1.0, 0.0, 0.0])], MODEL)

    async def test_search_threshold_and_order(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors(
            [
                _record('b.md', 1, [1.0, 0.0]),
                _record('a.md', 1, [2.0, 0.0]),
                _record('far.md', 1, [0.0, 1.0]),
            ],
            MODEL,
        )

        hits = await store.similarity_search(SimilarityQuery(query_vector=[1.0, 0.0], min_similarity=0.5), MODEL)

        assert [h.path for h in hits] == ['a.md', 'b.md']
        assert hits[0].similarity == pytest.approx(1.0)

    async def test_search_folder_scope(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors(
            [
                _record('notes/a.md', 1, [1.0, 0.1]),
                _record('notes/daily/b.md', 1, [1.0, 0.2]),
                _record('archive/c.md', 1, [1.0, 0.0]),
            ],
            MODEL,
        )
        query = SimilarityQuery(query_vector=[1.0, 0.0], scope=SearchScope(folders=['notes']))

        hits = await store.similarity_search(query, MODEL)

        assert [h.path for h in hits] == ['notes/a.md', 'notes/daily/b.md']

    async def test_search_file_scope(self, store: QdrantVectorStore) -> None:
        await store.insert_vectors([_record('a.md', 1, [1.0, 0.0]), _record('b.md', 1, [1.0, 0.0])], MODEL)
        query = SimilarityQuery(query_vector=[1.0, 0.0], scope=SearchScope(files=['b.md']))

        hits = await store.similarity_search(query, MODEL)

        assert [h.path for h in hits] == ['b.md']

    async def test_ties_at_limit_ordered_by_path(self, store: QdrantVectorStore) -> None:
        # More equal-score points than one over-fetched page, inserted out of order
        paths = [f'doc{i:02d}.md' for i in range(TIE_OVERFETCH + 8)]
        await store.insert_vectors([_record(path, 1, [1.0, 0.0]) for path in reversed(paths)], MODEL)
        await store.insert_vectors([_record('best.md', 1, [1.0, 0.0]), _record('zz.md', 1, [0.0, 1.0])], MODEL)
        query = SimilarityQuery(query_vector=[1.0, 0.0], limit=3)

        hits = await store.similarity_search(query, MODEL)

        assert [h.path for h in hits] == ['best.md', 'doc00.md', 'doc01.md']
        assert [h.similarity for h in hits] == pytest.approx([1.0, 1.0, 1.0])
