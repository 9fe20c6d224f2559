"""Shared fixtures for vector index tests."""

from __future__ import annotations

import pytest
from vector_index.schemas.config import IndexSettings, PipelineSettings
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.services.backoff import BackoffPolicy

from tests.vector_index.fakes import DIMENSION, FakeCorpus, RecordingStore


@pytest.fixture
def model() -> EmbeddingModel:
    return EmbeddingModel(identity='fake/batch', dimension=DIMENSION, supports_batch=True)


@pytest.fixture
def corpus() -> FakeCorpus:
    return FakeCorpus()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def index_settings() -> IndexSettings:
    # Small chunks so short test documents still produce several chunks
    return IndexSettings(chunk_size=200)


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        embed_batch_size=64,
        insert_batch_size=64,
        max_concurrent=3,
        backoff=BackoffPolicy(jitter='none'),
    )
