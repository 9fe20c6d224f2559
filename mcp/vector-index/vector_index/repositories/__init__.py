"""Persistence and corpus access for the vector index."""

from __future__ import annotations

from vector_index.repositories.corpus import Corpus, FileSystemCorpus
from vector_index.repositories.memory import InMemoryVectorStore
from vector_index.repositories.protocols import VectorStore
from vector_index.repositories.qdrant import QdrantVectorStore

__all__ = [
    'Corpus',
    'FileSystemCorpus',
    'InMemoryVectorStore',
    'QdrantVectorStore',
    'VectorStore',
]
