"""Embedding model descriptor."""

from __future__ import annotations

import re

from vector_index.schemas.base import StrictModel

__all__ = [
    'EmbeddingModel',
]


class EmbeddingModel(StrictModel):
    """Capability descriptor for an embedding model.

    `identity` keys the model's vectors in every store, so two models never
    see each other's records. `supports_batch` selects the pipeline strategy
    once per run.
    """

    identity: str  # e.g. 'openrouter/qwen/qwen3-embedding-8b'
    dimension: int
    supports_batch: bool

    @property
    def collection_name(self) -> str:
        """Store-safe name derived from identity and dimension."""
        slug = re.sub(r'[^a-zA-Z0-9]+', '_', self.identity).strip('_').lower()
        return f'vectors_{slug}_{self.dimension}'
