"""Protocol definitions for embedding clients.

Defines the interface that embedding clients must satisfy.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from vector_index.schemas.embeddings import EmbeddingModel

__all__ = [
    'EmbeddingClient',
]


class EmbeddingClient(Protocol):
    """Protocol for embedding clients.

    `model.supports_batch` decides which method the pipeline calls. Clients
    whose provider has no batch endpoint implement embed_batch as sequential
    embed calls; the pipeline only ever drives them through embed.

    Implementations raise vector_index.errors types, never raw httpx errors,
    for anything the provider can cause.
    """

    @property
    def model(self) -> EmbeddingModel:
        """Identity, dimension and batch capability of the configured model."""
        ...

    async def embed(self, text: str) -> Sequence[float]:
        """Embed one text."""
        ...

    async def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Embed several texts in one request.

        Returns:
            One vector per input text, in input order.
        """
        ...

    async def close(self) -> None:
        """Release resources. No-op for clients without external connections."""
        ...
