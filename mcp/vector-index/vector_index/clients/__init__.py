"""API clients for external services."""

from __future__ import annotations

from vector_index.clients.ollama import OllamaClient
from vector_index.clients.openrouter import OpenRouterClient
from vector_index.clients.protocols import EmbeddingClient
from vector_index.clients.qdrant import QdrantClient
from vector_index.schemas.config import EmbeddingConfig, OllamaConfig, OpenRouterConfig

__all__ = [
    'EmbeddingClient',
    'OllamaClient',
    'OpenRouterClient',
    'QdrantClient',
    'create_embedding_client',
]


def create_embedding_client(config: EmbeddingConfig) -> EmbeddingClient:
    """Create embedding client based on configuration.

    Args:
        config: Embedding configuration (OpenRouterConfig or OllamaConfig).

    Returns:
        Configured embedding client.
    """
    match config:
        case OpenRouterConfig():
            return OpenRouterClient(
                model=config.embedding_model,
                dimensions=config.embedding_dimensions,
                api_key=config.api_key,
                base_url=config.base_url,
            )
        case OllamaConfig():
            return OllamaClient(
                model=config.embedding_model,
                dimensions=config.embedding_dimensions,
                base_url=config.base_url,
            )

    raise TypeError(f'Unknown config type: {type(config).__name__}')
