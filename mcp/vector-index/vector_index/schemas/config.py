"""Vector index configuration schema.

Persistent settings for the corpus, the chunking and filtering policy, the
embedding provider and the vector store. Stored as JSON at CONFIG_PATH.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Literal

import pydantic
from pydantic import Field, TypeAdapter

from vector_index.paths import CONFIG_PATH
from vector_index.schemas.base import StrictModel
from vector_index.schemas.embeddings import EmbeddingModel
from vector_index.services.backoff import BackoffPolicy

__all__ = [
    'EmbeddingConfig',
    'EmbeddingProvider',
    'IndexSettings',
    'OllamaConfig',
    'OpenRouterConfig',
    'PipelineSettings',
    'VectorIndexConfig',
    'load_config',
    'save_config',
]

logger = logging.getLogger(__name__)

type EmbeddingProvider = Literal['openrouter', 'ollama']


class OpenRouterConfig(StrictModel):
    """OpenRouter embeddings. Batch-capable.

    api_key may be omitted; the client then reads the secrets file.
    """

    provider: Literal['openrouter'] = 'openrouter'
    embedding_model: str = 'qwen/qwen3-embedding-8b'
    embedding_dimensions: int = 768
    base_url: str = 'https://openrouter.ai/api/v1'
    api_key: str | None = None

    def to_model(self) -> EmbeddingModel:
        return EmbeddingModel(
            identity=f'{self.provider}/{self.embedding_model}',
            dimension=self.embedding_dimensions,
            supports_batch=True,
        )


class OllamaConfig(StrictModel):
    """Local Ollama embeddings. One prompt per request."""

    provider: Literal['ollama'] = 'ollama'
    embedding_model: str = 'nomic-embed-text'
    embedding_dimensions: int = 768
    base_url: str = 'http://localhost:11434'

    def to_model(self) -> EmbeddingModel:
        return EmbeddingModel(
            identity=f'{self.provider}/{self.embedding_model}',
            dimension=self.embedding_dimensions,
            supports_batch=False,
        )


# Discriminated union - type alias for annotations
type EmbeddingConfig = OpenRouterConfig | OllamaConfig


class IndexSettings(StrictModel):
    """Chunking and file-selection policy consumed by each run."""

    chunk_size: int = Field(default=1000, ge=1)
    max_chunk_chars: int | None = Field(default=None, ge=1)  # None: twice chunk_size
    include_patterns: Sequence[str] = ()
    exclude_patterns: Sequence[str] = ()


class PipelineSettings(StrictModel):
    """Embedding pipeline tuning. Defaults match provider throughput limits."""

    embed_batch_size: int = Field(default=64, ge=1)
    insert_batch_size: int = Field(default=64, ge=1)
    max_concurrent: int = Field(default=50, ge=1)
    backoff: BackoffPolicy = BackoffPolicy()


class VectorIndexConfig(StrictModel):
    """Top-level persisted configuration.

    qdrant_url=None keeps vectors in process memory (lost on restart).
    """

    corpus_root: str
    extensions: Sequence[str] = ('.md',)
    index: IndexSettings = IndexSettings()
    pipeline: PipelineSettings = PipelineSettings()
    embedding: Annotated[OpenRouterConfig | OllamaConfig, Field(discriminator='provider')] = OpenRouterConfig()
    qdrant_url: str | None = None
    min_similarity: float = 0.0
    search_limit: int = Field(default=10, ge=1)


_config_adapter: TypeAdapter[VectorIndexConfig] = TypeAdapter(VectorIndexConfig)


def load_config(path: Path = CONFIG_PATH) -> VectorIndexConfig | None:
    """Load config from file if it exists.

    Returns:
        VectorIndexConfig if file exists and is valid, None if absent.

    Raises:
        ValueError: If config file exists but is invalid.
    """
    if not path.exists():
        return None

    try:
        return _config_adapter.validate_json(path.read_text())
    except pydantic.ValidationError as e:
        raise ValueError(f'Invalid config file at {path}: {e}') from e


def save_config(config: VectorIndexConfig, path: Path = CONFIG_PATH) -> None:
    """Save config to file, creating parent directories if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            config.model_dump(mode='json'),
            indent=2,
        )
        + '\n'
    )
    logger.info(f'Saved config: corpus={config.corpus_root}, model={config.embedding.embedding_model}')
