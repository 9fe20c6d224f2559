"""Ollama embedding client.

Ollama's /api/embeddings endpoint takes one prompt per request, so this
client is single-only: the pipeline fans requests out through its bounded
runner instead of batching. embed_batch still works for direct callers by
issuing one request per prompt.

API Reference: https://github.com/ollama/ollama/blob/main/docs/api.md#generate-embeddings
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from local_lib import ConcurrencyTracker

from vector_index.clients import _retry
from vector_index.errors import BaseUrlNotSetError, ProviderResponseError
from vector_index.schemas.embeddings import EmbeddingModel

__all__ = [
    'OllamaClient',
]

logger = logging.getLogger(__name__)

PROVIDER = 'Ollama'


class OllamaClient:
    """Single-only embedding client for a local or remote Ollama server."""

    BASE_URL = 'http://localhost:11434'
    DEFAULT_TIMEOUT_MS = 60000  # First call may load the model into memory

    def __init__(
        self,
        model: str,
        *,
        dimensions: int,
        base_url: str = BASE_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            model: Ollama model tag (e.g., 'nomic-embed-text').
            dimensions: Vector size the model produces.
            base_url: Server root. Empty raises BaseUrlNotSetError on first use.
            timeout_ms: Request timeout in milliseconds.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self._model = EmbeddingModel(
            identity=f'ollama/{model}',
            dimension=dimensions,
            supports_batch=False,
        )
        self._model_name = model
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_ms / 1000,
            transport=transport,
        )
        self._tracker = ConcurrencyTracker('OLLAMA', logger=logger)

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    async def embed(self, text: str) -> Sequence[float]:
        """Embed a single prompt.

        Raises:
            BaseUrlNotSetError: Empty base URL.
            TransientProviderError: Timeouts, network errors, 408/5xx.
            ProviderResponseError: Any other failure or a malformed body.
        """
        if not self._base_url:
            raise BaseUrlNotSetError(PROVIDER)

        async with self._tracker.track():
            try:
                response = await self._client.post(
                    '/api/embeddings',
                    json={'model': self._model_name, 'prompt': text},
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                translated = _retry.translate_http_error(PROVIDER, e)
                if translated is e:
                    raise
                raise translated from e

        try:
            embedding: Sequence[float] = response.json()['embedding']
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderResponseError(f'{PROVIDER} response missing embedding') from e
        return embedding

    async def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Embed prompts one request at a time, in order.

        The pipeline never calls this for a single-only model. It exists so
        the client still satisfies EmbeddingClient for direct callers.
        """
        return [await self.embed(text) for text in texts]

    async def close(self) -> None:
        self._tracker.log_summary()
        await self._client.aclose()

    async def __aenter__(self) -> OllamaClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
