"""OpenRouter embedding client.

Thin wrapper around the OpenRouter embeddings API. Handles API calls only - no
business logic. Retries are the pipeline's job; this client only translates
failures into domain errors.

API Reference: https://openrouter.ai/docs/api/api-reference/embeddings/create-embeddings
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from local_lib import ConcurrencyTracker

from vector_index.clients import _retry
from vector_index.errors import (
    ApiKeyInvalidError,
    ApiKeyNotSetError,
    BaseUrlNotSetError,
    ProviderResponseError,
    RateLimitError,
)
from vector_index.paths import secret_path
from vector_index.schemas.embeddings import EmbeddingModel

__all__ = [
    'OpenRouterClient',
]

logger = logging.getLogger(__name__)

PROVIDER = 'OpenRouter'


class OpenRouterClient:
    """Batch-capable OpenRouter embedding client.

    Uses native async httpx with connection pooling. A semaphore caps
    concurrent requests independently of the pipeline's own limits.
    """

    BASE_URL = 'https://openrouter.ai/api/v1'

    DEFAULT_MAX_CONCURRENT = 50
    DEFAULT_TIMEOUT_MS = 30000  # Batches of 64 long chunks can be slow
    DEFAULT_MAX_CONNECTIONS = 50
    DEFAULT_KEEPALIVE_EXPIRY = 30  # Seconds before idle close

    def __init__(
        self,
        model: str,
        *,
        dimensions: int,
        api_key: str | None = None,
        base_url: str = BASE_URL,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        keepalive_expiry: float = DEFAULT_KEEPALIVE_EXPIRY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Missing credentials are not an error here. They surface as
        ApiKeyNotSetError / BaseUrlNotSetError on the first request so an
        indexing run can report them as a configuration problem.

        Args:
            model: Model identifier (e.g., 'qwen/qwen3-embedding-8b').
            dimensions: Output vector dimensions requested from the API.
            api_key: OpenRouter API key. If None, loads from the secrets file.
            base_url: API root.
            max_concurrent: Max concurrent API requests (semaphore limit).
            timeout_ms: Request timeout in milliseconds.
            max_connections: Max simultaneous HTTP connections.
            keepalive_expiry: Seconds before idle connections close.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        self._model = EmbeddingModel(
            identity=f'openrouter/{model}',
            dimension=dimensions,
            supports_batch=True,
        )
        self._model_name = model
        self._dimensions = dimensions
        self._api_key = api_key or _load_api_key()
        self._base_url = base_url

        limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
            keepalive_expiry=keepalive_expiry,
        )
        headers = {'Content-Type': 'application/json'}
        if self._api_key:
            headers['Authorization'] = f'Bearer {self._api_key}'
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_ms / 1000,
            limits=limits,
            transport=transport,
        )

        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tracker = ConcurrencyTracker('OPENROUTER', logger=logger)

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    async def embed(self, text: str) -> Sequence[float]:
        """Embed one text through the batch endpoint."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Embed texts using the OpenRouter API.

        Args:
            texts: Texts to embed.

        Returns:
            List of embedding vectors, in input order.

        Raises:
            ApiKeyNotSetError: No key configured.
            BaseUrlNotSetError: Empty base URL.
            ApiKeyInvalidError: HTTP 401/403.
            RateLimitError: HTTP 429.
            TransientProviderError: Timeouts, network errors, 408/5xx.
            ProviderResponseError: Any other failure or a malformed body.
        """
        if not self._base_url:
            raise BaseUrlNotSetError(PROVIDER)
        if not self._api_key:
            raise ApiKeyNotSetError(PROVIDER)

        body: dict[str, object] = {
            'model': self._model_name,
            'input': list(texts),
            'encoding_format': 'float',
            'dimensions': self._dimensions,
        }

        async with self._semaphore, self._tracker.track():
            try:
                response = await self._client.post('/embeddings', json=body)
                response.raise_for_status()
            except httpx.HTTPError as e:
                translated = _retry.translate_http_error(PROVIDER, e)
                if translated is e:
                    raise
                raise translated from e

        return _parse_embeddings(response, expected=len(texts))

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        self._tracker.log_summary()
        await self._client.aclose()

    async def __aenter__(self) -> OpenRouterClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


def _parse_embeddings(response: httpx.Response, *, expected: int) -> Sequence[Sequence[float]]:
    """Extract vectors from an OpenAI-style embeddings body.

    OpenRouter reports some upstream failures as HTTP 200 with an `error`
    object, so the body is checked before the data array.
    """
    try:
        data: dict[str, Any] = response.json()
    except ValueError as e:
        raise ProviderResponseError(f'{PROVIDER} returned non-JSON body') from e

    if 'error' in data:
        error = data['error'] or {}
        code = error.get('code')
        message = error.get('message', 'unknown error')
        if code in (401, 403):
            raise ApiKeyInvalidError(PROVIDER, code)
        if code == 429:
            raise RateLimitError(PROVIDER)
        raise ProviderResponseError(f'{PROVIDER} error {code}: {message}')

    try:
        # Sort by index to ensure order matches input
        items = sorted(data['data'], key=lambda x: x['index'])
        vectors = [item['embedding'] for item in items]
    except (KeyError, TypeError) as e:
        raise ProviderResponseError(f'{PROVIDER} response missing embeddings: {e}') from e

    if len(vectors) != expected:
        raise ProviderResponseError(f'{PROVIDER} returned {len(vectors)} embeddings for {expected} inputs')
    return vectors


def _load_api_key() -> str | None:
    """Load API key from the secrets file, if present."""
    key_path = secret_path('openrouter')
    if not key_path.exists():
        return None
    return key_path.read_text().strip() or None
