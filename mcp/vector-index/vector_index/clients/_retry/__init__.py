"""Error translation and retry helpers for API clients.

Private submodule - not exported by the package.

HTTPX exception mapping for embedding providers::

    httpx.HTTPError (base)
    ├── httpx.RequestError
    │   ├── httpx.TimeoutException   → TransientProviderError
    │   ├── httpx.NetworkError       → TransientProviderError
    │   ├── RemoteProtocolError      → TransientProviderError
    │   └── everything else          → propagate (our bug or bad config)
    └── httpx.HTTPStatusError
        ├── 401 / 403                → ApiKeyInvalidError
        ├── 429                      → RateLimitError
        ├── 408 / 5xx                → TransientProviderError
        └── other                    → ProviderResponseError

Embedding clients translate and let the pipeline's backoff policy decide
whether to retry. Qdrant calls retry locally on transient errors since the
store sits outside the embedding pipeline.
"""

from __future__ import annotations

from vector_index.clients._retry.http_errors import is_transient_httpx_error, translate_http_error
from vector_index.clients._retry.qdrant import is_retryable_qdrant_error, log_qdrant_retry

__all__ = [
    'is_retryable_qdrant_error',
    'is_transient_httpx_error',
    'log_qdrant_retry',
    'translate_http_error',
]
