"""Exception hierarchy for the vector index.

Library exceptions (httpx, qdrant-client) are translated into these at the
client boundary so services only branch on domain types.

Retry policy by type:
- ConfigurationError: never retried, the user must fix settings
- RateLimitError: retried with backoff, surfaced as a transient warning
- TransientProviderError: retried with backoff, surfaced as a run failure
- ProviderResponseError: retried with backoff, logged and re-raised
"""

from __future__ import annotations

__all__ = [
    'ApiKeyInvalidError',
    'ApiKeyNotSetError',
    'BaseUrlNotSetError',
    'ConfigurationError',
    'ProviderResponseError',
    'RateLimitError',
    'TransientProviderError',
    'VectorIndexError',
]


class VectorIndexError(Exception):
    """Base class for all vector index errors."""


class ConfigurationError(VectorIndexError):
    """Provider settings are missing or rejected. Not retryable."""


class ApiKeyNotSetError(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(f'{provider} API key is not set. Add it to the embedding settings.')
        self.provider = provider


class ApiKeyInvalidError(ConfigurationError):
    def __init__(self, provider: str, status_code: int) -> None:
        super().__init__(f'{provider} rejected the API key (HTTP {status_code}). Check the embedding settings.')
        self.provider = provider
        self.status_code = status_code


class BaseUrlNotSetError(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(f'{provider} base URL is not set. Add it to the embedding settings.')
        self.provider = provider


class RateLimitError(VectorIndexError):
    """Provider returned HTTP 429."""

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        message = f'{provider} rate limit exceeded. Try again later.'
        if retry_after is not None:
            message = f'{provider} rate limit exceeded. Retry after {retry_after:g}s.'
        super().__init__(message)
        self.provider = provider
        self.retry_after = retry_after


class TransientProviderError(VectorIndexError):
    """Timeout, network failure, or 5xx from a provider."""


class ProviderResponseError(VectorIndexError):
    """Provider answered with an unexpected status or a malformed body."""
