"""Translate httpx failures into the vector index error taxonomy.

Private module - import from _retry package.
"""

from __future__ import annotations

import httpx

from vector_index.errors import (
    ApiKeyInvalidError,
    ProviderResponseError,
    RateLimitError,
    TransientProviderError,
    VectorIndexError,
)

__all__ = [
    'is_transient_httpx_error',
    'translate_http_error',
]

AUTH_STATUS_CODES = frozenset({401, 403})
TRANSIENT_STATUS_CODES = frozenset({408, 500, 502, 503, 504})


def is_transient_httpx_error(exc: BaseException) -> bool:
    """Check if exception is a transient httpx transport error.

    Transient:
    - httpx.TimeoutException (Connect/Read/Write/PoolTimeout)
    - httpx.NetworkError (Connect/Read/Write/CloseError)
    - httpx.RemoteProtocolError (server sent invalid HTTP)

    Not transient:
    - httpx.LocalProtocolError (our bug)
    - httpx.ProxyError, UnsupportedProtocol (config errors)
    """
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True

    if isinstance(exc, httpx.RemoteProtocolError):
        return True

    return False


def translate_http_error(provider: str, exc: httpx.HTTPError) -> VectorIndexError | httpx.HTTPError:
    """Map an httpx error to a domain error.

    Returns the original exception for errors that indicate a bug in this
    package rather than a provider problem, so callers re-raise it as is.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in AUTH_STATUS_CODES:
            return ApiKeyInvalidError(provider, status)
        if status == 429:
            return RateLimitError(provider, _retry_after(exc.response))
        if status in TRANSIENT_STATUS_CODES:
            return TransientProviderError(f'{provider} returned HTTP {status}')
        return ProviderResponseError(f'{provider} returned HTTP {status}: {_body_excerpt(exc.response)}')

    if is_transient_httpx_error(exc):
        return TransientProviderError(f'{provider} request failed: {type(exc).__name__}: {exc}')

    return exc


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get('retry-after')
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        # HTTP-date form, not worth parsing for a log message
        return None


def _body_excerpt(response: httpx.Response, limit: int = 200) -> str:
    text = response.text
    return text if len(text) <= limit else f'{text[:limit]}...'
