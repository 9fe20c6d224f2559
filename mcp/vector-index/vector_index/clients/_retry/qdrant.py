"""Qdrant-specific retry helpers.

Private module - import from _retry package.
"""

from __future__ import annotations

import logging

import qdrant_client.http.exceptions
import tenacity

from vector_index.clients._retry.http_errors import is_transient_httpx_error

__all__ = [
    'is_retryable_qdrant_error',
    'log_qdrant_retry',
]

logger = logging.getLogger(__name__)

# 500 excluded - for Qdrant it usually means a bad request, not a transient fault
RETRYABLE_STATUS_CODES = frozenset({408, 502, 503, 504})


def is_retryable_qdrant_error(exc: BaseException) -> bool:
    """Check if exception is a retryable transient error from Qdrant.

    qdrant-client raises:
    - ResponseHandlingException: wraps httpx transport errors (check exc.source)
    - UnexpectedResponse: HTTP status errors (check exc.status_code)
    """
    if isinstance(exc, qdrant_client.http.exceptions.ResponseHandlingException):
        return is_transient_httpx_error(exc.source)

    if isinstance(exc, qdrant_client.http.exceptions.UnexpectedResponse):
        return exc.status_code in RETRYABLE_STATUS_CODES

    return False


def log_qdrant_retry(retry_state: tenacity.RetryCallState) -> None:
    """Log Qdrant retry attempt with exception details."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if exc is None:
        return

    source_info = ''
    if isinstance(exc, qdrant_client.http.exceptions.ResponseHandlingException) and exc.source:
        source_info = f' (source: {type(exc.source).__name__}: {exc.source})'

    fn_name = retry_state.fn.__name__ if retry_state.fn else 'call'
    logger.warning(
        f'[RETRY] Qdrant {fn_name} attempt {retry_state.attempt_number} failed: '
        f'{type(exc).__name__}: {exc}{source_info}'
    )
