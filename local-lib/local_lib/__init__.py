"""Shared async helpers for the MCP servers in this workspace."""

from __future__ import annotations

from local_lib.bounded_tasks import BoundedTaskRunner, CancellationToken, OperationCancelledError
from local_lib.concurrency_tracker import ConcurrencyTracker
from local_lib.utils import DualLogger, Timer, humanize_seconds

__all__ = [
    'BoundedTaskRunner',
    'CancellationToken',
    'ConcurrencyTracker',
    'DualLogger',
    'OperationCancelledError',
    'Timer',
    'humanize_seconds',
]
