"""Shared utilities for MCP servers."""

from __future__ import annotations

import logging
import time
from typing import Any

from mcp.server.fastmcp import Context


class DualLogger:
    """Logs messages to both a stdlib logger and the MCP client context.

    stdout carries the stdio transport, so server-side output goes through
    `logging` (stderr) instead of print. Without a context only the stdlib
    logger receives messages and progress is dropped.
    """

    def __init__(self, ctx: Context[Any, Any, Any] | None, logger: logging.Logger) -> None:
        self.ctx = ctx
        self.logger = logger

    async def info(self, msg: str) -> None:
        self.logger.info(msg)
        if self.ctx is not None:
            await self.ctx.info(msg)

    async def debug(self, msg: str) -> None:
        self.logger.debug(msg)
        if self.ctx is not None:
            await self.ctx.debug(msg)

    async def warning(self, msg: str) -> None:
        self.logger.warning(msg)
        if self.ctx is not None:
            await self.ctx.warning(msg)

    async def error(self, msg: str) -> None:
        self.logger.error(msg)
        if self.ctx is not None:
            await self.ctx.error(msg)

    async def progress(self, completed: float, total: float | None = None, message: str | None = None) -> None:
        """Send a progress notification to the client, if there is one."""
        if self.ctx is not None:
            await self.ctx.report_progress(completed, total, message)


class Timer:
    """Stopwatch started at construction."""

    def __init__(self) -> None:
        self._start = time.perf_counter()

    def elapsed(self) -> float:
        """Return elapsed time in seconds."""
        return time.perf_counter() - self._start


def humanize_seconds(seconds: float) -> str:
    """Convert seconds to a short duration string.

    Examples: '45 sec', '1.5 min', '2.5 hr', '3 d'. Sub-second values render
    in milliseconds.

    Args:
        seconds: Duration in seconds

    Returns:
        Human-readable duration string with abbreviated unit
    """
    if seconds < 1:
        return f'{int(seconds * 1000)} ms'

    intervals = [
        ('d', 86400),
        ('hr', 3600),
        ('min', 60),
        ('sec', 1),
    ]
    for unit, count in intervals:
        if seconds >= count:
            value = seconds / count
            value_str = f'{value:.1f}'.rstrip('0').rstrip('.')
            return f'{value_str} {unit}'

    return '0 sec'
