"""Corpus collaborators: where documents come from.

The index manager only needs a listing of (path, mtime) and a way to read one
document's text. FileSystemCorpus serves a directory tree.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence, Set
from pathlib import Path
from typing import Protocol

from vector_index.schemas.documents import DocumentEntry

__all__ = [
    'Corpus',
    'FileSystemCorpus',
]

logger = logging.getLogger(__name__)


class Corpus(Protocol):
    """Source of documents, keyed by POSIX-style relative path."""

    async def list_documents(self) -> Sequence[DocumentEntry]:
        """Every document currently in the corpus."""
        ...

    async def get_document(self, path: str) -> DocumentEntry | None:
        """Listing entry for one path, or None if it is not in the corpus."""
        ...

    async def read_content(self, path: str) -> str:
        """Full text of one document.

        Raises:
            FileNotFoundError: If the path is not in the corpus.
        """
        ...


class FileSystemCorpus:
    """Corpus over a directory tree, filtered by file extension.

    Hidden files and directories (dot-prefixed) are skipped.
    """

    def __init__(self, root: Path, extensions: Set[str] = frozenset({'.md'})) -> None:
        self._root = root.expanduser().resolve()
        self._extensions = frozenset(ext.lower() for ext in extensions)

    @property
    def root(self) -> Path:
        return self._root

    async def list_documents(self) -> Sequence[DocumentEntry]:
        return await asyncio.to_thread(self._list_sync)

    def _list_sync(self) -> Sequence[DocumentEntry]:
        entries = [
            DocumentEntry(path=path.relative_to(self._root).as_posix(), mtime=path.stat().st_mtime)
            for path in _walk_files(self._root, self._extensions)
        ]
        logger.debug(f'[SCAN] {len(entries)} documents under {self._root}')
        return sorted(entries, key=lambda e: e.path)

    async def get_document(self, path: str) -> DocumentEntry | None:
        return await asyncio.to_thread(self._get_sync, path)

    def _get_sync(self, path: str) -> DocumentEntry | None:
        resolved = self._resolve(path)
        if not resolved.is_file() or resolved.suffix.lower() not in self._extensions:
            return None
        return DocumentEntry(path=resolved.relative_to(self._root).as_posix(), mtime=resolved.stat().st_mtime)

    async def read_content(self, path: str) -> str:
        return await asyncio.to_thread(self._resolve(path).read_text, encoding='utf-8')

    def to_relative(self, path: Path) -> str:
        """Corpus key for an absolute or root-relative filesystem path.

        Raises:
            ValueError: If the path lies outside the corpus root.
        """
        resolved = (self._root / path).resolve()
        return resolved.relative_to(self._root).as_posix()

    def _resolve(self, path: str) -> Path:
        resolved = (self._root / path).resolve()
        if not resolved.is_relative_to(self._root):
            raise ValueError(f'Path escapes corpus root: {path}')
        return resolved


def _walk_files(directory: Path, extensions: Set[str]) -> Iterator[Path]:
    """Yield files with a matching suffix, skipping hidden entries."""
    for path in directory.rglob('*'):
        relative = path.relative_to(directory)
        if any(part.startswith('.') for part in relative.parts):
            continue
        if path.is_file() and path.suffix.lower() in extensions:
            yield path
