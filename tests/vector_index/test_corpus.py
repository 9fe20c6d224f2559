"""Tests for FileSystemCorpus over a temporary directory tree."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from vector_index.repositories import FileSystemCorpus


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    (tmp_path / 'notes' / 'daily').mkdir(parents=True)
    (tmp_path / '.obsidian').mkdir()
    (tmp_path / 'a.md').write_text('# A\n')
    (tmp_path / 'notes' / 'b.md').write_text('b\n')
    (tmp_path / 'notes' / 'daily' / 'c.MD').write_text('c\n')
    (tmp_path / 'notes' / 'image.png').write_bytes(b'\x89PNG')
    (tmp_path / '.hidden.md').write_text('hidden\n')
    (tmp_path / '.obsidian' / 'workspace.md').write_text('config\n')
    os.utime(tmp_path / 'a.md', (1000.0, 1000.0))
    return tmp_path


class TestListing:
    async def test_lists_matching_files_sorted(self, tree: Path) -> None:
        entries = await FileSystemCorpus(tree).list_documents()
        assert [e.path for e in entries] == ['a.md', 'notes/b.md', 'notes/daily/c.MD']

    async def test_mtime_from_filesystem(self, tree: Path) -> None:
        entries = await FileSystemCorpus(tree).list_documents()
        assert entries[0].mtime == 1000.0

    async def test_extension_filter(self, tree: Path) -> None:
        entries = await FileSystemCorpus(tree, frozenset({'.png'})).list_documents()
        assert [e.path for e in entries] == ['notes/image.png']


class TestSingleDocument:
    async def test_get_document(self, tree: Path) -> None:
        entry = await FileSystemCorpus(tree).get_document('notes/b.md')
        assert entry is not None
        assert entry.path == 'notes/b.md'

    @pytest.mark.parametrize('path', ['missing.md', 'notes/image.png', 'notes'])
    async def test_get_document_none(self, tree: Path, path: str) -> None:
        assert await FileSystemCorpus(tree).get_document(path) is None

    async def test_read_content(self, tree: Path) -> None:
        assert await FileSystemCorpus(tree).read_content('notes/b.md') == 'b\n'

    async def test_read_missing_raises(self, tree: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await FileSystemCorpus(tree).read_content('missing.md')

    async def test_escape_rejected(self, tree: Path) -> None:
        with pytest.raises(ValueError, match='escapes'):
            await FileSystemCorpus(tree / 'notes').read_content('../a.md')


class TestRelativePaths:
    def test_absolute_path(self, tree: Path) -> None:
        corpus = FileSystemCorpus(tree)
        assert corpus.to_relative(tree / 'notes' / 'b.md') == 'notes/b.md'

    def test_relative_path(self, tree: Path) -> None:
        assert FileSystemCorpus(tree).to_relative(Path('notes/b.md')) == 'notes/b.md'

    def test_outside_root(self, tree: Path) -> None:
        with pytest.raises(ValueError):
            FileSystemCorpus(tree / 'notes').to_relative(tree / 'a.md')
