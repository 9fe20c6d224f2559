"""Similarity search schemas."""

from __future__ import annotations

from collections.abc import Sequence

import pydantic

from vector_index.schemas.base import StrictModel
from vector_index.schemas.documents import LineRange

__all__ = [
    'SearchScope',
    'SimilarityHit',
    'SimilarityQuery',
]


class SearchScope(StrictModel):
    """Restrict a query to exact file paths and/or folder prefixes.

    A record matches if its path is in `files` or lies under any of `folders`.
    An empty scope matches everything.
    """

    files: Sequence[str] = ()
    folders: Sequence[str] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.files or self.folders)

    def matches(self, path: str) -> bool:
        if self.is_empty:
            return True
        if path in self.files:
            return True
        return any(path.startswith(normalize_folder(folder)) for folder in self.folders)


class SimilarityQuery(StrictModel):
    """Ranked nearest-neighbour request against one model's vectors."""

    query_vector: Sequence[float]
    min_similarity: float = 0.0
    limit: int = pydantic.Field(default=10, ge=1)
    scope: SearchScope | None = None


class SimilarityHit(StrictModel):
    """Stored record fields plus score. The embedding itself is omitted."""

    path: str
    mtime: float
    content: str
    metadata: LineRange
    similarity: float


def normalize_folder(folder: str) -> str:
    """Folder prefix with exactly one trailing slash ('' for the root)."""
    stripped = folder.strip('/')
    return f'{stripped}/' if stripped else ''
