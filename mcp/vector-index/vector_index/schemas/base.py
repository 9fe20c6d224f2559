"""Strict Pydantic base model."""

from __future__ import annotations

import pydantic

__all__ = [
    'StrictModel',
]


class StrictModel(pydantic.BaseModel):
    """Base model for every schema in the package.

    Config:
    - extra='forbid': Reject unknown fields (fail-fast on stale payloads)
    - strict=True: No implicit type coercion
    - frozen=True: Records are replaced, never mutated in place
    """

    model_config = pydantic.ConfigDict(
        extra='forbid',
        strict=True,
        frozen=True,
    )
