"""Centralized file paths for the vector index.

All persistent file locations in one place for consistency.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    'CONFIG_PATH',
    'SECRETS_DIR',
    'VECTOR_INDEX_DIR',
    'secret_path',
]

VECTOR_INDEX_DIR = Path.home() / '.vector-index'

CONFIG_PATH = VECTOR_INDEX_DIR / 'config.json'

# One file per provider, containing only the key
SECRETS_DIR = VECTOR_INDEX_DIR / 'secrets'


def secret_path(provider: str) -> Path:
    """Get API key file path for a provider.

    Raises:
        ValueError: If provider contains path traversal sequences.
    """
    path = SECRETS_DIR / f'{provider}_api_key'
    if not path.resolve().is_relative_to(SECRETS_DIR.resolve()):
        raise ValueError(f'Invalid provider name: {provider}')
    return path
