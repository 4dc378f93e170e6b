"""Path and content hashing — the building blocks of store record keys."""

from __future__ import annotations

import hashlib
from pathlib import Path

KEY_SEPARATOR = ":"


def canonical_path(path: str | Path) -> Path:
    """Return the canonical absolute form of *path*.

    Symlinks and ``..`` are resolved when the path exists; a missing path is
    made absolute against the current directory instead.
    """
    p = Path(path).expanduser()
    try:
        return p.resolve(strict=True)
    except (FileNotFoundError, RuntimeError):
        return p.absolute().resolve()


def hash_path(path: str | Path) -> str:
    """SHA-256 of the canonical path string."""
    return hashlib.sha256(str(canonical_path(path)).encode()).hexdigest()


def hash_content(data: bytes) -> str:
    """SHA-256 of raw content bytes."""
    return hashlib.sha256(data).hexdigest()


def path_prefix(path: str | Path) -> str:
    """Key prefix shared by every record of *path*."""
    return hash_path(path) + KEY_SEPARATOR


def record_key(path: str | Path, base_content: bytes) -> str:
    """Store key for a record: ``<path hash>:<base content hash>``."""
    return path_prefix(path) + hash_content(base_content)
