"""Repository configuration and root discovery."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from fossil.models.fossils import DEFAULT_PREVIEW_LENGTH

logger = logging.getLogger(__name__)

ROOT_DIR_NAME = ".fossil"
DB_NAME = "fossil.db"

ENV_ROOT = "FOSSIL_DIR"
ENV_PREVIEW_LENGTH = "FOSSIL_PREVIEW_LENGTH"


@dataclass(frozen=True)
class FossilConfig:
    """Where the repository lives and how it is presented.

    All durable state is in the SQLite store under ``root``; there is no
    on-disk configuration file.
    """

    root: Path
    db_name: str = DB_NAME
    preview_length: int = DEFAULT_PREVIEW_LENGTH

    @property
    def db_path(self) -> Path:
        return self.root / self.db_name

    @classmethod
    def for_directory(cls, directory: str | Path, **kwargs: object) -> FossilConfig:
        """Config for a repository rooted directly in *directory*."""
        return cls(root=Path(directory) / ROOT_DIR_NAME, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, cwd: str | Path | None = None) -> FossilConfig:
        """Resolve the repository from the environment and working directory.

        ``FOSSIL_DIR`` names the root explicitly.  Otherwise the nearest
        existing ``.fossil`` directory at or above *cwd* is used, stopping
        at a git work tree boundary; failing that, ``<cwd>/.fossil``.
        """
        start = Path(cwd) if cwd is not None else Path.cwd()

        preview_length = DEFAULT_PREVIEW_LENGTH
        raw_length = os.environ.get(ENV_PREVIEW_LENGTH, "").strip()
        if raw_length:
            try:
                preview_length = max(1, int(raw_length))
            except ValueError:
                logger.warning("Ignoring non-integer %s=%r", ENV_PREVIEW_LENGTH, raw_length)

        explicit = os.environ.get(ENV_ROOT, "").strip()
        if explicit:
            return cls(root=Path(explicit).expanduser(), preview_length=preview_length)

        found = find_root(start)
        root = found if found is not None else start / ROOT_DIR_NAME
        return cls(root=root, preview_length=preview_length)


def find_root(start: Path) -> Path | None:
    """Walk up from *start* looking for an existing ``.fossil`` directory."""
    current = start.absolute()
    while True:
        candidate = current / ROOT_DIR_NAME
        if candidate.is_dir():
            return candidate
        if (current / ".git").exists():
            return None
        if current.parent == current:
            return None
        current = current.parent
