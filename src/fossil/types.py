"""Result types: BatchResult, TrackResult, ListResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from fossil.exceptions import FossilError


@dataclass
class FileOutcome:
    """What happened to one file during a multi-file operation."""

    path: Path
    success: bool
    message: str
    version: int | None = None
    changed: bool = False
    error: FossilError | None = None


@dataclass
class BatchResult:
    """Result of an operation over several fossils (bury, dig, surface, untrack)."""

    success: bool
    message: str
    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.success]

    def outcome_for(self, path: Path) -> FileOutcome | None:
        for o in self.outcomes:
            if o.path == path:
                return o
        return None


@dataclass
class TrackResult:
    """Result of a track operation."""

    success: bool
    message: str
    tracked: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


@dataclass
class FossilSummary:
    """One row of ``list`` output."""

    path: Path
    cur_version: int
    latest_version: int
    tagged: int
    preview: str


@dataclass
class ListResult:
    """Result of a list operation."""

    success: bool
    message: str
    entries: list[FossilSummary] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class VersionInfo:
    """Version history entry."""

    version_no: int
    tag: str | None
    content_hash: str
    size_bytes: int
    created_at: datetime
    added: int = 0
    removed: int = 0
    is_current: bool = False


@dataclass
class HistoryResult:
    """Result of a history operation."""

    success: bool
    message: str
    path: Path | None = None
    versions: list[VersionInfo] = field(default_factory=list)


@dataclass
class DiffResult:
    """Result of a diff operation."""

    success: bool
    message: str
    path: Path | None = None
    version: int = 0
    diff: str = ""


@dataclass
class ResetResult:
    """Result of a reset operation."""

    success: bool
    message: str
    surfaced: BatchResult | None = None
