"""FossilRepo — the operation protocol over a fossil store."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from fossil.config import FossilConfig
from fossil.exceptions import (
    FossilError,
    FossilIOError,
    NotAtLatestVersion,
    NotTracked,
    RepositoryAlreadyExists,
    RepositoryNotFound,
    StorageError,
)
from fossil.hashing import canonical_path
from fossil.models.fossils import Fossil
from fossil.patch import patch_stats, render_patch
from fossil.store import FossilStore
from fossil.types import (
    BatchResult,
    DiffResult,
    FileOutcome,
    FossilSummary,
    HistoryResult,
    ListResult,
    ResetResult,
    TrackResult,
    VersionInfo,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

logger = logging.getLogger(__name__)

PathLike = str | Path


class FossilRepo:
    """Track, bury, dig and surface files against one fossil store.

    The store handle is injected, so any number of repositories (for
    example one per test) can coexist in a process.  Operations over
    several files never stop at the first failing file: each file gets a
    ``FileOutcome`` and the batch reports the overall count.  Only
    repository-level failures (missing repository, broken store) raise.

    Usage::

        with FossilRepo.open(FossilConfig.from_env()) as repo:
            repo.bury(["notes.txt"], tag="draft")
            repo.dig(["notes.txt"], version=0)
            repo.surface()
    """

    def __init__(self, store: FossilStore, config: FossilConfig) -> None:
        self.store = store
        self.config = config
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def init(cls, config: FossilConfig) -> FossilRepo:
        """Create the repository root and an empty store."""
        if config.root.exists():
            raise RepositoryAlreadyExists(config.root)
        config.root.mkdir(parents=True)
        store = FossilStore(config.db_path)
        store.open()
        logger.info("Initialized fossil repository at %s", config.root)
        return cls(store, config)

    @classmethod
    def open(cls, config: FossilConfig) -> FossilRepo:
        """Open an existing repository."""
        if not config.root.is_dir() or not config.db_path.is_file():
            raise RepositoryNotFound(config.root)
        store = FossilStore(config.db_path)
        store.open()
        return cls(store, config)

    def close(self) -> None:
        if not self._closed:
            self.store.close()
            self._closed = True

    def __enter__(self) -> FossilRepo:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError(f"Repository at {self.config.root} is closed")

    # ------------------------------------------------------------------
    # Disk helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _read_file(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise FossilIOError(f"{path}: file not found") from e
        except OSError as e:
            raise FossilIOError(f"{path}: cannot read ({e.strerror or e})") from e

    @staticmethod
    def _write_file(path: Path, content: bytes) -> None:
        """Atomically replace *path* with *content*."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=path.parent,
                prefix=".tmp_",
                suffix=path.suffix,
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                Path(tmp_path).replace(path)
            except BaseException:
                tmp = Path(tmp_path)
                if tmp.exists():
                    tmp.unlink()
                raise
        except OSError as e:
            raise FossilIOError(f"{path}: cannot write ({e.strerror or e})") from e

    # ------------------------------------------------------------------
    # Target selection
    # ------------------------------------------------------------------

    def _lookup(self, paths: Iterable[PathLike]) -> list[tuple[Path, Fossil | None]]:
        targets: list[tuple[Path, Fossil | None]] = []
        seen: set[Path] = set()
        for p in paths:
            path = canonical_path(p)
            if path in seen:
                continue
            seen.add(path)
            targets.append((path, self.store.get_by_path(path)))
        return targets

    def _all(self) -> list[tuple[Path, Fossil | None]]:
        return [(f.path, f) for f in self.store.list_all()]

    def _run_each(
        self,
        targets: list[tuple[Path, Fossil | None]],
        action: Callable[[Fossil], FileOutcome],
        verb: str,
    ) -> BatchResult:
        """Apply *action* to every target, collecting per-file failures."""
        outcomes: list[FileOutcome] = []
        for path, fossil in targets:
            if fossil is None:
                err: FossilError = NotTracked(path)
                outcomes.append(FileOutcome(path=path, success=False, message=str(err), error=err))
                logger.warning("%s failed for %s: %s", verb, path, err)
                continue
            try:
                outcomes.append(action(fossil))
            except StorageError:
                raise
            except FossilError as e:
                outcomes.append(FileOutcome(path=path, success=False, message=str(e), error=e))
                logger.warning("%s failed for %s: %s", verb, path, e)

        failed = sum(1 for o in outcomes if not o.success)
        ok = len(outcomes) - failed
        message = f"{verb}: {ok} succeeded, {failed} failed"
        return BatchResult(success=failed == 0, message=message, outcomes=outcomes)

    # ------------------------------------------------------------------
    # track / untrack
    # ------------------------------------------------------------------

    def track(self, paths: Iterable[PathLike]) -> TrackResult:
        """Start tracking each existing, untracked file at its current content."""
        self._check_open()
        tracked: list[Path] = []
        skipped: list[Path] = []
        for p in paths:
            path = canonical_path(p)
            if not path.is_file():
                logger.debug("Skipping %s: not a file", path)
                skipped.append(path)
                continue
            if self.store.get_by_path(path) is not None:
                logger.debug("Skipping %s: already tracked", path)
                skipped.append(path)
                continue
            fossil = Fossil.new(path, self._read_file(path))
            self.store.create(fossil)
            tracked.append(path)
            logger.info("Tracked %s", path)

        return TrackResult(
            success=True,
            message=f"Tracked {len(tracked)} file(s), skipped {len(skipped)}",
            tracked=tracked,
            skipped=skipped,
        )

    def untrack(self, paths: Iterable[PathLike]) -> BatchResult:
        """Leave each file at its latest version and drop its history."""
        self._check_open()

        def _untrack(fossil: Fossil) -> FileOutcome:
            self._write_file(fossil.path, fossil.latest_content())
            self.store.delete(fossil.key)
            return FileOutcome(
                path=fossil.path,
                success=True,
                message=f"Untracked at version {fossil.latest_version}",
                version=fossil.latest_version,
                changed=True,
            )

        # Paths without a record are a no-op, not a failure.
        targets = [(p, f) for p, f in self._lookup(paths) if f is not None]
        return self._run_each(targets, _untrack, "untrack")

    # ------------------------------------------------------------------
    # bury
    # ------------------------------------------------------------------

    def bury(self, paths: Iterable[PathLike] | None = None, tag: str | None = None) -> BatchResult:
        """Record the on-disk content of each file as a new version.

        With no *paths* every tracked file is buried.  A file whose content
        matches its latest version is left alone.
        """
        self._check_open()
        paths = list(paths or [])
        targets = self._lookup(paths) if paths else self._all()

        def _bury(fossil: Fossil) -> FileOutcome:
            if not fossil.is_at_latest:
                raise NotAtLatestVersion(fossil.cur_version, fossil.latest_version)
            current = self._read_file(fossil.path)
            version = fossil.add_version(current, tag)
            if version is None:
                return FileOutcome(
                    path=fossil.path,
                    success=True,
                    message=f"Unchanged since version {fossil.latest_version}",
                    version=fossil.latest_version,
                )
            self.store.update(fossil)
            label = f" [{version.tag}]" if version.tag else ""
            logger.info("Buried %s as version %d%s", fossil.path, version.version_no, label)
            return FileOutcome(
                path=fossil.path,
                success=True,
                message=f"Buried as version {version.version_no}{label}",
                version=version.version_no,
                changed=True,
            )

        return self._run_each(targets, _bury, "bury")

    # ------------------------------------------------------------------
    # dig / surface
    # ------------------------------------------------------------------

    def dig(
        self,
        paths: Iterable[PathLike] | None = None,
        *,
        tag: str | None = None,
        version: int | None = None,
    ) -> BatchResult:
        """Restore each file to the version selected by *tag* or *version*.

        With no *paths*, digging by tag restores every file that carries the
        tag and digging by number restores every tracked file.
        """
        self._check_open()
        paths = list(paths or [])
        tag = tag or None
        if paths:
            targets = self._lookup(paths)
        else:
            targets = self._all()
            if tag is not None and version is None:
                targets = [(p, f) for p, f in targets if f is not None and f.carries_tag(tag)]
                if not targets:
                    return BatchResult(
                        success=False,
                        message=f"dig: no tracked files carry tag '{tag}'",
                    )

        def _dig(fossil: Fossil) -> FileOutcome:
            target_no = fossil.resolve_version(tag=tag, version=version)
            content = fossil.get_version_content(target_no)
            self._write_file(fossil.path, content)
            fossil.set_current(target_no)
            self.store.update(fossil)
            logger.info("Dug %s to version %d", fossil.path, target_no)
            return FileOutcome(
                path=fossil.path,
                success=True,
                message=f"Restored version {target_no} of {fossil.latest_version}",
                version=target_no,
                changed=True,
            )

        return self._run_each(targets, _dig, "dig")

    def surface(self) -> BatchResult:
        """Restore every tracked file to its latest version."""
        self._check_open()

        def _surface(fossil: Fossil) -> FileOutcome:
            latest = fossil.latest_version
            self._write_file(fossil.path, fossil.get_version_content(latest))
            fossil.set_current(latest)
            self.store.update(fossil)
            return FileOutcome(
                path=fossil.path,
                success=True,
                message=f"Surfaced at version {latest}",
                version=latest,
                changed=True,
            )

        return self._run_each(self._all(), _surface, "surface")

    # ------------------------------------------------------------------
    # history / diff
    # ------------------------------------------------------------------

    def history(self, path: PathLike) -> HistoryResult:
        """Version log of one tracked file, newest first."""
        self._check_open()
        canonical = canonical_path(path)
        fossil = self.store.get_by_path(canonical)
        if fossil is None:
            return HistoryResult(success=False, message=str(NotTracked(canonical)), path=canonical)

        infos: list[VersionInfo] = []
        for v in reversed(fossil.versions):
            stats = patch_stats(v.patch)
            infos.append(
                VersionInfo(
                    version_no=v.version_no,
                    tag=v.tag,
                    content_hash=v.content_hash,
                    size_bytes=v.size_bytes,
                    created_at=v.created_at,
                    added=stats.added,
                    removed=stats.removed,
                    is_current=v.version_no == fossil.cur_version,
                )
            )
        return HistoryResult(
            success=True,
            message=f"{len(infos)} version(s), at version {fossil.cur_version}",
            path=fossil.path,
            versions=infos,
        )

    def diff(
        self,
        path: PathLike,
        *,
        tag: str | None = None,
        version: int | None = None,
    ) -> DiffResult:
        """The patch that produced one version of a tracked file."""
        self._check_open()
        canonical = canonical_path(path)
        fossil = self.store.get_by_path(canonical)
        if fossil is None:
            return DiffResult(success=False, message=str(NotTracked(canonical)), path=canonical)
        try:
            version_no = fossil.resolve_version(tag=tag, version=version)
        except FossilError as e:
            return DiffResult(success=False, message=str(e), path=fossil.path)
        if version_no == 0:
            return DiffResult(
                success=True,
                message="Version 0 is the base content",
                path=fossil.path,
            )
        patch = fossil.versions[version_no - 1].patch
        return DiffResult(
            success=True,
            message=f"Version {version_no}",
            path=fossil.path,
            version=version_no,
            diff=render_patch(patch),
        )

    # ------------------------------------------------------------------
    # list / reset
    # ------------------------------------------------------------------

    def list(self) -> ListResult:
        """Summarize every tracked file."""
        self._check_open()
        entries: list[FossilSummary] = []
        errors: list[str] = []
        for fossil in self.store.list_all():
            try:
                preview = fossil.preview(self.config.preview_length)
            except FossilError as e:
                errors.append(f"{fossil.path}: {e}")
                preview = ""
            entries.append(
                FossilSummary(
                    path=fossil.path,
                    cur_version=fossil.cur_version,
                    latest_version=fossil.latest_version,
                    tagged=fossil.tagged_count,
                    preview=preview,
                )
            )
        return ListResult(
            success=not errors,
            message=f"{len(entries)} tracked file(s)",
            entries=entries,
            errors=errors,
        )

    def reset(self, *, force: bool = False) -> ResetResult:
        """Surface every file, then delete the repository root.

        If any file fails to surface the repository is kept, unless
        *force* is set.
        """
        self._check_open()
        surfaced = self.surface()
        if not surfaced.success and not force:
            return ResetResult(
                success=False,
                message=f"Reset aborted, {len(surfaced.failed)} file(s) could not be surfaced",
                surfaced=surfaced,
            )

        self.close()
        try:
            shutil.rmtree(self.config.root)
        except OSError as e:
            raise FossilIOError(f"{self.config.root}: cannot remove ({e.strerror or e})") from e
        logger.info("Removed fossil repository at %s", self.config.root)
        return ResetResult(
            success=True,
            message=f"Removed {self.config.root} ({len(surfaced.succeeded)} file(s) surfaced)",
            surfaced=surfaced,
        )
