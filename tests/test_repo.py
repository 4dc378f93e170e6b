"""Tests for FossilRepo — track, bury, dig, surface and the rest."""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

import pytest

from fossil import FossilConfig, FossilRepo
from fossil.exceptions import (
    FossilIOError,
    NotAtLatestVersion,
    NotTracked,
    RepositoryAlreadyExists,
    RepositoryNotFound,
    StorageError,
    TagNotFound,
    VersionOutOfRange,
)

if TYPE_CHECKING:
    from pathlib import Path


def _write(path: Path, content: bytes) -> Path:
    path.write_bytes(content)
    return path


def _record(repo: FossilRepo, path: Path):
    fossil = repo.store.get_by_path(path)
    assert fossil is not None
    return fossil


@pytest.fixture
def a_txt(workdir: Path) -> Path:
    return _write(workdir / "a.txt", b"hello")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_init_creates_root_and_store(self, config: FossilConfig):
        with FossilRepo.init(config) as repo:
            assert config.root.is_dir()
            assert config.db_path.is_file()
            assert repo.store.count() == 0

    def test_init_twice(self, repo: FossilRepo, config: FossilConfig):
        with pytest.raises(RepositoryAlreadyExists):
            FossilRepo.init(config)

    def test_open_missing(self, config: FossilConfig):
        with pytest.raises(RepositoryNotFound):
            FossilRepo.open(config)

    def test_open_sees_tracked_files(self, config: FossilConfig, a_txt: Path):
        with FossilRepo.init(config) as repo:
            repo.track([a_txt])
        with FossilRepo.open(config) as repo:
            assert repo.store.get_by_path(a_txt) is not None

    def test_closed_repo_raises(self, config: FossilConfig):
        repo = FossilRepo.init(config)
        repo.close()
        with pytest.raises(StorageError, match="is closed"):
            repo.list()


# ---------------------------------------------------------------------------
# End-to-end walk through one file's history
# ---------------------------------------------------------------------------


class TestHistoryWalk:
    def test_walk(self, repo: FossilRepo, a_txt: Path):
        result = repo.track(["a.txt"])
        assert result.tracked == [a_txt.resolve()]
        fossil = _record(repo, a_txt)
        assert fossil.base_content == b"hello"
        assert fossil.versions == []
        assert fossil.cur_version == 0

        a_txt.write_bytes(b"hello world")
        result = repo.bury(["a.txt"])
        assert result.success
        fossil = _record(repo, a_txt)
        assert [(v.version_no, v.tag) for v in fossil.versions] == [(1, None)]
        assert fossil.cur_version == 1
        assert a_txt.read_bytes() == b"hello world"

        a_txt.write_bytes(b"hello world!!!")
        repo.bury(["a.txt"], tag="v1")
        fossil = _record(repo, a_txt)
        assert len(fossil.versions) == 2
        assert fossil.versions[1].tag == "v1"
        assert fossil.cur_version == 2

        result = repo.dig(["a.txt"], tag="v1")
        assert result.success
        assert result.outcomes[0].version == 2
        assert a_txt.read_bytes() == b"hello world!!!"
        assert _record(repo, a_txt).cur_version == 2

        repo.dig(["a.txt"], version=0)
        assert a_txt.read_bytes() == b"hello"
        assert _record(repo, a_txt).cur_version == 0

        result = repo.dig(["a.txt"], version=5)
        assert not result.success
        error = result.outcomes[0].error
        assert isinstance(error, VersionOutOfRange)
        assert (error.requested, error.max) == (5, 2)
        assert a_txt.read_bytes() == b"hello"
        assert _record(repo, a_txt).cur_version == 0

    def test_dig_to_every_version(self, repo: FossilRepo, a_txt: Path):
        contents = [b"hello", b"hello\nworld\n", b"\x00\xff binary", b"", b"end\n"]
        repo.track([a_txt])
        for content in contents[1:]:
            a_txt.write_bytes(content)
            repo.bury([a_txt])

        fossil = _record(repo, a_txt)
        for n, expected in enumerate(contents):
            assert fossil.get_version_content(n) == expected
            repo.dig([a_txt], version=n)
            assert a_txt.read_bytes() == expected


# ---------------------------------------------------------------------------
# track / untrack
# ---------------------------------------------------------------------------


class TestTrack:
    def test_idempotent(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.write_bytes(b"changed")
        result = repo.track([a_txt])
        assert result.tracked == []
        assert result.skipped == [a_txt.resolve()]
        assert repo.store.count() == 1
        assert _record(repo, a_txt).base_content == b"hello"

    def test_skips_missing_and_directories(self, repo: FossilRepo, workdir: Path):
        (workdir / "dir").mkdir()
        result = repo.track(["missing.txt", "dir"])
        assert result.tracked == []
        assert len(result.skipped) == 2
        assert result.message == "Tracked 0 file(s), skipped 2"
        assert repo.store.count() == 0


class TestUntrack:
    def test_restores_latest_and_drops_record(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")
        repo.bury([a_txt])
        repo.dig([a_txt], version=0)

        result = repo.untrack([a_txt])
        assert result.success
        assert a_txt.read_bytes() == b"v1"
        assert repo.store.get_by_path(a_txt) is None

    def test_untracked_path_is_noop(self, repo: FossilRepo, a_txt: Path):
        result = repo.untrack([a_txt])
        assert result.success
        assert result.outcomes == []


# ---------------------------------------------------------------------------
# bury
# ---------------------------------------------------------------------------


class TestBury:
    def test_unchanged_is_noop(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        for _ in range(3):
            result = repo.bury([a_txt])
            assert result.success
            assert not result.outcomes[0].changed
        assert _record(repo, a_txt).versions == []

    def test_all_tracked_by_default(self, repo: FossilRepo, workdir: Path):
        a = _write(workdir / "a.txt", b"a")
        b = _write(workdir / "b.txt", b"b")
        repo.track([a, b])
        a.write_bytes(b"a2")
        b.write_bytes(b"b2")
        result = repo.bury(tag="both")
        assert result.success
        assert len(result.outcomes) == 2
        assert _record(repo, a).versions[0].tag == "both"
        assert _record(repo, b).versions[0].tag == "both"

    def test_not_at_latest(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")
        repo.bury([a_txt])
        repo.dig([a_txt], version=0)
        a_txt.write_bytes(b"fork")

        result = repo.bury([a_txt])
        assert not result.success
        assert isinstance(result.outcomes[0].error, NotAtLatestVersion)
        assert len(_record(repo, a_txt).versions) == 1

    def test_untracked_path_fails_per_file(self, repo: FossilRepo, workdir: Path, a_txt: Path):
        other = _write(workdir / "other.txt", b"x")
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")
        result = repo.bury([a_txt, other])
        assert not result.success
        assert result.message == "bury: 1 succeeded, 1 failed"
        assert isinstance(result.outcome_for(other.resolve()).error, NotTracked)
        assert _record(repo, a_txt).latest_version == 1

    def test_storage_error_aborts_batch(
        self, repo: FossilRepo, a_txt: Path, monkeypatch: pytest.MonkeyPatch
    ):
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")

        def _fail(fossil):
            raise StorageError("database is locked")

        monkeypatch.setattr(repo.store, "update", _fail)
        with pytest.raises(StorageError, match="database is locked"):
            repo.bury([a_txt])

    def test_deleted_file_fails_per_file(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.unlink()
        result = repo.bury()
        assert not result.success
        assert "file not found" in result.outcomes[0].message


# ---------------------------------------------------------------------------
# dig / surface
# ---------------------------------------------------------------------------


class TestDig:
    @pytest.fixture
    def tagged(self, repo: FossilRepo, workdir: Path) -> tuple[Path, Path]:
        a = _write(workdir / "a.txt", b"a0")
        b = _write(workdir / "b.txt", b"b0")
        repo.track([a, b])
        a.write_bytes(b"a1")
        repo.bury([a], tag="stable")
        a.write_bytes(b"a2")
        b.write_bytes(b"b1")
        repo.bury([a, b], tag="stable")
        a.write_bytes(b"a3")
        repo.bury([a])
        return a, b

    def test_most_recent_tag_wins(self, repo: FossilRepo, tagged: tuple[Path, Path]):
        a, _ = tagged
        result = repo.dig([a], tag="stable")
        assert result.outcomes[0].version == 2
        assert a.read_bytes() == b"a2"

    def test_tag_over_all_files(self, repo: FossilRepo, tagged: tuple[Path, Path]):
        a, b = tagged
        result = repo.dig(tag="stable")
        assert result.success
        assert a.read_bytes() == b"a2"
        assert b.read_bytes() == b"b1"

    def test_no_file_carries_tag(self, repo: FossilRepo, tagged: tuple[Path, Path]):
        result = repo.dig(tag="missing")
        assert not result.success
        assert "no tracked files carry tag 'missing'" in result.message

    def test_tag_not_found_explicit_path(self, repo: FossilRepo, tagged: tuple[Path, Path]):
        a, _ = tagged
        result = repo.dig([a], tag="missing")
        assert isinstance(result.outcomes[0].error, TagNotFound)
        assert a.read_bytes() == b"a3"

    def test_version_over_all_files_partial(self, repo: FossilRepo, tagged: tuple[Path, Path]):
        a, b = tagged
        result = repo.dig(version=3)
        assert not result.success
        assert a.read_bytes() == b"a3"
        assert isinstance(result.outcome_for(b.resolve()).error, VersionOutOfRange)

    @pytest.mark.parametrize(
        ("tag", "version", "message"),
        [
            ("stable", 1, "Cannot specify both tag and version"),
            (None, None, "Must specify either tag or version"),
        ],
        ids=["both", "neither"],
    )
    def test_bad_selector(
        self,
        repo: FossilRepo,
        tagged: tuple[Path, Path],
        tag: str | None,
        version: int | None,
        message: str,
    ):
        a, _ = tagged
        result = repo.dig([a], tag=tag, version=version)
        assert not result.success
        assert result.outcomes[0].message == message
        assert a.read_bytes() == b"a3"


class TestSurface:
    def test_restores_latest_everywhere(self, repo: FossilRepo, workdir: Path):
        a = _write(workdir / "a.txt", b"a0")
        b = _write(workdir / "b.txt", b"b0")
        repo.track([a, b])
        a.write_bytes(b"a1")
        b.write_bytes(b"b1")
        repo.bury()
        repo.dig(version=0)
        b.unlink()

        result = repo.surface()
        assert result.success
        assert a.read_bytes() == b"a1"
        assert b.read_bytes() == b"b1"
        assert all(f.is_at_latest for f in repo.store.list_all())

    def test_empty_repository(self, repo: FossilRepo):
        result = repo.surface()
        assert result.success
        assert result.outcomes == []


# ---------------------------------------------------------------------------
# history / diff / list
# ---------------------------------------------------------------------------


class TestHistory:
    def test_newest_first(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.write_bytes(b"hello\nworld\n")
        repo.bury([a_txt], tag="t1")
        a_txt.write_bytes(b"hello\n")
        repo.bury([a_txt])
        repo.dig([a_txt], version=1)

        result = repo.history(a_txt)
        assert result.success
        assert [v.version_no for v in result.versions] == [2, 1]
        assert result.versions[1].tag == "t1"
        assert result.versions[1].is_current
        assert result.versions[0].removed == 1

    def test_untracked(self, repo: FossilRepo, a_txt: Path):
        result = repo.history(a_txt)
        assert not result.success
        assert "not tracked" in result.message


class TestDiff:
    def test_text_version(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        a_txt.write_bytes(b"hello world")
        repo.bury([a_txt], tag="t")
        result = repo.diff(a_txt, tag="t")
        assert result.success
        assert result.version == 1
        assert "-hello" in result.diff
        assert "+hello world" in result.diff

    def test_version_zero(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        result = repo.diff(a_txt, version=0)
        assert result.success
        assert result.diff == ""
        assert result.message == "Version 0 is the base content"

    def test_out_of_range(self, repo: FossilRepo, a_txt: Path):
        repo.track([a_txt])
        result = repo.diff(a_txt, version=4)
        assert not result.success
        assert result.message == "Version 4 does not exist (max 0)"


class TestList:
    def test_summaries(self, workdir: Path):
        config = FossilConfig.for_directory(workdir, preview_length=5)
        a = _write(workdir / "a.txt", b"first line\nsecond")
        with FossilRepo.init(config) as repo:
            repo.track([a])
            a.write_bytes(b"changed content")
            repo.bury([a], tag="t")
            repo.dig([a], version=0)

            result = repo.list()
        assert result.success
        [entry] = result.entries
        assert entry.path == a.resolve()
        assert (entry.cur_version, entry.latest_version, entry.tagged) == (0, 1, 1)
        assert entry.preview == "first..."

    def test_empty(self, repo: FossilRepo):
        result = repo.list()
        assert result.success
        assert result.entries == []


# ---------------------------------------------------------------------------
# reset
# ---------------------------------------------------------------------------


class TestReset:
    def test_surfaces_and_removes_root(self, config: FossilConfig, a_txt: Path):
        repo = FossilRepo.init(config)
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")
        repo.bury([a_txt])
        repo.dig([a_txt], version=0)

        result = repo.reset()
        assert result.success
        assert a_txt.read_bytes() == b"v1"
        assert not config.root.exists()

    def test_aborts_on_surface_failure(self, config: FossilConfig, a_txt: Path):
        repo = FossilRepo.init(config)
        repo.track([a_txt])
        a_txt.write_bytes(b"v1")
        repo.bury([a_txt])
        fossil = _record(repo, a_txt)
        fossil.versions[0].patch = b"Xbroken"
        repo.store.update(fossil)

        result = repo.reset()
        assert not result.success
        assert "Reset aborted" in result.message
        assert config.root.exists()

        result = repo.reset(force=True)
        assert result.success
        assert not config.root.exists()

    def test_unremovable_root(
        self, config: FossilConfig, a_txt: Path, monkeypatch: pytest.MonkeyPatch
    ):
        repo = FossilRepo.init(config)
        repo.track([a_txt])

        def _deny(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(shutil, "rmtree", _deny)
        with pytest.raises(FossilIOError, match="cannot remove"):
            repo.reset()
        assert config.root.exists()
