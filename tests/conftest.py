"""Shared fixtures for fossil tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlmodel import SQLModel, create_engine

from fossil import FossilConfig, FossilRepo, FossilStore

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Engine


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with all tables created."""
    eng = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def store(engine: Engine) -> Iterator[FossilStore]:
    """FossilStore over the in-memory engine."""
    with FossilStore(engine=engine) as s:
        yield s


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An isolated working directory; the process cwd points into it."""
    monkeypatch.delenv("FOSSIL_DIR", raising=False)
    monkeypatch.delenv("FOSSIL_PREVIEW_LENGTH", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config(workdir: Path) -> FossilConfig:
    return FossilConfig.for_directory(workdir)


@pytest.fixture
def repo(config: FossilConfig) -> Iterator[FossilRepo]:
    """A freshly initialized repository in the working directory."""
    with FossilRepo.init(config) as r:
        yield r
