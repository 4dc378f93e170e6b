"""FossilEntry — the SQLModel row that persists one serialized ``Fossil``."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FossilEntry(SQLModel, table=True):
    """Key/value row: ``key`` → JSON-serialized fossil in ``data``.

    ``path_hash`` and ``path`` are denormalized from the record for
    prefix scans and debugging; ``data`` is the source of truth.
    """

    __tablename__ = "fossil_entries"

    key: str = Field(primary_key=True)
    path_hash: str = Field(index=True)
    path: str = Field(default="")
    data: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
