"""FossilStore — durable key/value storage for fossil records in SQLite."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import event, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, create_engine, select

from fossil.exceptions import StorageError
from fossil.hashing import KEY_SEPARATOR, path_prefix
from fossil.models.entries import FossilEntry
from fossil.models.fossils import Fossil

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class FossilStore:
    """One serialized ``Fossil`` per row, keyed by its record key.

    Every mutating call runs in its own session and commits before
    returning, so a later process reopening the same database file sees
    all prior writes.  SQLite's file locking keeps writers exclusive; a
    second process holding the write lock surfaces as ``StorageError``.

    Usage::

        with FossilStore(root / "fossil.db") as store:
            store.create(Fossil.new("notes.txt", b"hello"))
            fossil = store.get_by_path("notes.txt")
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        engine: Engine | None = None,
        busy_timeout_ms: int = 5000,
    ) -> None:
        if db_path is None and engine is None:
            raise ValueError("FossilStore needs a db_path or an engine")
        self.db_path = Path(db_path) if db_path is not None else None
        self._busy_timeout_ms = busy_timeout_ms
        self._engine = engine
        self._owns_engine = engine is None
        self._ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Create the engine and table if needed."""
        if self._ready:
            return

        if self._engine is None:
            assert self.db_path is not None
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(f"sqlite:///{self.db_path}", echo=False)
            busy_timeout = self._busy_timeout_ms

            @event.listens_for(self._engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
                cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
                cursor.execute("PRAGMA journal_mode=WAL")
                result = cursor.fetchone()
                if result[0].lower() != "wal":
                    logger.warning("WAL mode not active, got: %s", result[0])
                cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
                cursor.execute("PRAGMA synchronous=FULL")
                cursor.close()

        table = FossilEntry.__table__  # type: ignore[attr-defined]
        try:
            table.create(self._engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot open fossil store: {e}") from e
        self._ready = True
        logger.debug("Opened fossil store at %s", self.db_path or self._engine.url)

    def close(self) -> None:
        """Dispose the engine if this store created it."""
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
        self._ready = False

    def __enter__(self) -> FossilStore:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _session(self) -> Session:
        if not self._ready:
            self.open()
        return Session(self._engine, expire_on_commit=False)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fossil: Fossil) -> None:
        """Insert *fossil* under ``fossil.key``, replacing any existing row."""
        now = datetime.now(UTC)
        data = fossil.to_json()
        path_hash = fossil.key.split(KEY_SEPARATOR, 1)[0]
        try:
            with self._session() as session:
                entry = session.get(FossilEntry, fossil.key)
                if entry is None:
                    entry = FossilEntry(
                        key=fossil.key,
                        path_hash=path_hash,
                        path=str(fossil.path),
                        data=data,
                        created_at=now,
                        updated_at=now,
                    )
                else:
                    entry.path = str(fossil.path)
                    entry.data = data
                    entry.updated_at = now
                session.add(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write record {fossil.key}: {e}") from e

    def update(self, fossil: Fossil) -> None:
        """Persist a modified record. Same upsert as ``create``."""
        self.create(fossil)

    def delete(self, key: str) -> None:
        """Remove the record under *key*; absent keys are ignored."""
        try:
            with self._session() as session:
                entry = session.get(FossilEntry, key)
                if entry is None:
                    return
                session.delete(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete record {key}: {e}") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str) -> Fossil | None:
        """Point lookup. Raises ``SerializationError`` for an undecodable row."""
        try:
            with self._session() as session:
                entry = session.get(FossilEntry, key)
                data = entry.data if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read record {key}: {e}") from e
        if data is None:
            return None
        return Fossil.from_json(data)

    def get_by_path(self, path: str | Path) -> Fossil | None:
        """First record whose key carries the path hash of *path*."""
        rows = self._scan(path_prefix(path))
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(
                "%d records share the path %s; using the oldest (%s)",
                len(rows),
                path,
                rows[0][0],
            )
        return Fossil.from_json(rows[0][1])

    def list_all(self) -> list[Fossil]:
        """Decode every record. Fails on the first undecodable one."""
        return [Fossil.from_json(data) for _, data in self._scan(None)]

    def count(self) -> int:
        try:
            with self._session() as session:
                return session.exec(select(func.count()).select_from(FossilEntry)).one()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to count records: {e}") from e

    def _scan(self, prefix: str | None) -> list[tuple[str, str]]:
        stmt = select(FossilEntry.key, FossilEntry.data)
        if prefix is not None:
            stmt = stmt.where(col(FossilEntry.key).startswith(prefix, autoescape=True))
        stmt = stmt.order_by(col(FossilEntry.created_at).asc(), col(FossilEntry.key).asc())
        try:
            with self._session() as session:
                return [(key, data) for key, data in session.exec(stmt).all()]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to scan records: {e}") from e
