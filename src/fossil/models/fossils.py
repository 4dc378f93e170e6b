"""Fossil and FossilVersion — a tracked file's history as a patch chain.

A ``Fossil`` holds the bytes captured at track time (version 0) and an
append-only list of ``FossilVersion`` patches.  Content for version *n* is
always re-derived by replaying patches ``1..n`` onto the base content;
nothing but the base is ever stored in full.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from fossil.exceptions import (
    AmbiguousVersionSpec,
    MissingVersionSpec,
    NotAtLatestVersion,
    PatchApplyError,
    SerializationError,
    TagNotFound,
    VersionOutOfRange,
)
from fossil.hashing import canonical_path, hash_content, record_key
from fossil.patch import apply_patch, compute_patch

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PREVIEW_LENGTH: int = 40
"""Characters of content shown by ``Fossil.preview``."""

RECORD_FORMAT: int = 1
"""Version of the serialized record layout."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass
class FossilVersion:
    """One step in a file's history. Immutable once appended."""

    version_no: int
    patch: bytes
    tag: str | None = None
    content_hash: str = ""
    size_bytes: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def has_tag(self) -> bool:
        return bool(self.tag)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version_no": self.version_no,
            "patch": base64.b64encode(self.patch).decode("ascii"),
            "tag": self.tag,
            "content_hash": self.content_hash,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FossilVersion:
        return cls(
            version_no=int(data["version_no"]),
            patch=base64.b64decode(data["patch"], validate=True),
            tag=data.get("tag") or None,
            content_hash=data.get("content_hash", ""),
            size_bytes=int(data.get("size_bytes", 0)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class Fossil:
    """The full version history of one tracked file.

    ``cur_version`` records which version is materialized on disk at
    ``path``; it is bookkeeping only and never a source of content.
    """

    path: Path
    base_content: bytes
    versions: list[FossilVersion] = field(default_factory=list)
    cur_version: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    key: str = ""

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if not self.key:
            self.key = record_key(self.path, self.base_content)

    @classmethod
    def new(cls, path: str | Path, content: bytes) -> Fossil:
        """Create a fresh record whose version 0 is *content*."""
        return cls(path=canonical_path(path), base_content=bytes(content))

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def latest_version(self) -> int:
        return len(self.versions)

    @property
    def is_at_latest(self) -> bool:
        return self.cur_version == self.latest_version

    @property
    def tagged_count(self) -> int:
        return sum(1 for v in self.versions if v.has_tag)

    # ------------------------------------------------------------------
    # Reconstruction
    # ------------------------------------------------------------------

    def get_version_content(self, target: int) -> bytes:
        """Replay patches ``1..target`` onto the base content.

        Raises ``VersionOutOfRange`` for a target outside
        ``[0, latest_version]`` and ``PatchApplyError`` if the chain is
        broken or the result does not match the recorded hash.
        """
        if target < 0 or target > self.latest_version:
            raise VersionOutOfRange(target, self.latest_version)

        content = self.base_content
        for version in self.versions[:target]:
            try:
                content = apply_patch(content, version.patch)
            except PatchApplyError as e:
                raise PatchApplyError(
                    f"{self.path}: version {version.version_no} does not apply: {e}"
                ) from e

        if target > 0:
            expected_hash = self.versions[target - 1].content_hash
            actual_hash = hash_content(content)
            if expected_hash and actual_hash != expected_hash:
                raise PatchApplyError(
                    f"{self.path}: version {target} content hash mismatch "
                    f"(expected {expected_hash[:12]}…, got {actual_hash[:12]}…)"
                )
        return content

    def latest_content(self) -> bytes:
        return self.get_version_content(self.latest_version)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_version(self, tag: str | None = None, version: int | None = None) -> int:
        """Turn a tag or a version number into a version number.

        Exactly one of *tag* / *version* must be given.  When several
        versions share a tag, the most recent one wins.
        """
        tag = tag or None
        if tag is not None and version is not None:
            raise AmbiguousVersionSpec()
        if tag is None and version is None:
            raise MissingVersionSpec()

        if version is not None:
            if version < 0 or version > self.latest_version:
                raise VersionOutOfRange(version, self.latest_version)
            return version

        for v in reversed(self.versions):
            if v.tag == tag:
                return v.version_no
        raise TagNotFound(tag)  # type: ignore[arg-type]

    def carries_tag(self, tag: str) -> bool:
        return any(v.tag == tag for v in self.versions)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_version(self, new_content: bytes, tag: str | None = None) -> FossilVersion | None:
        """Append a version turning the latest content into *new_content*.

        Returns ``None`` without touching the record when *new_content* is
        identical to the latest version.
        """
        if not self.is_at_latest:
            raise NotAtLatestVersion(self.cur_version, self.latest_version)

        last_content = self.latest_content()
        if last_content == new_content:
            return None

        version = FossilVersion(
            version_no=self.latest_version + 1,
            patch=compute_patch(last_content, new_content),
            tag=tag or None,
            content_hash=hash_content(new_content),
            size_bytes=len(new_content),
        )
        self.versions.append(version)
        self.cur_version = self.latest_version
        self.updated_at = version.created_at
        return version

    def set_current(self, version_no: int) -> None:
        if version_no < 0 or version_no > self.latest_version:
            raise VersionOutOfRange(version_no, self.latest_version)
        self.cur_version = version_no
        self.updated_at = _utcnow()

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def preview(self, length: int = DEFAULT_PREVIEW_LENGTH) -> str:
        """Single-line preview of the content at ``cur_version``."""
        text = self.get_version_content(self.cur_version).decode("utf-8", errors="replace")
        flat = " ".join(text.splitlines())
        if len(flat) > length:
            return flat[:length] + "..."
        return flat

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": RECORD_FORMAT,
            "key": self.key,
            "path": str(self.path),
            "base_content": base64.b64encode(self.base_content).decode("ascii"),
            "versions": [v.to_dict() for v in self.versions],
            "cur_version": self.cur_version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fossil:
        try:
            if data.get("format", RECORD_FORMAT) != RECORD_FORMAT:
                msg = f"Unsupported record format: {data.get('format')!r}"
                raise SerializationError(msg)
            fossil = cls(
                path=Path(data["path"]),
                base_content=base64.b64decode(data["base_content"], validate=True),
                versions=[FossilVersion.from_dict(v) for v in data["versions"]],
                cur_version=int(data["cur_version"]),
                created_at=datetime.fromisoformat(data["created_at"]),
                updated_at=datetime.fromisoformat(data["updated_at"]),
                key=data["key"],
            )
        except SerializationError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed fossil record: {e!r}") from e

        expected = list(range(1, len(fossil.versions) + 1))
        if [v.version_no for v in fossil.versions] != expected:
            raise SerializationError(f"{fossil.path}: version numbers are not dense")
        if not 0 <= fossil.cur_version <= fossil.latest_version:
            raise SerializationError(
                f"{fossil.path}: cur_version {fossil.cur_version} outside history"
            )
        return fossil

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str | bytes) -> Fossil:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SerializationError(f"Undecodable fossil record: {e}") from e
        if not isinstance(data, dict):
            raise SerializationError("Fossil record is not an object")
        return cls.from_dict(data)
