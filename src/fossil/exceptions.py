"""Custom exception hierarchy for the fossil versioning engine."""

from __future__ import annotations


class FossilError(Exception):
    """Base exception for all fossil errors."""


class RepositoryAlreadyExists(FossilError):
    """Raised when ``init`` targets a root that already exists."""

    def __init__(self, root: object) -> None:
        super().__init__(f"Fossil repository already exists at {root}")
        self.root = root


class RepositoryNotFound(FossilError):
    """Raised when no repository root could be found or opened."""

    def __init__(self, root: object) -> None:
        super().__init__(f"No fossil repository found at {root}")
        self.root = root


class NotTracked(FossilError):
    """Raised when a path has no record in the store."""

    def __init__(self, path: object) -> None:
        super().__init__(f"File is not tracked: {path}")
        self.path = path


class NotAtLatestVersion(FossilError):
    """Raised when burying a file whose working copy is not at the head version."""

    def __init__(self, cur_version: int, latest: int) -> None:
        super().__init__(
            f"Cannot bury while at version {cur_version} (latest is {latest}); surface first"
        )
        self.cur_version = cur_version
        self.latest = latest


class AmbiguousVersionSpec(FossilError):
    """Raised when both a tag and a version number are given."""

    def __init__(self) -> None:
        super().__init__("Cannot specify both tag and version")


class MissingVersionSpec(FossilError):
    """Raised when neither a tag nor a version number is given."""

    def __init__(self) -> None:
        super().__init__("Must specify either tag or version")


class VersionOutOfRange(FossilError):
    """Raised when a requested version number exceeds the recorded history."""

    def __init__(self, requested: int, max: int) -> None:  # noqa: A002
        super().__init__(f"Version {requested} does not exist (max {max})")
        self.requested = requested
        self.max = max


class TagNotFound(FossilError):
    """Raised when no version carries the requested tag."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"Tag '{tag}' not found")
        self.tag = tag


class FossilIOError(FossilError):
    """Raised on filesystem read/write failures of a working file."""


class SerializationError(FossilError):
    """Raised when a stored record cannot be decoded."""


class PatchApplyError(FossilError):
    """Raised when a patch cannot be applied or the chain does not verify."""


class StorageError(FossilError):
    """Raised on storage backend failures (DB connection, locking, etc.)."""
