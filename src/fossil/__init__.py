"""Fossil: time travel for individual files.

Track a file, bury snapshots of it as tagged versions, dig any version back
up, and surface to the latest again.  History is a chain of patches over the
content captured at track time, stored in a local SQLite database.
"""

__version__ = "0.1.0"

from fossil._repo import FossilRepo
from fossil.config import FossilConfig
from fossil.exceptions import (
    AmbiguousVersionSpec,
    FossilError,
    FossilIOError,
    MissingVersionSpec,
    NotAtLatestVersion,
    NotTracked,
    PatchApplyError,
    RepositoryAlreadyExists,
    RepositoryNotFound,
    SerializationError,
    StorageError,
    TagNotFound,
    VersionOutOfRange,
)
from fossil.models import Fossil, FossilVersion
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

__all__ = [
    "AmbiguousVersionSpec",
    "BatchResult",
    "DiffResult",
    "FileOutcome",
    "Fossil",
    "FossilConfig",
    "FossilError",
    "FossilIOError",
    "FossilRepo",
    "FossilStore",
    "FossilSummary",
    "FossilVersion",
    "HistoryResult",
    "ListResult",
    "MissingVersionSpec",
    "NotAtLatestVersion",
    "NotTracked",
    "PatchApplyError",
    "RepositoryAlreadyExists",
    "RepositoryNotFound",
    "ResetResult",
    "SerializationError",
    "StorageError",
    "TagNotFound",
    "TrackResult",
    "VersionInfo",
    "VersionOutOfRange",
    "__version__",
]
