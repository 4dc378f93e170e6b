"""Data models: the versioned record and its SQLModel storage row."""

from fossil.models.entries import FossilEntry
from fossil.models.fossils import DEFAULT_PREVIEW_LENGTH, Fossil, FossilVersion

__all__ = [
    "DEFAULT_PREVIEW_LENGTH",
    "Fossil",
    "FossilEntry",
    "FossilVersion",
]
