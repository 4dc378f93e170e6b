"""Patch codec — forward deltas between two byte buffers.

Two encodings share one envelope, told apart by a single header byte:

``T``
    A standard unified diff over UTF-8 text, parsed back with
    ``unidiff.PatchSet``.  Used whenever both buffers are valid UTF-8 and the
    diff round-trips exactly.
``B``
    A zstd frame of the new buffer compressed with the old buffer as a
    raw-content dictionary, so unchanged runs cost only back-references.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass

import zstandard as zstd
from unidiff import PatchSet
from unidiff.constants import (
    LINE_TYPE_ADDED,
    LINE_TYPE_CONTEXT,
    LINE_TYPE_NO_NEWLINE,
    LINE_TYPE_REMOVED,
)
from unidiff.errors import UnidiffParseError

from .exceptions import PatchApplyError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEXT_PATCH = b"T"
BINARY_PATCH = b"B"

COMPRESSION_LEVEL: int = 9

MIN_DICT_SIZE: int = 8
"""zstd ignores raw-content dictionaries shorter than this."""

_NO_NEWLINE_MARKER = "\\ No newline at end of file\n"


@dataclass
class PatchStats:
    """Size summary of one patch."""

    kind: str  # "text" | "binary"
    added: int
    removed: int


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_patch(old: bytes, new: bytes) -> bytes:
    """Compute a patch that turns *old* into *new*."""
    text_patch = _try_text_patch(old, new)
    if text_patch is not None:
        return text_patch
    return BINARY_PATCH + _compute_binary(old, new)


def apply_patch(base: bytes, patch: bytes) -> bytes:
    """Apply *patch* to *base* and return the patched buffer.

    Raises ``PatchApplyError`` if the patch is malformed or was not computed
    against *base*.
    """
    if not patch:
        raise PatchApplyError("Empty patch")
    header, body = patch[:1], patch[1:]
    if header == TEXT_PATCH:
        try:
            base_text = base.decode("utf-8")
            diff_text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PatchApplyError(f"Text patch against non-UTF-8 content: {e}") from e
        return apply_diff(base_text, diff_text).encode("utf-8")
    if header == BINARY_PATCH:
        return _apply_binary(base, body)
    raise PatchApplyError(f"Unknown patch format: {header!r}")


def patch_stats(patch: bytes) -> PatchStats:
    """Count added/removed lines (text) or resulting content bytes (binary)."""
    header, body = patch[:1], patch[1:]
    if header == TEXT_PATCH:
        try:
            patch_set = PatchSet(body.decode("utf-8"))
        except (UnicodeDecodeError, UnidiffParseError) as e:
            raise PatchApplyError(f"Unreadable text patch: {e}") from e
        return PatchStats(kind="text", added=patch_set.added, removed=patch_set.removed)
    if header == BINARY_PATCH:
        return PatchStats(kind="binary", added=_binary_content_size(body), removed=0)
    raise PatchApplyError(f"Unknown patch format: {header!r}")


def render_patch(patch: bytes) -> str:
    """Human-readable form: the unified diff, or a summary for binary deltas."""
    if patch[:1] == TEXT_PATCH:
        return patch[1:].decode("utf-8", errors="replace")
    stats = patch_stats(patch)
    return f"Binary delta ({len(patch) - 1} bytes, {stats.added} bytes of content)\n"


# ---------------------------------------------------------------------------
# Text diffs
# ---------------------------------------------------------------------------


def compute_diff(old: str, new: str) -> str:
    """Compute a unified diff from *old* to *new*.

    Returns a standard unified diff string (empty string if no changes).
    The output is parseable by ``unidiff.PatchSet`` and compatible with
    standard tools like ``patch``.
    """
    old_lines = old.splitlines(keepends=True)
    new_lines = new.splitlines(keepends=True)
    raw = list(difflib.unified_diff(old_lines, new_lines, fromfile="a", tofile="b"))
    if not raw:
        return ""
    # difflib doesn't emit "\ No newline at end of file" markers, but
    # unidiff (and GNU patch) require them.
    out: list[str] = []
    for line in raw:
        out.append(line)
        if line and line[0] in ("+", "-", " ") and not line.endswith("\n"):
            out[-1] = line + "\n"
            out.append(_NO_NEWLINE_MARKER)
    return "".join(out)


def apply_diff(base: str, diff: str) -> str:
    """Apply a unified diff to *base* and return the resulting text.

    Every hunk's source lines must match *base* at the hunk position;
    a mismatch raises ``PatchApplyError``.
    """
    if not diff:
        return base

    try:
        patch = PatchSet(diff)
    except UnidiffParseError as e:
        raise PatchApplyError(f"Malformed unified diff: {e}") from e
    if not patch:
        return base

    patched_file = patch[0]
    result_lines = base.splitlines(keepends=True)

    for hunk in reversed(patched_file):
        old_lines: list[str] = []
        new_lines: list[str] = []
        prev_line_type: str | None = None

        for line in hunk:
            if line.line_type == LINE_TYPE_NO_NEWLINE:
                # The marker applies to the preceding line on whichever
                # side(s) it belongs to.
                if prev_line_type in (LINE_TYPE_CONTEXT, LINE_TYPE_ADDED) and new_lines:
                    new_lines[-1] = new_lines[-1].removesuffix("\n")
                if prev_line_type in (LINE_TYPE_CONTEXT, LINE_TYPE_REMOVED) and old_lines:
                    old_lines[-1] = old_lines[-1].removesuffix("\n")
                prev_line_type = line.line_type
                continue

            if line.line_type in (LINE_TYPE_CONTEXT, LINE_TYPE_ADDED):
                new_lines.append(line.value)
            if line.line_type in (LINE_TYPE_CONTEXT, LINE_TYPE_REMOVED):
                old_lines.append(line.value)
            prev_line_type = line.line_type

        start_idx = hunk.source_start - 1
        end_idx = start_idx + hunk.source_length

        # Zero-length source: insert after line source_start (0 = new file)
        if hunk.source_length == 0:
            start_idx = hunk.source_start
            end_idx = start_idx

        if start_idx < 0 or result_lines[start_idx:end_idx] != old_lines:
            raise PatchApplyError(
                f"Hunk at line {hunk.source_start} does not match the base content"
            )
        result_lines[start_idx:end_idx] = new_lines

    return "".join(result_lines)


def _try_text_patch(old: bytes, new: bytes) -> bytes | None:
    try:
        old_text = old.decode("utf-8")
        new_text = new.decode("utf-8")
    except UnicodeDecodeError:
        return None

    diff = compute_diff(old_text, new_text)
    try:
        round_trip = apply_diff(old_text, diff)
    except PatchApplyError:
        return None
    # Line separators other than \n do not survive the unified diff format.
    if round_trip != new_text:
        return None
    return TEXT_PATCH + diff.encode("utf-8")


# ---------------------------------------------------------------------------
# Binary deltas
# ---------------------------------------------------------------------------


def _compressor(base: bytes) -> zstd.ZstdCompressor:
    if len(base) < MIN_DICT_SIZE:
        return zstd.ZstdCompressor(level=COMPRESSION_LEVEL)
    dict_data = zstd.ZstdCompressionDict(base, dict_type=zstd.DICT_TYPE_RAWCONTENT)
    return zstd.ZstdCompressor(level=COMPRESSION_LEVEL, dict_data=dict_data)


def _decompressor(base: bytes) -> zstd.ZstdDecompressor:
    if len(base) < MIN_DICT_SIZE:
        return zstd.ZstdDecompressor()
    dict_data = zstd.ZstdCompressionDict(base, dict_type=zstd.DICT_TYPE_RAWCONTENT)
    return zstd.ZstdDecompressor(dict_data=dict_data)


def _compute_binary(old: bytes, new: bytes) -> bytes:
    """Compress *new* with *old* as a raw-content dictionary."""
    if not new:
        return b""
    return _compressor(old).compress(new)


def _binary_content_size(body: bytes) -> int:
    if not body:
        return 0
    try:
        size = zstd.frame_content_size(body)
    except zstd.ZstdError as e:
        raise PatchApplyError(f"Unreadable binary delta: {e}") from e
    if size < 0:
        raise PatchApplyError("Binary delta does not record its content size")
    return size


def _apply_binary(base: bytes, body: bytes) -> bytes:
    expected_len = _binary_content_size(body)
    if expected_len == 0:
        return b""
    try:
        out = _decompressor(base).decompress(body)
    except zstd.ZstdError as e:
        raise PatchApplyError(f"Binary delta does not apply: {e}") from e
    if len(out) != expected_len:
        raise PatchApplyError(f"Delta produced {len(out)} bytes, expected {expected_len}")
    return out
