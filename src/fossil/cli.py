"""Fossil command-line interface.

    fossil init
    fossil track notes.txt 'docs/*.md'
    fossil bury -t draft
    fossil dig -v 0 notes.txt
    fossil surface
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from fossil import __version__
from fossil._repo import FossilRepo
from fossil.config import FossilConfig
from fossil.exceptions import FossilError
from fossil.paths import expand

if TYPE_CHECKING:
    from fossil.types import BatchResult


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fossil",
        description="Fossil - bury and dig up versions of individual files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Enable debug output")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only report problems")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Initialize a new fossil repository")

    track = subparsers.add_parser("track", help="Track files for versioning")
    track.add_argument("files", nargs="+", help="Files or patterns to track")

    untrack = subparsers.add_parser("untrack", help="Stop tracking files, keeping their latest content")
    untrack.add_argument("files", nargs="+", help="Files or patterns to untrack")

    bury = subparsers.add_parser("bury", help="Bury the current content of tracked files as a new version")
    bury.add_argument("-t", "--tag", help="Optional tag for the new version")
    bury.add_argument("files", nargs="*", help="Files to bury (default: all tracked files)")

    dig = subparsers.add_parser("dig", help="Restore files to a version selected by tag or number")
    dig.add_argument("-t", "--tag", help="Dig to the most recent version with this tag")
    dig.add_argument("-v", "--version", type=int, dest="version_no", help="Dig to this version number")
    dig.add_argument("files", nargs="*", help="Files to dig (default: all tracked files)")

    subparsers.add_parser("surface", help="Restore all tracked files to their latest version")
    subparsers.add_parser("list", help="List tracked files")

    log = subparsers.add_parser("log", help="Show the version history of a tracked file")
    log.add_argument("file")

    diff = subparsers.add_parser("diff", help="Show the patch that produced a version")
    diff.add_argument("file")
    diff.add_argument("-t", "--tag")
    diff.add_argument("-v", "--version", type=int, dest="version_no")

    reset = subparsers.add_parser("reset", help="Surface all files and delete the repository")
    reset.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    reset.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Delete the repository even if some files could not be surfaced",
    )

    return parser


def main(args: list[str] | None = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    level = logging.DEBUG if parsed.verbose else logging.WARNING if parsed.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    if not parsed.command:
        parser.print_help()
        return 2

    config = FossilConfig.from_env()
    try:
        if parsed.command == "init":
            return cmd_init(config)
        with FossilRepo.open(config) as repo:
            return _dispatch(parsed, repo)
    except FossilError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace, repo: FossilRepo) -> int:
    if args.command == "track":
        return cmd_track(args, repo)
    if args.command == "untrack":
        return _print_batch(repo.untrack(expand(args.files, must_exist=False)))
    if args.command == "bury":
        paths = expand(args.files, must_exist=False) if args.files else None
        return _print_batch(repo.bury(paths, tag=args.tag))
    if args.command == "dig":
        paths = expand(args.files, must_exist=False) if args.files else None
        return _print_batch(repo.dig(paths, tag=args.tag, version=args.version_no))
    if args.command == "surface":
        return _print_batch(repo.surface())
    if args.command == "list":
        return cmd_list(repo)
    if args.command == "log":
        return cmd_log(args, repo)
    if args.command == "diff":
        return cmd_diff(args, repo)
    if args.command == "reset":
        return cmd_reset(args, repo)
    return 2


def cmd_init(config: FossilConfig) -> int:
    repo = FossilRepo.init(config)
    repo.close()
    print(f"Initialized fossil repository in {config.root}")
    return 0


def cmd_track(args: argparse.Namespace, repo: FossilRepo) -> int:
    paths = expand(args.files)
    if not paths:
        print("No matching files.", file=sys.stderr)
        return 1
    result = repo.track(paths)
    for path in result.tracked:
        print(f"Tracked: {path}")
    for path in result.skipped:
        print(f"Skipped: {path} (already tracked or not a file)")
    print(result.message)
    return 0


def cmd_list(repo: FossilRepo) -> int:
    result = repo.list()
    if not result.entries:
        print("No fossils found. Use 'fossil track <files>' to start tracking files.")
        return 0

    print(f"{'Version':<10} {'Tags':<5} {'Path':<40} Preview")
    print("=" * 80)
    for entry in result.entries:
        version = f"{entry.cur_version}/{entry.latest_version}"
        print(f"{version:<10} {entry.tagged:<5} {str(entry.path):<40} {entry.preview}")
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    return 0 if result.success else 1


def cmd_log(args: argparse.Namespace, repo: FossilRepo) -> int:
    result = repo.history(args.file)
    if not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1

    print(f"{result.path}: {result.message}")
    for info in result.versions:
        marker = "*" if info.is_current else " "
        tag = f" [{info.tag}]" if info.tag else ""
        stamp = info.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{marker} {info.version_no:>4}  {stamp}  +{info.added} -{info.removed}  {info.size_bytes}B{tag}")
    return 0


def cmd_diff(args: argparse.Namespace, repo: FossilRepo) -> int:
    result = repo.diff(args.file, tag=args.tag, version=args.version_no)
    if not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1
    if not result.diff:
        print(result.message)
        return 0
    sys.stdout.write(result.diff)
    return 0


def cmd_reset(args: argparse.Namespace, repo: FossilRepo) -> int:
    if not args.yes:
        print(f"This will surface all tracked files and delete {repo.config.root}.")
        confirm = input("Proceed? [y/N] ").strip().lower()
        if confirm != "y":
            print("Canceled.")
            return 0

    result = repo.reset(force=args.force)
    if result.surfaced is not None:
        _print_failures(result.surfaced)
    if not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
        return 1
    print(result.message)
    return 0


def _print_failures(result: BatchResult) -> None:
    for outcome in result.failed:
        print(f"Failed: {outcome.path}: {outcome.message}", file=sys.stderr)


def _print_batch(result: BatchResult) -> int:
    for outcome in result.succeeded:
        print(f"{outcome.path}: {outcome.message}")
    _print_failures(result)
    if result.outcomes:
        print(result.message)
    elif not result.success:
        print(f"Error: {result.message}", file=sys.stderr)
    else:
        print("No tracked files.")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
