"""
changeset-export — Export the changed files of a git working tree.

Overview
--------
Collects every file that is staged, modified but not staged, or untracked (and
not ignored), then writes them, with their directory structure, to one of:

1) **a folder (`--kind directory`)** — the destination is replaced by the files;
2) **a zip archive (`--kind zip`)** — files nested under one top-level folder;
3) **a gzipped tarball (`--kind tar.gz`)** — same layout as the zip.

The export name comes from a template (`--name-template`), e.g. the default
`{project}-{branch}-{timestamp}` gives `demo-main-20240101-120000`. With
`--manifest`, an `export-info.json` file records branch, commit, author and the
size and SHA-256 of every exported file.

Settings are read from `.changeset-export.yaml` (or `--config`), then
`CHANGESET_EXPORT_*` environment variables (a `.env` file is honored), then the
command line.

Usage
-----
Run `changeset-export --help` for full options. Common examples:
    - Folder on the Desktop, named after the project, branch and time:
        changeset-export

    - Zip archive with a manifest:
        changeset-export --kind zip --manifest --output ~/exports/review

    - Custom project name and template, logs to a file:
        changeset-export --project-name api --name-template "{project}-{hash}" --log-file export.log
"""

from __future__ import annotations

import argparse
import asyncio
import os
import subprocess  # noqa: S404
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from changeset_export import __version__
from changeset_export.config import OutputKind
from changeset_export.logging import logger, setup_logging
from changeset_export.pipeline import ExportStatus, export_changes
from changeset_export.settings import resolve_settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from changeset_export.settings import Settings


class ConsoleProgress:
    """Print progress milestones to stderr."""

    def __init__(self) -> None:
        self.percent = 0

    def report(self, increment: int, message: str) -> None:
        self.percent = min(100, self.percent + increment)
        print(f"[{self.percent:3d}%] {message}", file=sys.stderr)


class ConsoleNotifier:
    """Print the outcome of a run."""

    def success(self, destination: Path, project: str) -> None:
        print(f"Successfully exported {project} changes to: {destination}")

    def warning(self, message: str) -> None:
        print(f"Warning: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"Error: {message}", file=sys.stderr)


def reveal_in_file_manager(path: Path) -> None:
    """Open the exported folder, or the folder holding an archive, in the file manager."""
    folder = path if path.is_dir() else path.parent
    try:
        if sys.platform == "win32":
            os.startfile(folder)  # type: ignore[attr-defined]  # noqa: S606
        elif sys.platform == "darwin":
            subprocess.Popen(["open", str(folder)])  # noqa: S603, S607
        else:
            subprocess.Popen(["xdg-open", str(folder)])  # noqa: S603, S607
    except OSError as e:
        logger.warning("Could not open %s: %s", folder, e)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="changeset-export",
        description="Export staged, modified and untracked files as a folder, zip or tar.gz.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--repo", type=str, default=None, help="Repository root (default: current directory).")
    p.add_argument(
        "--output",
        type=str,
        default=None,
        help="Destination folder or archive path (default: ~/Desktop/<name>).",
    )
    p.add_argument(
        "--kind",
        type=str,
        choices=[k.value for k in OutputKind],
        default=None,
        help="Output kind (default: directory).",
    )
    p.add_argument(
        "--name-template",
        type=str,
        default=None,
        help="Name template using {project}, {branch}, {hash}, {user}, {timestamp}.",
    )
    p.add_argument(
        "--project-name",
        type=str,
        default=None,
        help="Custom project name (default: repository folder name).",
    )
    p.add_argument(
        "--manifest",
        dest="include_manifest",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write export-info.json with provenance and checksums.",
    )
    p.add_argument(
        "--reveal",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Open the result in the file manager (default: on).",
    )
    p.add_argument("--config", type=str, default=None, help="YAML settings file.")
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = build_parser()
    args = vars(p.parse_args(argv))
    config = args.pop("config")
    try:
        return resolve_settings(args, config_file=Path(config) if config else None)
    except (ValidationError, ValueError, OSError) as e:
        p.error(str(e))


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    outcome = asyncio.run(
        export_changes(settings, progress=ConsoleProgress(), notifier=ConsoleNotifier()),
    )
    if outcome.skipped:
        print(f"Skipped {len(outcome.skipped)} file(s):", file=sys.stderr)
        for rel in outcome.skipped:
            print(f"  {rel}", file=sys.stderr)

    if outcome.status is ExportStatus.FAILED:
        return 1
    if outcome.status is ExportStatus.SUCCESS and settings.reveal and outcome.destination is not None:
        reveal_in_file_manager(outcome.destination)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
