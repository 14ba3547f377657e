"""Commit a staged content root to a folder, a zip archive or a gzipped tarball."""

from __future__ import annotations

import shutil
import tarfile
import zipfile
from pathlib import Path

from changeset_export.config import OutputKind
from changeset_export.exceptions import CommitError, DestinationError
from changeset_export.logging import logger

COMPRESS_LEVEL = 9


def iter_content_files(content_root: Path) -> list[Path]:
    """List the files under the content root in a stable order."""
    return sorted((p for p in content_root.rglob("*") if p.is_file()), key=lambda p: p.as_posix())


def check_destination(destination: Path, repo: Path | None) -> None:
    """Refuse destinations whose removal would delete the repository.

    Raises:
        DestinationError: if `destination` is `repo` or one of its parents
    """
    if repo is None:
        return
    dest = destination.resolve()
    root = repo.resolve()
    if dest == root or dest in root.parents:
        raise DestinationError(destination=destination)


def commit_directory(content_root: Path, destination: Path) -> Path:
    """Replace `destination` with a copy of the content root's entries.

    An existing destination is removed first; nothing is merged. The content
    root folder itself is not recreated, its entries land directly in
    `destination`.

    Returns:
        Path: the destination folder
    """
    if destination.exists() or destination.is_symlink():
        if destination.is_dir() and not destination.is_symlink():
            shutil.rmtree(destination)
        else:
            destination.unlink()
    destination.mkdir(parents=True)
    shutil.copytree(content_root, destination, dirs_exist_ok=True)
    return destination


def commit_zip(content_root: Path, destination: Path, base_name: str) -> Path:
    """Write the content root to a zip archive under one `base_name/` folder."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(
        destination,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=COMPRESS_LEVEL,
    ) as zf:
        for path in iter_content_files(content_root):
            rel = path.relative_to(content_root).as_posix()
            zf.write(path, f"{base_name}/{rel}")
    return destination


def commit_tar_gz(content_root: Path, destination: Path, base_name: str) -> Path:
    """Write the content root to a gzip compressed tarball under one `base_name/` folder."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(destination, "w:gz", compresslevel=COMPRESS_LEVEL) as tar:
        tar.add(content_root, arcname=base_name)
    return destination


def discard_partial_archive(destination: Path) -> None:
    """Remove an archive left half written by a failed commit."""
    if not destination.is_file():
        return
    try:
        destination.unlink()
    except OSError as e:
        logger.warning("Could not remove partial archive %s: %s", destination, e)


def commit(
    content_root: Path,
    destination: Path,
    kind: OutputKind,
    base_name: str,
    *,
    repo: Path | None = None,
) -> Path:
    """Commit the content root to its final form.

    Args:
        content_root (Path): the staged files
        destination (Path): the final path, archive extension already applied
        kind (OutputKind): directory, zip or tar.gz
        base_name (str): top-level folder name inside archives
        repo (Path | None): the exported repository, protected from directory overwrite

    Raises:
        DestinationError: if a directory export would delete the repository
        CommitError: if writing the output fails

    Returns:
        Path: the written destination
    """
    if kind is OutputKind.DIRECTORY:
        check_destination(destination, repo)
    logger.info("writing output", kind=str(kind), destination=str(destination))
    try:
        if kind is OutputKind.ZIP:
            return commit_zip(content_root, destination, base_name)
        if kind is OutputKind.TAR_GZ:
            return commit_tar_gz(content_root, destination, base_name)
        return commit_directory(content_root, destination)
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        if kind.is_archive:
            discard_partial_archive(destination)
        raise CommitError(destination=destination, message=str(e)) from e
