from __future__ import annotations

import hashlib
import shutil
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from changeset_export.config import TEMP_DIR_PREFIX, ManifestEntry, StagingResult
from changeset_export.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from changeset_export.pipeline import ProgressSink


def is_regular_file(path: Path) -> bool:
    """Check if a path is a regular file, without following symlinks.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the path is a regular file, False for symlinks, directories,
            sockets, missing paths and paths that cannot be stat-ed.
    """
    try:
        st = path.lstat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def sha256_file(path: Path) -> str:
    """Compute and return the SHA-256 hex digest of a file.

    Reads the file in 1 MiB chunks to handle large files without excessive memory use.

    Args:
        path (Path): the file path to hash

    Returns:
        str: the SHA-256 hex digest of the file contents
    """
    h = hashlib.sha256()
    with path.open("rb") as f:
        for blk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(blk)
    return h.hexdigest()


@contextmanager
def staging_root(base_name: str) -> Iterator[Path]:
    """Create a private temporary directory holding the content root `base_name`.

    The whole temporary directory is removed when the block exits, whether it
    completes or raises.

    Args:
        base_name (str): name of the content root folder

    Yields:
        Path: the (empty) content root
    """
    tmp = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
    try:
        content_root = tmp / base_name
        content_root.mkdir()
        yield content_root
    finally:
        shutil.rmtree(tmp, ignore_errors=True)
        logger.info("temporary directory removed", path=str(tmp))


def copy_changed_file(source: Path, target: Path, rel: str, *, compute_hash: bool) -> ManifestEntry:
    """Copy one regular file byte for byte and describe the copy.

    Args:
        source (Path): the file in the repository
        target (Path): the path inside the content root
        rel (str): the repository relative path recorded in the entry
        compute_hash (bool): whether to hash the copied bytes

    Raises:
        OSError: if the copy fails

    Returns:
        ManifestEntry: size and digest of the copied file
    """
    shutil.copyfile(source, target)
    digest: str | None = None
    if compute_hash:
        try:
            digest = sha256_file(target)
        except OSError as e:
            logger.warning("Could not hash %s: %s", rel, e)
    return ManifestEntry(path=rel, size=target.stat().st_size, sha256=digest)


def stage_files(
    repo: Path,
    files: Sequence[str],
    content_root: Path,
    *,
    compute_hash: bool = True,
    progress: ProgressSink | None = None,
) -> StagingResult:
    """Copy the changed files into the content root, one at a time.

    The directory structure of every path is recreated, even when the file itself
    is gone (e.g. a staged deletion). Only regular files are copied; symlinks,
    directories, sockets and missing paths are skipped. A file that cannot be
    copied is logged and skipped, the other files are still exported.

    Args:
        repo (Path): the repository root
        files (Sequence[str]): repository relative paths
        content_root (Path): the folder to copy into
        compute_hash (bool): record SHA-256 digests in the entries
        progress (ProgressSink | None): receives one message per file

    Returns:
        StagingResult: the entries of copied files, in processing order, and the skipped paths
    """
    result = StagingResult()
    total = len(files)
    for i, rel in enumerate(files, start=1):
        source = repo / rel
        target = content_root / rel
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if is_regular_file(source):
                result.entries.append(copy_changed_file(source, target, rel, compute_hash=compute_hash))
            else:
                logger.info("Not a regular file, skipped: %s", rel)
                result.skipped.append(rel)
        except OSError as e:
            logger.warning("Failed to copy file %s: %s", rel, e)
            result.skipped.append(rel)
        if progress is not None:
            progress.report(0, f"Copying files... ({i}/{total})")
    return result
