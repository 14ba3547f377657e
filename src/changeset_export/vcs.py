from __future__ import annotations

import asyncio
import shlex
from datetime import datetime
from pathlib import Path

from changeset_export.config import ChangeSet, ExportContext
from changeset_export.exceptions import VcsQueryError
from changeset_export.logging import logger
from changeset_export.naming import format_timestamp

GIT = ("git", "-c", "core.quotepath=off")
TOPLEVEL_QUERY = ("rev-parse", "--show-toplevel")
# -z: NUL separated and never C-quoted
STAGED_QUERY = ("diff", "--cached", "--name-only", "-z")
MODIFIED_QUERY = ("diff", "--name-only", "-z")
UNTRACKED_QUERY = ("ls-files", "--others", "--exclude-standard", "-z")


def parse_path_list(stdout: str) -> list[str]:
    """Split NUL separated git output into paths, trimming entries and dropping blank ones.

    Args:
        stdout (str): output of a git query run with `-z`

    Returns:
        list[str]: the relative paths, in output order
    """
    paths: list[str] = []
    for entry in stdout.split("\0"):
        entry = entry.strip()  # noqa: PLW2901
        if not entry:
            continue
        paths.append(entry)
    return paths


async def run_git(repo: Path, *args: str) -> str:
    """Run a git command with `repo` as working directory.

    Args:
        repo (Path): the repository root
        *args (str): git arguments, e.g. "diff", "--name-only"

    Raises:
        VcsQueryError: if git cannot be started or exits with a non-zero status

    Returns:
        str: the decoded standard output
    """
    command = [*GIT, *args]
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(repo),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise VcsQueryError(
            command=shlex.join(command),
            returncode=127,
            stdout="",
            stderr=str(e),
        ) from e
    stdout, stderr = await proc.communicate()
    out = stdout.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise VcsQueryError(
            command=shlex.join(command),
            returncode=proc.returncode or 1,
            stdout=out,
            stderr=stderr.decode("utf-8", errors="replace"),
        )
    return out


async def get_toplevel(repo: Path) -> Path:
    """Resolve any folder inside a working tree to the working tree's top level.

    Diff queries print paths relative to the top level, so every changed path
    is joined onto this root, whatever folder the run was started from.

    Raises:
        VcsQueryError: if `repo` is not inside a git working tree
    """
    out = (await run_git(repo, *TOPLEVEL_QUERY)).strip()
    if not out:
        raise VcsQueryError(
            command=shlex.join([*GIT, *TOPLEVEL_QUERY]),
            returncode=0,
            stdout="",
            stderr="git printed no working tree top level",
        )
    return Path(out)


async def list_paths(repo: Path, query: tuple[str, ...]) -> list[str]:
    return parse_path_list(await run_git(repo, *query))


async def get_changed_files(repo: Path) -> ChangeSet:
    """Query staged, modified and untracked paths concurrently.

    Args:
        repo (Path): the repository root

    Raises:
        VcsQueryError: if any of the three queries fails (e.g. not a git repository)

    Returns:
        ChangeSet: the three path lists
    """
    staged, modified, untracked = await asyncio.gather(
        list_paths(repo, STAGED_QUERY),
        list_paths(repo, MODIFIED_QUERY),
        list_paths(repo, UNTRACKED_QUERY),
    )
    logger.info(
        "changed files listed",
        staged=len(staged),
        modified=len(modified),
        untracked=len(untracked),
    )
    return ChangeSet(staged=tuple(staged), modified=tuple(modified), untracked=tuple(untracked))


async def try_git(repo: Path, *args: str) -> str | None:
    """Run a best-effort git lookup.

    Returns:
        str | None: the trimmed output, or None when git fails or prints nothing
    """
    try:
        out = (await run_git(repo, *args)).strip()
    except VcsQueryError as e:
        logger.info("git lookup unavailable: %s", e)
        return None
    return out or None


async def get_branch(repo: Path) -> str | None:
    branch = await try_git(repo, "rev-parse", "--abbrev-ref", "HEAD")
    # detached HEAD
    if branch == "HEAD":
        return None
    return branch


async def get_short_hash(repo: Path) -> str | None:
    return await try_git(repo, "rev-parse", "--short", "HEAD")


async def get_user_name(repo: Path) -> str | None:
    return await try_git(repo, "config", "user.name")


async def build_context(repo: Path, project: str, now: datetime | None = None) -> ExportContext:
    """Resolve branch, short hash and user concurrently into an ExportContext.

    None of the lookups can fail the run; unavailable values are None.

    Args:
        repo (Path): the repository root
        project (str): the project name
        now (datetime | None): the export moment, defaults to the current local time

    Returns:
        ExportContext: the provenance of the run
    """
    now = now or datetime.now().astimezone()
    branch, commit_hash, user = await asyncio.gather(
        get_branch(repo),
        get_short_hash(repo),
        get_user_name(repo),
    )
    return ExportContext(
        project=project,
        branch=branch,
        commit_hash=commit_hash,
        user=user,
        timestamp=format_timestamp(now),
        exported_at=now,
    )
