from __future__ import annotations

import asyncio
import shutil
import sys
from typing import TYPE_CHECKING

import pytest

from changeset_export import vcs
from changeset_export.exceptions import VcsQueryError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.mark.integration
def test_get_changed_files_on_real_repository(
    git_repo: Path,
    run_git: Callable[..., str],
    write_file: Callable[[Path, str], Path],
) -> None:
    write_file(git_repo / "src" / "app.py", "print('v2')\n")
    run_git(git_repo, "add", "src/app.py")
    write_file(git_repo / "src" / "app.py", "print('v3')\n")
    write_file(git_repo / "README.md", "# demo, edited\n")
    write_file(git_repo / "notes" / "todo.txt", "new\n")
    write_file(git_repo / "debug.log", "ignored\n")

    changes = asyncio.run(vcs.get_changed_files(git_repo))

    assert changes.staged == ("src/app.py",)
    assert set(changes.modified) == {"README.md", "src/app.py"}
    assert changes.untracked == ("notes/todo.txt",)
    assert sorted(changes.files) == ["README.md", "notes/todo.txt", "src/app.py"]


@pytest.mark.integration
def test_get_changed_files_reports_unicode_paths_verbatim(
    git_repo: Path,
    write_file: Callable[[Path, str], Path],
) -> None:
    write_file(git_repo / "données" / "café.txt", "x\n")

    changes = asyncio.run(vcs.get_changed_files(git_repo))

    assert changes.untracked == ("données/café.txt",)


@pytest.mark.integration
def test_get_changed_files_outside_repository_fails(tmp_path: Path) -> None:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    outside = tmp_path / "plain"
    outside.mkdir()
    (outside / ".git").write_text("gitdir: /nonexistent\n", encoding="utf-8")

    with pytest.raises(VcsQueryError):
        asyncio.run(vcs.get_changed_files(outside))


@pytest.mark.integration
def test_build_context_on_real_repository(git_repo: Path, run_git: Callable[..., str]) -> None:
    ctx = asyncio.run(vcs.build_context(git_repo, "demo"))

    assert ctx.branch == "main"
    assert ctx.user == "Ada Lovelace"
    assert ctx.commit_hash == run_git(git_repo, "rev-parse", "--short", "HEAD").strip()


@pytest.mark.integration
def test_build_context_detached_head(git_repo: Path, run_git: Callable[..., str]) -> None:
    run_git(git_repo, "checkout", "-q", "--detach")

    ctx = asyncio.run(vcs.build_context(git_repo, "demo"))

    assert ctx.branch is None
    assert ctx.commit_hash is not None


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="file names with quotes and tabs are not valid on Windows")
def test_get_changed_files_reports_names_git_would_quote(
    git_repo: Path,
    run_git: Callable[..., str],
    write_file: Callable[[Path, str], Path],
) -> None:
    write_file(git_repo / 'we"ird.txt', "quoted\n")
    run_git(git_repo, "add", 'we"ird.txt')
    write_file(git_repo / "tab\there.txt", "tab\n")

    changes = asyncio.run(vcs.get_changed_files(git_repo))

    assert changes.staged == ('we"ird.txt',)
    assert changes.untracked == ("tab\there.txt",)


@pytest.mark.integration
def test_get_toplevel_from_subdirectory(git_repo: Path) -> None:
    top = asyncio.run(vcs.get_toplevel(git_repo / "src"))

    assert top.resolve() == git_repo.resolve()
