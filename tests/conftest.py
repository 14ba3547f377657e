from __future__ import annotations

import shutil
import subprocess  # noqa: S404
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from changeset_export.config import ExportContext

if TYPE_CHECKING:
    from collections.abc import Callable


def git(repo: Path, *args: str) -> str:
    """Run git in `repo` and return its stdout.

    Returns:
        str: standard output of the command.
    """
    out = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        text=True,
        capture_output=True,
        check=True,
    )
    return out.stdout


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A repository named `demo` on branch `main` with one commit.

    Returns:
        Path: repository root containing committed `README.md` and `src/app.py`.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "demo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.name", "Ada Lovelace")
    git(repo, "config", "user.email", "ada@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    write(repo / "README.md", "# demo\n")
    write(repo / "src" / "app.py", "print('v1')\n")
    write(repo / ".gitignore", "*.log\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture
def context() -> ExportContext:
    moment = datetime(2024, 1, 1, 12, 0, 0).astimezone()
    return ExportContext(
        project="demo",
        branch="main",
        commit_hash="abc1234",
        user="Ada Lovelace",
        timestamp="20240101-120000",
        exported_at=moment,
    )


@pytest.fixture
def run_git() -> Callable[..., str]:
    return git


@pytest.fixture
def write_file() -> Callable[[Path, str], Path]:
    return write
