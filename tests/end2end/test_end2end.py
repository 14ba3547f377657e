from __future__ import annotations

import hashlib
import json
import tarfile
import zipfile
from typing import TYPE_CHECKING

import pytest

from changeset_export import cli
from changeset_export.config import MANIFEST_FILENAME

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("changeset_export.settings.ENV_FILE", "")


@pytest.fixture
def changed_repo(
    git_repo: Path,
    run_git: Callable[..., str],
    write_file: Callable[[Path, str], Path],
) -> Path:
    write_file(git_repo / "src" / "app.py", "print('v2')\n")
    run_git(git_repo, "add", "src/app.py")
    write_file(git_repo / "README.md", "# demo, edited\n")
    write_file(git_repo / "docs" / "guide.md", "guide\n")
    return git_repo


def files_under(root: Path) -> dict[str, bytes]:
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in root.rglob("*") if p.is_file()}


def test_end_to_end_directory_export(changed_repo: Path, tmp_path: Path) -> None:
    output = tmp_path / "export"

    exit_code = cli.main(["--repo", str(changed_repo), "--output", str(output), "--no-reveal"])

    assert exit_code == 0
    exported = files_under(output)
    assert set(exported) == {"README.md", "docs/guide.md", "src/app.py"}
    for rel, data in exported.items():
        assert data == (changed_repo / rel).read_bytes()


def test_end_to_end_zip_with_manifest(changed_repo: Path, tmp_path: Path) -> None:
    output = tmp_path / "out" / "review"

    exit_code = cli.main(
        [
            "--repo",
            str(changed_repo),
            "--output",
            str(output),
            "--kind",
            "zip",
            "--manifest",
            "--name-template",
            "{project}-{branch}",
            "--no-reveal",
        ],
    )

    assert exit_code == 0
    archive = tmp_path / "out" / "review.zip"
    with zipfile.ZipFile(archive) as zf:
        zf.extractall(tmp_path / "unzipped")
    top_level = list((tmp_path / "unzipped").iterdir())
    assert [p.name for p in top_level] == ["demo-main"]

    root = top_level[0]
    manifest = json.loads((root / MANIFEST_FILENAME).read_text(encoding="utf-8"))
    assert manifest["name"] == "demo-main"
    assert manifest["projectName"] == "demo"
    assert manifest["branch"] == "main"
    assert manifest["user"] == "Ada Lovelace"
    assert manifest["totalFiles"] == 3
    assert manifest["stagedFiles"] == 1
    assert manifest["modifiedFiles"] == 1
    assert manifest["untrackedFiles"] == 1
    for entry in manifest["files"]:
        data = (root / entry["path"]).read_bytes()
        assert entry["size"] == len(data)
        assert entry["sha256"] == hashlib.sha256(data).hexdigest()


def test_end_to_end_tar_gz(changed_repo: Path, tmp_path: Path) -> None:
    output = tmp_path / "review.TAR.GZ"

    exit_code = cli.main(
        [
            "--repo",
            str(changed_repo),
            "--output",
            str(output),
            "--kind",
            "tar.gz",
            "--project-name",
            "api",
            "--name-template",
            "{project}",
            "--no-reveal",
        ],
    )

    assert exit_code == 0
    with tarfile.open(output, "r:gz") as tar:
        names = tar.getnames()
    assert {n.split("/", 1)[0] for n in names} == {"api"}
    assert "api/docs/guide.md" in names


def test_end_to_end_nothing_to_export(git_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output = tmp_path / "export"

    exit_code = cli.main(["--repo", str(git_repo), "--output", str(output), "--no-reveal"])

    assert exit_code == 0
    assert not output.exists()
    assert "No changed files found" in capsys.readouterr().err


def test_end_to_end_not_a_repository(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    (plain / ".git").write_text("gitdir: /nonexistent\n", encoding="utf-8")
    output = tmp_path / "export"

    exit_code = cli.main(["--repo", str(plain), "--output", str(output), "--no-reveal"])

    assert exit_code == 1
    assert not output.exists()
    assert "Failed to export changed files" in capsys.readouterr().err


def test_end_to_end_config_file(changed_repo: Path, tmp_path: Path) -> None:
    (tmp_path / "conf.yaml").write_text(
        f"kind: zip\nreveal: false\noutput: {tmp_path / 'from-config'}\n",
        encoding="utf-8",
    )

    exit_code = cli.main(["--repo", str(changed_repo), "--config", str(tmp_path / "conf.yaml")])

    assert exit_code == 0
    assert (tmp_path / "from-config.zip").is_file()
