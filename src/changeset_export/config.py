from __future__ import annotations

from datetime import datetime  # noqa: TC003
from enum import StrEnum
from pathlib import Path  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_FILENAME = "export-info.json"
DEFAULT_NAME_TEMPLATE = "{project}-{branch}-{timestamp}"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
TEMP_DIR_PREFIX = "changeset-export-"
TEMPLATE_TOKENS = ("project", "branch", "hash", "user", "timestamp")


class OutputKind(StrEnum):
    """Representation the exported content root is committed to."""

    DIRECTORY = "directory"
    ZIP = "zip"
    TAR_GZ = "tar.gz"

    @property
    def extension(self) -> str:
        """File extension appended to archive destinations ("" for directories)."""
        return _EXTENSIONS[self]

    @property
    def is_archive(self) -> bool:
        return self is not OutputKind.DIRECTORY


_EXTENSIONS: dict[OutputKind, str] = {
    OutputKind.DIRECTORY: "",
    OutputKind.ZIP: ".zip",
    OutputKind.TAR_GZ: ".tar.gz",
}


def dedupe_paths(*groups: tuple[str, ...] | list[str]) -> list[str]:
    """Merge path sequences into one list without duplicates.

    The first occurrence wins, so the result follows the order of `groups` and
    of the paths inside each group.

    Args:
        *groups: path sequences, e.g. staged, modified and untracked paths

    Returns:
        list[str]: the union of all groups, each path once
    """
    return list(dict.fromkeys(p for group in groups for p in group if p))


class ChangeSet(BaseModel):
    """Paths reported by the three change queries of one repository.

    Attributes:
        staged: paths recorded in the index for the next commit.
        modified: tracked paths with unstaged working-tree changes.
        untracked: paths neither tracked nor ignored.
    """

    model_config = ConfigDict(frozen=True)

    staged: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    untracked: tuple[str, ...] = ()

    @property
    def files(self) -> list[str]:
        """Deduplicated union of the three queries."""
        return dedupe_paths(self.staged, self.modified, self.untracked)

    @property
    def is_empty(self) -> bool:
        return not self.files


class ExportContext(BaseModel):
    """Values resolved once per run for naming and provenance."""

    model_config = ConfigDict(frozen=True)

    project: str
    branch: str | None = None
    commit_hash: str | None = None
    user: str | None = None
    timestamp: str = Field(..., description="Local time formatted as YYYYMMDD-HHMMSS")
    exported_at: datetime

    def substitutions(self) -> dict[str, str]:
        """Return the name template mapping, with "" for unavailable values."""
        return {
            "project": self.project,
            "branch": self.branch or "",
            "hash": self.commit_hash or "",
            "user": self.user or "",
            "timestamp": self.timestamp,
        }


class ManifestEntry(BaseModel):
    """One copied regular file."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="File path relative to repository root")
    size: int = Field(..., ge=0, description="File size in bytes")
    sha256: str | None = Field(default=None, description="SHA-256 hex digest, None if not computed")


class StagingResult(BaseModel):
    """What the staging step copied and what it had to leave out."""

    entries: list[ManifestEntry] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class ExportManifest(BaseModel):
    """Provenance and integrity record written as `export-info.json`.

    Serialize with `by_alias=True` to get the camelCase keys of the file.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    project_name: str = Field(..., alias="projectName")
    branch: str | None
    commit_hash: str | None = Field(..., alias="commitHash")
    user: str | None
    export_date: datetime = Field(..., alias="exportDate")
    total_files: int = Field(..., ge=0, alias="totalFiles")
    staged_files: int = Field(..., ge=0, alias="stagedFiles")
    modified_files: int = Field(..., ge=0, alias="modifiedFiles")
    untracked_files: int = Field(..., ge=0, alias="untrackedFiles")
    files: list[ManifestEntry] = Field(default_factory=list)


class ExportRun(BaseModel):
    """Transient state of one export invocation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    context: ExportContext
    changes: ChangeSet
    kind: OutputKind
    base_name: str
    destination: Path
    content_root: Path | None = None
    entries: list[ManifestEntry] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
