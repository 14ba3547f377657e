from dataclasses import dataclass
from pathlib import Path


@dataclass(eq=False)
class ChangesetExportError(Exception):
    """Base exception for errors in the changeset_export package."""

    def __str__(self) -> str:
        return getattr(self, "message", type(self).__name__)


@dataclass(eq=False)
class WorkspaceNotFoundError(ChangesetExportError):
    """Raised when the repository root does not exist or is not a directory."""

    folder: Path
    message: str = "The repository root does not exist or is not a directory."


@dataclass(eq=False)
class VcsQueryError(ChangesetExportError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip() or "no output"
        return f"`{self.command}` failed with exit code {self.returncode}: {detail}"


@dataclass(eq=False)
class InvalidFolderNameError(ChangesetExportError):
    """Raised when a custom folder name is empty or contains illegal characters."""

    value: str
    message: str = 'Invalid folder name (empty or contains one of < > : " / \\ | ? *).'


@dataclass(eq=False)
class DestinationError(ChangesetExportError):
    """Raised when a destination would overwrite the repository itself."""

    destination: Path
    message: str = "Refusing to overwrite the repository with the export."


@dataclass(eq=False)
class CommitError(ChangesetExportError):
    """Raised when writing the destination folder or archive fails."""

    destination: Path
    message: str

    def __str__(self) -> str:
        return f"Could not write {self.destination}: {self.message}"
