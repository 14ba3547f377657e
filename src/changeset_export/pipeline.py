"""One export run: resolve changes, stage them, write the manifest, commit the output.

Every run ends with exactly one notification: success, "nothing to export" or
error. The temporary staging directory is removed on every path.
"""

from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from changeset_export.config import ExportRun
from changeset_export.destination import commit
from changeset_export.exceptions import ChangesetExportError, WorkspaceNotFoundError
from changeset_export.file_manipulation import stage_files, staging_root
from changeset_export.logging import logger
from changeset_export.naming import default_destination, normalize_destination, render_name
from changeset_export.output_construction import build_manifest, write_manifest
from changeset_export.vcs import build_context, get_changed_files, get_toplevel

if TYPE_CHECKING:
    from datetime import datetime

    from changeset_export.settings import Settings

NOTHING_TO_EXPORT = "No changed files found"


class ProgressSink(Protocol):
    def report(self, increment: int, message: str) -> None: ...


class NotificationSink(Protocol):
    def success(self, destination: Path, project: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class NullProgress:
    """Progress sink that ignores every milestone."""

    def report(self, increment: int, message: str) -> None:
        pass


class NullNotifier:
    """Notification sink that ignores the outcome."""

    def success(self, destination: Path, project: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class ExportStatus(StrEnum):
    SUCCESS = auto()
    NOTHING_TO_EXPORT = auto()
    FAILED = auto()


class ExportOutcome(BaseModel):
    """Terminal state of a run."""

    status: ExportStatus
    message: str
    project: str = ""
    destination: Path | None = None
    exported_files: int = 0
    skipped: list[str] = Field(default_factory=list)


def resolve_repo(settings: Settings) -> Path:
    """Return the absolute folder the run was started from.

    Raises:
        WorkspaceNotFoundError: if the root is missing or not a directory
    """
    repo = Path(settings.repo).expanduser().resolve()
    if not repo.is_dir():
        raise WorkspaceNotFoundError(folder=repo)
    return repo


def commit_run(run: ExportRun, repo: Path, *, include_manifest: bool, progress: ProgressSink) -> Path:
    """Stage the run's files in a temporary content root and commit it.

    The temporary directory is gone when this returns or raises.
    """
    files = run.changes.files
    with staging_root(run.base_name) as content_root:
        run.content_root = content_root
        progress.report(20, "Creating folder structure...")
        staged = stage_files(
            repo,
            files,
            content_root,
            compute_hash=include_manifest,
            progress=progress,
        )
        run.entries = staged.entries
        run.skipped = staged.skipped
        if staged.skipped:
            logger.warning("%d of %d files were not exported", len(staged.skipped), len(files), skipped=staged.skipped)

        if include_manifest:
            progress.report(10, "Writing manifest...")
            manifest = build_manifest(run.base_name, run.context, run.changes, run.entries)
            write_manifest(content_root, manifest)

        progress.report(20, f"Creating {run.kind}...")
        destination = commit(content_root, run.destination, run.kind, run.base_name, repo=repo)
    run.content_root = None
    return destination


async def export_changes(
    settings: Settings,
    *,
    progress: ProgressSink | None = None,
    notifier: NotificationSink | None = None,
    now: datetime | None = None,
) -> ExportOutcome:
    """Export the changed files of `settings.repo` to `settings.output`.

    Args:
        settings (Settings): the run configuration
        progress (ProgressSink | None): milestone receiver, defaults to a no-op
        notifier (NotificationSink | None): outcome receiver, defaults to a no-op
        now (datetime | None): the export moment, defaults to the current local time

    Returns:
        ExportOutcome: what happened; failures are reported here, not raised
    """
    progress = progress or NullProgress()
    notifier = notifier or NullNotifier()
    project = settings.project_name

    try:
        repo = await get_toplevel(resolve_repo(settings))
        project = project or repo.name

        progress.report(5, "Getting changed files...")
        changes = await get_changed_files(repo)
        files = changes.files
        if not files:
            logger.info("nothing to export", repo=str(repo))
            notifier.warning(NOTHING_TO_EXPORT)
            return ExportOutcome(status=ExportStatus.NOTHING_TO_EXPORT, message=NOTHING_TO_EXPORT, project=project)
        progress.report(15, f"Found {len(files)} changed files")
        context = await build_context(repo, project, now)

        base_name = render_name(settings.name_template, context.substitutions())
        target = settings.output or default_destination(base_name)
        run = ExportRun(
            context=context,
            changes=changes,
            kind=settings.kind,
            base_name=base_name,
            destination=normalize_destination(Path(target).expanduser().absolute(), settings.kind),
        )
        destination = commit_run(run, repo, include_manifest=settings.include_manifest, progress=progress)
    except (ChangesetExportError, OSError) as e:
        message = f"Failed to export changed files: {e}"
        logger.error(message)  # noqa: TRY400
        notifier.error(message)
        return ExportOutcome(status=ExportStatus.FAILED, message=message, project=project)

    progress.report(100, "Export completed!")
    logger.info(
        "export completed",
        destination=str(destination),
        exported=len(run.entries),
        skipped=len(run.skipped),
    )
    notifier.success(destination, project)
    return ExportOutcome(
        status=ExportStatus.SUCCESS,
        message=f"Successfully exported {project} changes to: {destination}",
        project=project,
        destination=destination,
        exported_files=len(run.entries),
        skipped=run.skipped,
    )
