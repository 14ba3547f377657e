from __future__ import annotations

from typing import TYPE_CHECKING

from changeset_export.config import MANIFEST_FILENAME, ExportManifest

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from changeset_export.config import ChangeSet, ExportContext, ManifestEntry


def build_manifest(
    name: str,
    context: ExportContext,
    changes: ChangeSet,
    entries: Sequence[ManifestEntry],
) -> ExportManifest:
    """Build the provenance and integrity record of an export.

    Args:
        name (str): the rendered export name
        context (ExportContext): project, branch, hash, user and export time
        changes (ChangeSet): the change queries, used for the per-query counts
        entries (Sequence[ManifestEntry]): the files actually copied

    Returns:
        ExportManifest: the manifest, `totalFiles` being the number of distinct changed paths
    """
    return ExportManifest(
        name=name,
        project_name=context.project,
        branch=context.branch,
        commit_hash=context.commit_hash,
        user=context.user,
        export_date=context.exported_at,
        total_files=len(changes.files),
        staged_files=len(changes.staged),
        modified_files=len(changes.modified),
        untracked_files=len(changes.untracked),
        files=list(entries),
    )


def render_manifest(manifest: ExportManifest) -> str:
    return manifest.model_dump_json(by_alias=True, indent=2) + "\n"


def write_manifest(content_root: Path, manifest: ExportManifest) -> Path:
    """Write `export-info.json` at the root of the content folder.

    Args:
        content_root (Path): the staged content root
        manifest (ExportManifest): the record to write

    Returns:
        Path: the written file
    """
    path = content_root / MANIFEST_FILENAME
    path.write_text(render_manifest(manifest), encoding="utf-8")
    return path
