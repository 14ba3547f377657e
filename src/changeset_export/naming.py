"""Export names: template rendering, timestamps and destination paths."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from changeset_export.config import TEMPLATE_TOKENS, TIMESTAMP_FORMAT, OutputKind
from changeset_export.exceptions import InvalidFolderNameError

if TYPE_CHECKING:
    from collections.abc import Mapping

ILLEGAL_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')
SAFE_SUBSTITUTE = "-"
_TOKEN = re.compile(r"\{(\w+)\}")


def sanitize_name(value: str) -> str:
    """Replace characters that are illegal in file names with `-`.

    Args:
        value (str): the raw name or template

    Returns:
        str: `value` with every `< > : " / \\ | ? *` replaced
    """
    return ILLEGAL_NAME_CHARS.sub(SAFE_SUBSTITUTE, value)


def render_name(template: str, substitutions: Mapping[str, str | None]) -> str:
    """Render an export name from a template.

    The template is sanitized first, then `{project}`, `{branch}`, `{hash}`,
    `{user}` and `{timestamp}` are substituted. Unknown tokens are kept as is.
    Substituted values are sanitized as well, so a branch such as `feature/x`
    cannot add a path level.

    Args:
        template (str): e.g. "{project}-{branch}-{timestamp}"
        substitutions (Mapping[str, str | None]): token values; missing or None values render as ""

    Returns:
        str: the rendered base name

    Example:
        >>> render_name("{project}-{branch}", {"project": "demo", "branch": "main"})
        'demo-main'
    """

    def replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token not in TEMPLATE_TOKENS:
            return match.group(0)
        return sanitize_name(substitutions.get(token) or "")

    return _TOKEN.sub(replace, sanitize_name(template))


def format_timestamp(moment: datetime | None = None) -> str:
    """Format a moment as local `YYYYMMDD-HHMMSS`.

    Args:
        moment (datetime | None): the time to format; defaults to now. Aware values
            are converted to local time first.

    Returns:
        str: the formatted timestamp
    """
    moment = moment or datetime.now().astimezone()
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime(TIMESTAMP_FORMAT)


def normalize_destination(path: Path, kind: OutputKind) -> Path:
    """Append the archive extension to `path` when it is missing.

    The comparison ignores case, so `Demo.ZIP` is kept as is.

    Args:
        path (Path): the destination chosen by the user
        kind (OutputKind): the output kind

    Returns:
        Path: the final destination path
    """
    ext = kind.extension
    if not ext or path.name.lower().endswith(ext):
        return path
    return path.with_name(path.name + ext)


def default_destination(base_name: str, home: Path | None = None) -> Path:
    """Pick a destination when none was given: the Desktop if there is one, else home.

    Args:
        base_name (str): the rendered export name
        home (Path | None): home directory override

    Returns:
        Path: the destination path, without archive extension
    """
    home = home or Path.home()
    desktop = home / "Desktop"
    parent = desktop if desktop.is_dir() else home
    return parent / base_name


def validate_folder_name(value: str) -> str:
    """Validate a user supplied folder name.

    Args:
        value (str): the raw name

    Raises:
        InvalidFolderNameError: if the name is blank or contains illegal characters

    Returns:
        str: the trimmed name
    """
    name = value.strip()
    if not name or ILLEGAL_NAME_CHARS.search(name):
        raise InvalidFolderNameError(value=value)
    return name
