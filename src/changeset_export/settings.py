from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from changeset_export.config import DEFAULT_NAME_TEMPLATE, OutputKind
from changeset_export.exceptions import InvalidFolderNameError
from changeset_export.naming import validate_folder_name

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "CHANGESET_EXPORT_"
REPO_CONFIG_FILE = ".changeset-export.yaml"


class Settings(BaseModel):
    """Configuration settings for one export run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="ignore")

    repo: Path = Field(default_factory=Path.cwd, description="Repository root.")
    output: Path | None = Field(
        default=None,
        description="Destination folder or archive path (defaults to ~/Desktop/<name>).",
    )
    kind: OutputKind = Field(default=OutputKind.DIRECTORY, description="Output kind.")
    name_template: str = Field(
        default=DEFAULT_NAME_TEMPLATE,
        description="Template for the export name.",
    )
    project_name: str = Field(
        default="",
        description="Custom project name (defaults to the repository folder name).",
    )
    include_manifest: bool = Field(default=False, description="Write export-info.json.")
    reveal: bool = Field(default=True, description="Reveal the result in the file manager.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str) -> str:
        if not value:
            return value
        try:
            return validate_folder_name(value)
        except InvalidFolderNameError as e:
            raise ValueError(str(e)) from e

    @field_validator("name_template")
    @classmethod
    def _check_template(cls, value: str) -> str:
        if not value.strip():
            msg = "name_template cannot be empty"
            raise ValueError(msg)
        return value


def load_file_settings(path: Path) -> dict[str, Any]:
    """Read settings from a YAML mapping.

    Dashes in keys are accepted as aliases for underscores, so the file can use
    the same spelling as the CLI flags (e.g. `include-manifest: true`).

    Args:
        path (Path): the YAML file to read

    Raises:
        ValueError: if the document is not a mapping or names an unknown setting

    Returns:
        dict[str, Any]: the settings found in the file
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping of settings"
        raise ValueError(msg)
    settings = {str(k).replace("-", "_"): v for k, v in data.items()}
    unknown = sorted(set(settings) - set(Settings.model_fields))
    if unknown:
        msg = f"{path} has unknown settings: {', '.join(unknown)}"
        raise ValueError(msg)
    return settings


def load_env_settings(environ: Mapping[str, str | None] | None = None) -> dict[str, Any]:
    """Collect `CHANGESET_EXPORT_*` variables from the `.env` file and the environment.

    Args:
        environ: the environment to read; defaults to the `.env` file found from the
            current directory overlaid with `os.environ`

    Returns:
        dict[str, Any]: settings keyed by field name (prefix stripped, lower-cased)
    """
    if environ is None:
        merged: dict[str, str | None] = dict(dotenv_values(ENV_FILE)) if ENV_FILE else {}
        merged.update(os.environ)
        environ = merged
    return {
        key.removeprefix(ENV_PREFIX).lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and value is not None and value != ""
    }


def resolve_settings(
    cli_values: Mapping[str, Any],
    *,
    config_file: Path | None = None,
    environ: Mapping[str, str | None] | None = None,
) -> Settings:
    """Merge defaults, config file, environment and CLI flags into one Settings.

    Precedence, lowest first: model defaults, YAML file, environment, CLI. CLI
    values left at None are treated as "not given".

    Args:
        cli_values: values parsed from the command line
        config_file: explicit YAML file; when None, `.changeset-export.yaml` in the
            repository root is used if it exists
        environ: environment override, see `load_env_settings`

    Returns:
        Settings: the validated settings for the run
    """
    given = {k: v for k, v in cli_values.items() if v is not None}
    env = load_env_settings(environ)

    repo = Path(given.get("repo") or env.get("repo") or Path.cwd())
    if config_file is None and (repo / REPO_CONFIG_FILE).is_file():
        config_file = repo / REPO_CONFIG_FILE

    merged: dict[str, Any] = {}
    if config_file is not None:
        merged.update(load_file_settings(config_file))
    merged.update(env)
    merged.update(given)
    return Settings(**merged)
