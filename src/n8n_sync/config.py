"""Project and runtime configuration.

A project is any directory holding a ``.n8n-sync.json`` marker file.  The
marker stores paths relative to the project root; ``Settings`` resolves
them to absolute paths and layers ``N8N_SYNC_*`` environment variables and
explicit overrides on top.
"""

from __future__ import annotations

import os
from pathlib import Path

import pydantic
from pydantic import BaseModel

from n8n_sync.errors import ConfigError

PROJECT_CONFIG_FILENAME = ".n8n-sync.json"
DEFAULT_DATA_DIR = ".n8n-sync"
DEFAULT_TIMEOUT = 30.0


class ProjectConfig(BaseModel):
    """Contents of the ``.n8n-sync.json`` marker file."""

    version: int = 1
    state_file: str = f"{DEFAULT_DATA_DIR}/state.json"
    workflows_dir: str = f"{DEFAULT_DATA_DIR}/workflows"


class Settings:
    """Application settings resolved for a single project root.

    Args:
        project_root: Directory containing the project marker file.
        state_file: Override for the JSON state file location.
        workflows_dir: Override for the blob directory.
        timeout: HTTP timeout in seconds for every n8n API call.
        log_level: Logging level name used by the CLI.
        project: Parsed marker file; its paths are used when neither an
            override nor an environment variable is given.
    """

    def __init__(
        self,
        project_root: Path | str | None = None,
        *,
        state_file: str | None = None,
        workflows_dir: str | None = None,
        timeout: float | None = None,
        log_level: str | None = None,
        project: ProjectConfig | None = None,
    ) -> None:
        root = project_root or os.environ.get("N8N_SYNC_PROJECT_ROOT") or Path.cwd()
        self.project_root: Path = Path(root).resolve()

        project = project or ProjectConfig()
        self.state_file: Path = self._resolve(
            state_file or os.environ.get("N8N_SYNC_STATE_FILE") or project.state_file
        )
        self.workflows_dir: Path = self._resolve(
            workflows_dir
            or os.environ.get("N8N_SYNC_WORKFLOWS_DIR")
            or project.workflows_dir
        )
        self.timeout: float = timeout or self._env_timeout()
        self.log_level: str = (
            log_level or os.environ.get("N8N_SYNC_LOG_LEVEL", "WARNING")
        ).upper()

    @staticmethod
    def _env_timeout() -> float:
        raw = os.environ.get("N8N_SYNC_TIMEOUT")
        if not raw:
            return DEFAULT_TIMEOUT
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigError(f"N8N_SYNC_TIMEOUT is not a number: {raw!r}") from exc

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.project_root / p
        return p

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigError("N8N_SYNC_TIMEOUT must be a positive number of seconds")


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from *start* to find a directory with ``.n8n-sync.json``."""
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    for parent in [current, *current.parents]:
        if (parent / PROJECT_CONFIG_FILENAME).exists():
            return parent
    return None


def is_initialized(path: Path) -> bool:
    return (path / PROJECT_CONFIG_FILENAME).exists()


def init_project(root: Path) -> Settings:
    """Create the marker file and data directories under *root*.

    An existing marker file is overwritten with defaults.
    """
    config = ProjectConfig()
    marker = root / PROJECT_CONFIG_FILENAME
    root.mkdir(parents=True, exist_ok=True)
    (root / config.workflows_dir).mkdir(parents=True, exist_ok=True)
    marker.write_text(config.model_dump_json(indent=2) + "\n", encoding="utf-8")
    return Settings(root, project=config)


def load_settings(
    start: Path | None = None,
    *,
    timeout: float | None = None,
    log_level: str | None = None,
) -> Settings:
    """Locate the enclosing project and build its ``Settings``.

    Raises:
        ConfigError: If no project marker is found or it cannot be parsed.
    """
    root = find_project_root(start)
    if root is None:
        raise ConfigError(
            'Not an n8n-sync project. Run "n8n-sync init" to initialize.'
        )

    try:
        raw = (root / PROJECT_CONFIG_FILENAME).read_text(encoding="utf-8")
        project = ProjectConfig.model_validate_json(raw or "{}")
    except (OSError, pydantic.ValidationError) as exc:
        raise ConfigError(f"Invalid {PROJECT_CONFIG_FILENAME}: {exc}") from exc

    settings = Settings(root, timeout=timeout, log_level=log_level, project=project)
    settings.validate()
    return settings
