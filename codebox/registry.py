"""Project registry: which directories may be mounted, and with which container image.

System registry file (<config dir>/projects.json):
    {"projects": ["/abs/dir", {"path": "/abs/other", "dockerImage": "node:20"}], "debug": false}
Per-project config (<project>/.codespin/codebox.json):
    {"dockerImage": "python:3.12", "network": "bridge", "copy": false}

Malformed JSON in either file is treated as absent.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from codebox.models import ProjectConfig, SystemConfig

logger = logging.getLogger(__name__)

_PROJECT_OVERRIDE_KEYS = ("dockerImage", "containerName", "network", "copy")


class ProjectAuthority(Protocol):
    """What the batch orchestrator needs from a registry."""

    def is_registered_project(self, path: Path | str) -> bool: ...

    def docker_image_for(self, path: Path | str) -> str | None: ...

    def network_for(self, path: Path | str) -> str | None: ...


def _normalize(path: Path | str) -> str:
    return str(Path(path).expanduser().resolve())


def _read_json(path: Path) -> Any:
    """Parsed JSON, or None when the file is missing or malformed."""
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return None


def _entry_to_config(entry: Any) -> ProjectConfig | None:
    if isinstance(entry, str):
        return ProjectConfig(path=_normalize(entry))
    if isinstance(entry, dict):
        data = dict(entry)
        path = data.pop("path", None) or data.pop("hostPath", None)
        if not isinstance(path, str) or not path:
            return None
        try:
            return ProjectConfig(path=_normalize(path), **{k: data[k] for k in _PROJECT_OVERRIDE_KEYS if k in data})
        except ValidationError:
            return None
    return None


class ProjectRegistry:
    """Reads (and, for the CLI, writes) the registry file. Every read hits the disk."""

    def __init__(
        self,
        registry_file: Path,
        project_config_dir: str = ".codespin",
        project_config_file: str = "codebox.json",
    ) -> None:
        self._registry_file = registry_file
        self._project_config_dir = project_config_dir
        self._project_config_file = project_config_file

    @property
    def registry_file(self) -> Path:
        return self._registry_file

    def project_config_path(self, project_dir: Path | str) -> Path:
        return Path(project_dir) / self._project_config_dir / self._project_config_file

    # --- Reading ---

    def _raw(self) -> dict[str, Any]:
        data = _read_json(self._registry_file)
        return data if isinstance(data, dict) else {}

    def load(self) -> SystemConfig:
        raw = self._raw()
        entries = raw.get("projects")
        projects: list[ProjectConfig] = []
        if isinstance(entries, list):
            for entry in entries:
                cfg = _entry_to_config(entry)
                if cfg is not None:
                    projects.append(cfg)
        return SystemConfig(projects=projects, debug=bool(raw.get("debug", False)))

    def is_debug_enabled(self) -> bool:
        return self.load().debug

    def list_projects(self) -> list[ProjectConfig]:
        return self.load().projects

    def _find(self, path: Path | str) -> ProjectConfig | None:
        key = _normalize(path)
        for project in self.load().projects:
            if project.path == key:
                return project
        return None

    def is_registered_project(self, path: Path | str) -> bool:
        """Registered (exact resolved path match), existing and a directory."""
        try:
            if self._find(path) is None:
                return False
            return Path(_normalize(path)).is_dir()
        except (OSError, ValueError, RuntimeError):
            return False

    def project_config(self, path: Path | str) -> ProjectConfig | None:
        """Registry entry merged with the project's own config file, or None if unregistered."""
        project = self._find(path)
        if project is None:
            return None
        local = _read_json(self.project_config_path(project.path))
        if not isinstance(local, dict):
            return project
        overrides = {k: local[k] for k in _PROJECT_OVERRIDE_KEYS if local.get(k) is not None}
        if not overrides:
            return project
        try:
            return ProjectConfig(path=project.path, **{**project.model_dump(by_alias=True, exclude={"path"}), **overrides})
        except ValidationError as e:
            logger.warning("Ignoring invalid project config for %s: %s", project.path, e)
            return project

    def docker_image_for(self, path: Path | str) -> str | None:
        project = self.project_config(path)
        if project is None or not project.docker_image:
            return None
        return project.docker_image

    def network_for(self, path: Path | str) -> str | None:
        project = self.project_config(path)
        return project.network if project is not None else None

    # --- Writing (CLI) ---

    def _save(self, raw: dict[str, Any]) -> None:
        self._registry_file.parent.mkdir(parents=True, exist_ok=True)
        self._registry_file.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")

    def add_project(self, project_dir: Path | str) -> bool:
        """Register a directory. Returns False if it was already registered."""
        path = Path(_normalize(project_dir))
        if not path.exists():
            raise FileNotFoundError(f"Directory not found: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {path}")
        if self._find(path) is not None:
            return False
        raw = self._raw()
        entries = raw.get("projects")
        if not isinstance(entries, list):
            entries = []
        entries.append(str(path))
        raw["projects"] = entries
        self._save(raw)
        logger.info("Registered project %s", path)
        return True

    def remove_project(self, project_dir: Path | str) -> None:
        key = _normalize(project_dir)
        raw = self._raw()
        entries = raw.get("projects")
        if not isinstance(entries, list):
            entries = []
        kept = []
        for entry in entries:
            cfg = _entry_to_config(entry)
            if cfg is not None and cfg.path == key:
                continue
            kept.append(entry)
        if len(kept) == len(entries):
            raise KeyError(f"Project not found in list: {key}")
        raw["projects"] = kept
        self._save(raw)
        logger.info("Removed project %s", key)

    def init_project(self, working_dir: Path | str, image: str, force: bool = False) -> Path:
        """Write the per-project config (with dockerImage) at the git root of working_dir."""
        if not image:
            raise ValueError("Docker image is required. Use --image <image_name>")
        git_root = get_git_root(working_dir)
        if git_root is None:
            raise ValueError("Not in a git repository. Please initialize a git repository first.")
        config_path = self.project_config_path(git_root)
        if config_path.exists() and not force:
            raise FileExistsError("Configuration already exists. Use --force to overwrite.")
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps({"dockerImage": image}, indent=2) + "\n", encoding="utf-8")
        return config_path


def get_git_root(working_dir: Path | str) -> Path | None:
    """Top-level directory of the git work tree containing working_dir, or None."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=working_dir,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    top = result.stdout.strip()
    return Path(top) if top else None
