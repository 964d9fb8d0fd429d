"""Temp directory, recursive copy and recursive remove helpers for project copies."""

import logging
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def create_temp_directory(prefix: str = "codebox-") -> Path:
    return Path(tempfile.mkdtemp(prefix=prefix))


def copy_directory(source: Path | str, target: Path | str) -> None:
    """Copy source into target recursively. target may already exist."""
    shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)


def remove_directory(path: Path | str) -> None:
    """Remove a directory tree. Missing directories are ignored."""
    path = Path(path)
    if not path.exists():
        return
    shutil.rmtree(path)
    logger.debug("Removed directory %s", path)
