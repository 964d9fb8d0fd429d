"""Text file read/write/exists confined to a project root.

STRICT RESTRICTION: every path is validated with the sandbox guard before any
filesystem access. Failures come back as FileResult values.
"""

import logging
from pathlib import Path

from codebox.models import ErrorKind, FileResult, WriteMode
from codebox.tools.sandbox import invalid_path_message, resolve_contained

logger = logging.getLogger(__name__)


class ProjectFileIO:
    """File operations scoped to one project root."""

    def __init__(self, project_root: Path | str) -> None:
        self._root = Path(project_root)

    @property
    def root(self) -> Path:
        return self._root

    def _invalid(self, relative_path: str) -> FileResult:
        logger.warning("file_io: rejected %r under %s", relative_path, self._root)
        return FileResult(
            ok=False,
            path=relative_path,
            error=ErrorKind.INVALID_PATH,
            message=invalid_path_message(relative_path),
        )

    def write(
        self,
        relative_path: str,
        content: str,
        mode: WriteMode | str = WriteMode.OVERWRITE,
    ) -> FileResult:
        """Write UTF-8 text, creating parent directories. Overwrites or appends per mode."""
        mode = WriteMode(mode)
        target = resolve_contained(self._root, relative_path)
        if target is None:
            return self._invalid(relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            flag = "a" if mode is WriteMode.APPEND else "w"
            with open(target, flag, encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            logger.error("file_io: write failed for %s: %s", target, e)
            return FileResult(
                ok=False,
                path=relative_path,
                error=ErrorKind.IO_ERROR,
                message=f"Error writing file: {e}",
            )
        verb = "appended to" if mode is WriteMode.APPEND else "wrote"
        return FileResult(ok=True, path=relative_path, message=f"Successfully {verb} file: {relative_path}")

    def read(self, relative_path: str) -> FileResult:
        """Return the whole file as UTF-8 text."""
        target = resolve_contained(self._root, relative_path)
        if target is None:
            return self._invalid(relative_path)
        if not target.exists():
            return FileResult(
                ok=False,
                path=relative_path,
                error=ErrorKind.NOT_FOUND,
                message=f"File not found: {relative_path}",
            )
        try:
            with open(target, encoding="utf-8", newline="") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            return FileResult(
                ok=False,
                path=relative_path,
                error=ErrorKind.IO_ERROR,
                message=f"Error reading file: {e}",
            )
        return FileResult(ok=True, path=relative_path, content=text)

    def exists(self, relative_path: str) -> bool:
        """False for unsafe paths and for missing ones alike."""
        target = resolve_contained(self._root, relative_path)
        if target is None:
            return False
        try:
            return target.exists()
        except OSError:
            return False
