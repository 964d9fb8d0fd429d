"""In-memory project sessions: opaque ids mapped to a project and its working directory."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from codebox.registry import ProjectRegistry
from codebox.tools.dir_utils import copy_directory, create_temp_directory, remove_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    project_dir: Path
    # Project root, or a temp copy of it when the project has copy enabled
    working_dir: Path
    is_temp_dir: bool = False


class ProjectSessionStore:
    def __init__(self, registry: ProjectRegistry) -> None:
        self._registry = registry
        self._sessions: dict[str, SessionInfo] = {}

    def open_session(self, project_dir: Path | str) -> str | None:
        """Open a session on a registered project. Returns None if it cannot be opened."""
        if not self._registry.is_registered_project(project_dir):
            return None
        project = self._registry.project_config(project_dir)
        if project is None:
            return None
        root = Path(project.path)

        working_dir = root
        is_temp = False
        if project.copy_on_open:
            temp_dir = create_temp_directory(f"codebox-{root.name}-session-")
            try:
                copy_directory(root, temp_dir)
            except OSError as e:
                logger.error("Failed to copy project %s for session: %s", root, e)
                remove_directory(temp_dir)
                return None
            working_dir = temp_dir
            is_temp = True

        session_id = str(uuid.uuid4())
        self._sessions[session_id] = SessionInfo(project_dir=root, working_dir=working_dir, is_temp_dir=is_temp)
        logger.info("Opened session %s on %s (working dir %s)", session_id, root, working_dir)
        return session_id

    def get(self, session_id: str) -> SessionInfo | None:
        return self._sessions.get(session_id)

    def working_dir(self, session_id: str) -> Path | None:
        info = self._sessions.get(session_id)
        return info.working_dir if info is not None else None

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def close_session(self, session_id: str) -> bool:
        """Forget the session and remove its temp copy. False if the id is unknown."""
        info = self._sessions.pop(session_id, None)
        if info is None:
            return False
        if info.is_temp_dir:
            try:
                remove_directory(info.working_dir)
            except OSError as e:
                logger.warning("Error cleaning up temporary directory %s: %s", info.working_dir, e)
        logger.info("Closed session %s", session_id)
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close_session(session_id)
