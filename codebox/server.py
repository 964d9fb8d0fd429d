"""MCP server exposing project sessions, confined file writes and container execution as tools."""

import logging
import time
from pathlib import Path
from typing import Annotated, Any, Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field

from codebox import __version__
from codebox.execution import BatchOrchestrator, ContainerRunner
from codebox.models import ErrorKind, ExecutionContext, FileWriteRequest, REPORT_SEPARATOR, WriteMode
from codebox.registry import ProjectRegistry
from codebox.sessions import ProjectSessionStore
from codebox.settings import get_setting
from codebox.tools.file_io import ProjectFileIO
from codebox.tools.sandbox import invalid_path_message, is_contained

logger = logging.getLogger(__name__)


class ToolResponse(BaseModel):
    """Text returned to the client; is_error marks it as a tool error."""

    text: str
    is_error: bool = False


def _invalid_session(session_id: str) -> ToolResponse:
    return ToolResponse(text=f"Error: Invalid or expired session ID: {session_id}", is_error=True)


class CodeboxTools:
    """Tool implementations. Independent of the transport so they can be called directly."""

    def __init__(
        self,
        registry: ProjectRegistry,
        sessions: ProjectSessionStore,
        orchestrator: BatchOrchestrator,
        batch_timeout: float | None = None,
    ) -> None:
        self._registry = registry
        self._sessions = sessions
        self._orchestrator = orchestrator
        self._batch_timeout = batch_timeout

    @property
    def sessions(self) -> ProjectSessionStore:
        return self._sessions

    def debug_enabled(self) -> bool:
        return self._registry.is_debug_enabled()

    # --- Projects and sessions ---

    def list_projects(self) -> ToolResponse:
        projects = self._registry.list_projects()
        if not projects:
            return ToolResponse(
                text="No projects are registered. Use 'codebox project add <dirname>' to add projects."
            )
        return ToolResponse(text="Available projects:\n\n" + "\n".join(p.path for p in projects))

    def open_project_session(self, project_dir: str) -> ToolResponse:
        if not self._registry.is_registered_project(project_dir):
            return ToolResponse(text=f"Error: Invalid or unregistered project: {project_dir}", is_error=True)
        session_id = self._sessions.open_session(project_dir)
        if session_id is None:
            return ToolResponse(text=f"Error: Could not open project: {project_dir}", is_error=True)
        return ToolResponse(text=session_id)

    def close_project_session(self, session_id: str) -> ToolResponse:
        if self._sessions.close_session(session_id):
            return ToolResponse(text=f"Session closed: {session_id}")
        return ToolResponse(text=f"Error: Invalid session ID: {session_id}", is_error=True)

    # --- Files ---

    def write_file(
        self,
        session_id: str,
        file_path: str,
        content: str,
        mode: WriteMode | str = WriteMode.OVERWRITE,
    ) -> ToolResponse:
        working_dir = self._sessions.working_dir(session_id)
        if working_dir is None:
            return _invalid_session(session_id)
        result = ProjectFileIO(working_dir).write(file_path, content, mode)
        if not result.ok:
            text = result.message if result.error is ErrorKind.IO_ERROR else f"Error: {result.message}"
            return ToolResponse(text=text, is_error=True)
        return ToolResponse(text=result.message)

    def write_batch_files(
        self,
        session_id: str,
        files: list[FileWriteRequest],
        stop_on_error: bool = True,
    ) -> ToolResponse:
        """Validate every path first, then write. With stop_on_error an invalid path writes nothing."""
        working_dir = self._sessions.working_dir(session_id)
        if working_dir is None:
            return _invalid_session(session_id)

        results: list[tuple[str, bool, str]] = []
        has_error = False
        valid: list[FileWriteRequest] = []
        for request in files:
            if is_contained(working_dir, request.file_path):
                valid.append(request)
                continue
            has_error = True
            results.append((request.file_path, False, invalid_path_message(request.file_path)))
            if stop_on_error:
                return ToolResponse(text=_format_file_results(results), is_error=True)

        file_io = ProjectFileIO(working_dir)
        for request in valid:
            result = file_io.write(request.file_path, request.content, request.mode)
            if result.ok:
                verb = "appended to" if request.mode is WriteMode.APPEND else "wrote"
                results.append((request.file_path, True, f"Successfully {verb} file"))
                continue
            has_error = True
            results.append((request.file_path, False, result.message))
            if stop_on_error:
                break

        return ToolResponse(text=_format_file_results(results), is_error=has_error and stop_on_error)

    # --- Execution ---

    async def execute_command(self, command: str, project_dir: str) -> ToolResponse:
        report = await self._orchestrator.run_command(command, project_dir)
        if report.error is not None:
            return ToolResponse(text=report.message, is_error=True)
        result = report.results[0]
        if not result.success:
            return ToolResponse(text=f"Error executing command: {result.output}", is_error=True)
        return ToolResponse(text=result.output)

    async def execute_batch_commands(
        self,
        commands: list[str],
        project_dir: str,
        stop_on_error: bool = True,
    ) -> ToolResponse:
        report = await self._orchestrator.run_batch(
            commands, project_dir, stop_on_error, timeout=self._batch_timeout
        )
        return ToolResponse(text=report.format(), is_error=report.is_error)

    async def execute_session_batch_commands(
        self,
        commands: list[str],
        session_id: str,
        stop_on_error: bool = True,
    ) -> ToolResponse:
        info = self._sessions.get(session_id)
        if info is None:
            return _invalid_session(session_id)
        report = await self._orchestrator.run_batch(
            commands,
            info.project_dir,
            stop_on_error,
            workdir=info.working_dir,
            timeout=self._batch_timeout,
        )
        return ToolResponse(text=report.format(), is_error=report.is_error)


def _format_file_results(results: list[tuple[str, bool, str]]) -> str:
    return "\n".join(
        f"File: {path}\n"
        f"Status: {'Success' if ok else 'Failed'}\n"
        f"Message: {message}\n"
        f"{REPORT_SEPARATOR}\n"
        for path, ok, message in results
    )


def build_tools(settings: dict[str, Any], config_dir: Path) -> CodeboxTools:
    """Wire registry, runner, orchestrator and session store from settings."""
    registry = ProjectRegistry(
        config_dir / get_setting(settings, "registry.file", "projects.json"),
        project_config_dir=get_setting(settings, "project_config.dir", ".codespin"),
        project_config_file=get_setting(settings, "project_config.file", "codebox.json"),
    )
    context = ExecutionContext.from_host(
        docker_binary=get_setting(settings, "docker.binary", "docker"),
        mount_path=get_setting(settings, "docker.mount_path", "/home/project"),
        max_buffer_bytes=int(get_setting(settings, "docker.max_buffer_bytes", 10 * 1024 * 1024)),
        timeout_seconds=get_setting(settings, "docker.timeout_seconds", 600),
        network=get_setting(settings, "docker.network"),
    )
    orchestrator = BatchOrchestrator(registry, ContainerRunner(context))
    return CodeboxTools(
        registry,
        ProjectSessionStore(registry),
        orchestrator,
        batch_timeout=get_setting(settings, "batch.timeout_seconds"),
    )


def create_server(tools: CodeboxTools) -> FastMCP:
    """Register every tool on a FastMCP server. Error responses are raised as ToolError."""
    mcp = FastMCP("codebox")

    def finish(name: str, started: float, args: dict[str, Any], response: ToolResponse) -> str:
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info("tool %s finished in %.0f ms (error=%s)", name, elapsed_ms, response.is_error)
        if tools.debug_enabled():
            logger.info("tool %s args=%r response=%r", name, args, response.text)
        if response.is_error:
            raise ToolError(response.text)
        return response.text

    @mcp.tool(name="list_projects", description="List available projects")
    def list_projects() -> str:
        started = time.monotonic()
        return finish("list_projects", started, {}, tools.list_projects())

    @mcp.tool(
        name="open_project_session",
        description="Open a project session, copying the project files first if the project has copy=true",
    )
    def open_project_session(
        projectDir: Annotated[str, Field(description="The absolute path to the project directory")],
    ) -> str:
        started = time.monotonic()
        args = {"projectDir": projectDir}
        return finish("open_project_session", started, args, tools.open_project_session(projectDir))

    @mcp.tool(name="close_project_session", description="Close a project session and clean up resources")
    def close_project_session(
        projectSessionId: Annotated[str, Field(description="The session ID to close")],
    ) -> str:
        started = time.monotonic()
        args = {"projectSessionId": projectSessionId}
        return finish("close_project_session", started, args, tools.close_project_session(projectSessionId))

    @mcp.tool(name="write_file", description="Write content to a file in a project directory using a session")
    def write_file(
        projectSessionId: Annotated[str, Field(description="The session ID from open_project_session")],
        filePath: Annotated[str, Field(description="Relative path to the file from project root")],
        content: Annotated[str, Field(description="Content to write to the file")],
        mode: Annotated[
            Literal["overwrite", "append"],
            Field(description="Write mode - whether to overwrite or append"),
        ] = "overwrite",
    ) -> str:
        started = time.monotonic()
        args = {"projectSessionId": projectSessionId, "filePath": filePath, "mode": mode}
        response = tools.write_file(projectSessionId, filePath, content, mode)
        return finish("write_file", started, args, response)

    @mcp.tool(
        name="write_batch_files",
        description="Write content to multiple files in a project directory using a session",
    )
    def write_batch_files(
        projectSessionId: Annotated[str, Field(description="The session ID from open_project_session")],
        files: Annotated[list[FileWriteRequest], Field(description="Array of file operations to perform")],
        stopOnError: Annotated[bool, Field(description="Whether to stop if a file write fails")] = True,
    ) -> str:
        started = time.monotonic()
        args = {"projectSessionId": projectSessionId, "files": [f.file_path for f in files], "stopOnError": stopOnError}
        response = tools.write_batch_files(projectSessionId, files, stopOnError)
        return finish("write_batch_files", started, args, response)

    @mcp.tool(name="execute_command", description="Execute a command in a Docker container for a specific project")
    async def execute_command(
        command: Annotated[str, Field(description="The command to execute in the container")],
        projectDir: Annotated[str, Field(description="The absolute path to the project directory")],
    ) -> str:
        started = time.monotonic()
        args = {"command": command, "projectDir": projectDir}
        return finish("execute_command", started, args, await tools.execute_command(command, projectDir))

    @mcp.tool(
        name="execute_batch_commands",
        description="Execute multiple commands in sequence in a Docker container for a specific project",
    )
    async def execute_batch_commands(
        commands: Annotated[list[str], Field(description="Array of commands to execute in sequence")],
        projectDir: Annotated[str, Field(description="The absolute path to the project directory")],
        stopOnError: Annotated[bool, Field(description="Whether to stop execution if a command fails")] = True,
    ) -> str:
        started = time.monotonic()
        args = {"commands": commands, "projectDir": projectDir, "stopOnError": stopOnError}
        response = await tools.execute_batch_commands(commands, projectDir, stopOnError)
        return finish("execute_batch_commands", started, args, response)

    @mcp.tool(
        name="execute_session_batch_commands",
        description="Execute multiple commands in sequence against a project session's working directory",
    )
    async def execute_session_batch_commands(
        commands: Annotated[list[str], Field(description="Array of commands to execute in sequence")],
        projectSessionId: Annotated[str, Field(description="The session ID from open_project_session")],
        stopOnError: Annotated[bool, Field(description="Whether to stop execution if a command fails")] = True,
    ) -> str:
        started = time.monotonic()
        args = {"commands": commands, "projectSessionId": projectSessionId, "stopOnError": stopOnError}
        response = await tools.execute_session_batch_commands(commands, projectSessionId, stopOnError)
        return finish("execute_session_batch_commands", started, args, response)

    logger.info("codebox %s: registered MCP tools", __version__)
    return mcp


def serve(settings: dict[str, Any], config_dir: Path) -> None:
    """Run the MCP server on stdio until the client disconnects."""
    tools = build_tools(settings, config_dir)
    server = create_server(tools)
    logger.info("Codebox MCP server running. Waiting for commands...")
    try:
        server.run()
    finally:
        tools.sessions.close_all()
