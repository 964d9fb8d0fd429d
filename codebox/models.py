"""codebox data models: registry records, execution context and result values."""

import os
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MOUNT_PATH = "/home/project"
DEFAULT_MAX_BUFFER_BYTES = 10 * 1024 * 1024

REPORT_SEPARATOR = "-" * 40


class WriteMode(str, Enum):
    OVERWRITE = "overwrite"
    APPEND = "append"


class ErrorKind(str, Enum):
    """Failure categories carried by result values instead of exceptions."""

    INVALID_PATH = "invalid_path"
    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    UNAUTHORIZED_PROJECT = "unauthorized_project"
    NO_IMAGE_CONFIGURED = "no_image_configured"
    EXECUTION_ERROR = "execution_error"
    INVALID_SESSION = "invalid_session"


# --- Persisted configuration (read from JSON written by the CLI) ---


class ProjectConfig(BaseModel):
    """One registered project. Identity key is the resolved absolute path."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    docker_image: str | None = Field(default=None, alias="dockerImage")
    container_name: str | None = Field(default=None, alias="containerName")
    network: str | None = None
    copy_on_open: bool = Field(default=False, alias="copy")


class SystemConfig(BaseModel):
    """Contents of the system-level registry file."""

    model_config = ConfigDict(frozen=True)

    projects: list[ProjectConfig] = Field(default_factory=list)
    debug: bool = False


# --- Execution ---


class ExecutionContext(BaseModel):
    """Identity and limits applied to every container run.

    Built once by the caller and handed to ContainerRunner; nothing in the
    runner reads the process identity on its own.
    """

    model_config = ConfigDict(frozen=True)

    user: str | None = None
    mount_path: str = DEFAULT_MOUNT_PATH
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    timeout_seconds: float | None = 600
    network: str | None = None
    docker_binary: str = "docker"

    @classmethod
    def from_host(cls, **overrides) -> "ExecutionContext":
        """Capture the invoking user's uid:gid (None on platforms without getuid)."""
        user = None
        if hasattr(os, "getuid") and hasattr(os, "getgid"):
            user = f"{os.getuid()}:{os.getgid()}"
        overrides.setdefault("user", user)
        return cls(**overrides)


class ExecResult(BaseModel):
    """Outcome of one container run."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def combined_output(self) -> str:
        """stdout, followed by an STDERR section when stderr is non-empty."""
        if self.stderr:
            return f"{self.stdout}\nSTDERR:\n{self.stderr}"
        return self.stdout


class CommandResult(BaseModel):
    """Result of one command in a batch. index is its position in the submitted list."""

    model_config = ConfigDict(frozen=True)

    index: int
    command: str
    output: str
    success: bool


class BatchReport(BaseModel):
    """Ordered command results plus batch-level failure information."""

    results: list[CommandResult] = Field(default_factory=list)
    stop_on_error: bool = True
    error: ErrorKind | None = None
    message: str = ""

    @property
    def is_error(self) -> bool:
        """True on a precondition failure, or when a command failed under stop-on-error.

        A failed command with stop_on_error=False does not flag the report.
        """
        if self.error is not None:
            return True
        return self.stop_on_error and any(not r.success for r in self.results)

    def format(self) -> str:
        if self.error is not None:
            return self.message
        return "\n".join(
            f"Command: {r.command}\n"
            f"Status: {'Success' if r.success else 'Failed'}\n"
            f"Output:\n{r.output}\n"
            f"{REPORT_SEPARATOR}\n"
            for r in self.results
        )


# --- File operations ---


class FileResult(BaseModel):
    """Outcome of a ProjectFileIO read or write."""

    ok: bool
    path: str
    error: ErrorKind | None = None
    message: str = ""
    content: str | None = None


class FileWriteRequest(BaseModel):
    """One entry of a write_batch_files call."""

    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath", description="Relative path to the file from project root")
    content: str = Field(description="Content to write to the file")
    mode: WriteMode = Field(
        default=WriteMode.OVERWRITE,
        description="Write mode - whether to overwrite or append",
    )
