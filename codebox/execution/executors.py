"""Runner strategy for executing one shell command against a project directory.

ContainerRunner starts a fresh `docker run --rm` per call, so nothing but the
mounted project directory carries over from one command to the next.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from codebox.models import ErrorKind, ExecResult, ExecutionContext

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class _OutputOverflow(Exception):
    def __init__(self, stream: str, limit: int) -> None:
        super().__init__(f"{stream} exceeded maximum buffer of {limit} bytes")


class BaseRunner(ABC):
    """Abstract runner for shell commands. Enables different isolation strategies."""

    @abstractmethod
    async def run(
        self,
        project_root: Path | str,
        command: str,
        image: str,
        timeout: float | None = None,
        network: str | None = None,
    ) -> ExecResult:
        """Execute command with project_root mounted. Never raises for command failures."""
        ...


def _failure(message: str, stdout: str = "", stderr: str = "", exit_code: int | None = None) -> ExecResult:
    combined = stdout + (f"\nSTDERR:\n{stderr}" if stderr else "")
    return ExecResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        error=ErrorKind.EXECUTION_ERROR,
        message=f"Docker execution failed:\n{message}\n{combined}",
    )


async def _drain(stream: asyncio.StreamReader, name: str, limit: int) -> bytes:
    buf = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return bytes(buf)
        buf.extend(chunk)
        if len(buf) > limit:
            raise _OutputOverflow(name, limit)


class ContainerRunner(BaseRunner):
    """Runs each command in a new disposable container as the context's user."""

    def __init__(self, context: ExecutionContext) -> None:
        self._ctx = context

    @property
    def context(self) -> ExecutionContext:
        return self._ctx

    def build_command(
        self,
        project_root: Path | str,
        command: str,
        image: str,
        container_name: str,
        network: str | None = None,
    ) -> list[str]:
        """docker argv. The user command is one argv element for the in-container shell."""
        mount = self._ctx.mount_path
        argv = [
            self._ctx.docker_binary,
            "run",
            "--rm",
            f"--name={container_name}",
            f"--volume={project_root}:{mount}:rw",
            f"--workdir={mount}",
        ]
        if self._ctx.user:
            argv.append(f"--user={self._ctx.user}")
        network = network or self._ctx.network
        if network:
            argv.append(f"--network={network}")
        argv.extend([image, "/bin/sh", "-c", command])
        return argv

    async def run(
        self,
        project_root: Path | str,
        command: str,
        image: str,
        timeout: float | None = None,
        network: str | None = None,
    ) -> ExecResult:
        limit_s = self._ctx.timeout_seconds
        if timeout is None or (limit_s is not None and limit_s < timeout):
            timeout = limit_s
        container_name = f"codebox-{uuid.uuid4().hex[:12]}"
        argv = self.build_command(project_root, command, image, container_name, network)
        logger.info("Running in %s (image %s, mount %s): %s", container_name, image, project_root, command)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to launch %s: %s", self._ctx.docker_binary, e)
            return _failure(f"Failed to launch container: {e}")

        limit = self._ctx.max_buffer_bytes
        readers = [
            asyncio.ensure_future(_drain(proc.stdout, "stdout", limit)),
            asyncio.ensure_future(_drain(proc.stderr, "stderr", limit)),
        ]
        try:
            stdout_bytes, stderr_bytes, exit_code = await asyncio.wait_for(
                asyncio.gather(*readers, proc.wait()), timeout=timeout
            )
        except asyncio.TimeoutError:
            await self._kill(container_name, proc)
            return _failure(f"Command timed out after {timeout} seconds: {command}")
        except _OutputOverflow as e:
            await self._kill(container_name, proc)
            return _failure(str(e))
        except asyncio.CancelledError:
            await self._kill(container_name, proc)
            raise
        finally:
            for reader in readers:
                reader.cancel()

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if exit_code != 0:
            return _failure(f"Command failed with exit code {exit_code}: {command}", stdout, stderr, exit_code)
        return ExecResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def _kill(self, container_name: str, proc: asyncio.subprocess.Process) -> None:
        """Stop the named container, then the docker client process."""
        try:
            killer = await asyncio.create_subprocess_exec(
                self._ctx.docker_binary,
                "kill",
                container_name,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await killer.wait()
        except OSError as e:
            logger.warning("docker kill %s failed: %s", container_name, e)
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        await proc.wait()
