"""Sequential batch execution of shell commands against one registered project."""

import asyncio
import logging
from pathlib import Path

from codebox.execution.executors import BaseRunner
from codebox.models import BatchReport, CommandResult, ErrorKind
from codebox.registry import ProjectAuthority

logger = logging.getLogger(__name__)

UNREGISTERED_MESSAGE = "Error: Project directory is not registered. Use 'codebox project add' first."
NO_IMAGE_MESSAGE = (
    "Error: No Docker image configured for this project. Run 'codebox init' in the project directory."
)


class BatchOrchestrator:
    """Runs commands one after another, each in its own container.

    Order matters: a later command may rely on files an earlier one wrote
    through the shared mount, so commands never run in parallel.
    """

    def __init__(self, registry: ProjectAuthority, runner: BaseRunner) -> None:
        self._registry = registry
        self._runner = runner

    async def run_batch(
        self,
        commands: list[str],
        project_dir: Path | str,
        stop_on_error: bool = True,
        *,
        workdir: Path | str | None = None,
        timeout: float | None = None,
    ) -> BatchReport:
        """Execute commands in order against project_dir.

        workdir is the directory mounted into each container (a session copy,
        for instance); it defaults to the project directory. timeout bounds the
        whole batch: each command gets whatever time is left.
        """
        if not self._registry.is_registered_project(project_dir):
            logger.warning("Batch rejected: unregistered project %s", project_dir)
            return BatchReport(
                stop_on_error=stop_on_error,
                error=ErrorKind.UNAUTHORIZED_PROJECT,
                message=UNREGISTERED_MESSAGE,
            )
        image = self._registry.docker_image_for(project_dir)
        if not image:
            logger.warning("Batch rejected: no image configured for %s", project_dir)
            return BatchReport(
                stop_on_error=stop_on_error,
                error=ErrorKind.NO_IMAGE_CONFIGURED,
                message=NO_IMAGE_MESSAGE,
            )

        network = self._registry.network_for(project_dir)
        mount = Path(workdir if workdir is not None else project_dir).resolve()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        report = BatchReport(stop_on_error=stop_on_error)
        for index, command in enumerate(commands):
            remaining = None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    report.results.append(
                        CommandResult(
                            index=index,
                            command=command,
                            output=f"Batch deadline of {timeout} seconds exceeded before command started",
                            success=False,
                        )
                    )
                    if stop_on_error:
                        break
                    continue

            result = await self._runner.run(mount, command, image, timeout=remaining, network=network)
            if result.ok:
                report.results.append(
                    CommandResult(index=index, command=command, output=result.combined_output(), success=True)
                )
                continue

            report.results.append(CommandResult(index=index, command=command, output=result.message, success=False))
            if stop_on_error:
                logger.info("Batch stopped at command %d of %d: %s", index + 1, len(commands), command)
                break

        return report

    async def run_command(self, command: str, project_dir: Path | str) -> BatchReport:
        """Single command: a one-element batch that always reports failures as errors."""
        return await self.run_batch([command], project_dir, stop_on_error=True)
