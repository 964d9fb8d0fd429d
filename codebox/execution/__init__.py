"""Container execution: single-command runner and sequential batch orchestrator."""

from codebox.execution.batch import BatchOrchestrator
from codebox.execution.executors import BaseRunner, ContainerRunner

__all__ = ["BaseRunner", "BatchOrchestrator", "ContainerRunner"]
