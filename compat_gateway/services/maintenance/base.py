"""Maintenance task base classes and result structures."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class MaintenanceResult:
    """Result of a maintenance task execution.

    Attributes:
        task_name: Name of the task
        cleaned_count: Number of rows or windows removed
        errors: Error messages collected while running
    """

    task_name: str = ""
    cleaned_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def to_dict(self) -> dict:
        return {
            "task": self.task_name,
            "cleaned": self.cleaned_count,
            "errors": list(self.errors),
        }


class MaintenanceTask(ABC):
    """A periodic cleanup job.

    Failures inside ``run`` should be collected in the result rather
    than raised; the scheduler still guards against a raising task.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the task name (for logging)."""
        ...

    @abstractmethod
    async def run(self) -> MaintenanceResult:
        ...
