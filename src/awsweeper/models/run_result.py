"""Run result model.

Terminal status of one deletion task, aggregated into the run report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .deletion_task import DeletionTask, ErrorKind, TaskState


class RunStatus(Enum):
    """Terminal status of a task."""

    DELETED = "deleted"
    ALREADY_GONE = "already-gone"
    FAILED = "failed"
    SKIPPED_DRY_RUN = "skipped-dry-run"

    @property
    def is_success(self) -> bool:
        return self != RunStatus.FAILED


@dataclass(frozen=True)
class RunResult:
    """Outcome for a single (type, id) pair.

    Attributes:
        resource_type: Resource type name
        resource_id: Provider identifier
        status: Terminal status
        tags: Resource tags at match time
        reason: Failure reason for failed results (optional)
        error_kind: Classified error for failed results (optional)
        attempts: Number of delete calls issued
        dependency_rank: Rank of the resource type, used for ordering
    """

    resource_type: str
    resource_id: str
    status: RunStatus
    tags: Dict[str, str] = field(default_factory=dict, hash=False)
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    attempts: int = 0
    dependency_rank: int = 0

    def __post_init__(self) -> None:
        if self.status == RunStatus.FAILED and not self.reason:
            raise ValueError("Failed status requires a reason")
        if self.status != RunStatus.FAILED and self.reason:
            raise ValueError(f"{self.status.value} status cannot carry a failure reason")

    @property
    def sort_key(self) -> tuple[int, str, str]:
        return (self.dependency_rank, self.resource_type, self.resource_id)

    @classmethod
    def skipped(cls, task: DeletionTask, dependency_rank: int = 0) -> RunResult:
        """Result for a task matched in plan mode."""
        return cls(
            resource_type=task.resource_type,
            resource_id=task.resource_id,
            status=RunStatus.SKIPPED_DRY_RUN,
            tags=task.tags,
            dependency_rank=dependency_rank,
        )

    @classmethod
    def from_task(cls, task: DeletionTask, dependency_rank: int = 0) -> RunResult:
        """Build the result for a task in a terminal state.

        Raises:
            ValueError: If the task has not reached a terminal state
        """
        if task.state == TaskState.SUCCEEDED:
            status = RunStatus.ALREADY_GONE if task.already_gone else RunStatus.DELETED
            return cls(
                resource_type=task.resource_type,
                resource_id=task.resource_id,
                status=status,
                tags=task.tags,
                attempts=task.attempts,
                dependency_rank=dependency_rank,
            )

        if task.state == TaskState.FAILED:
            return cls(
                resource_type=task.resource_type,
                resource_id=task.resource_id,
                status=RunStatus.FAILED,
                tags=task.tags,
                reason=task.last_message or (task.last_error.value if task.last_error else "unknown error"),
                error_kind=task.last_error,
                attempts=task.attempts,
                dependency_rank=dependency_rank,
            )

        raise ValueError(f"Task {task.resource_type} {task.resource_id} is not terminal: {task.state.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.resource_type,
            "id": self.resource_id,
            "tags": dict(self.tags),
            "status": self.status.value,
            "error": self.reason,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "attempts": self.attempts,
        }
