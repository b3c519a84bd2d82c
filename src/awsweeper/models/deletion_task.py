"""Deletion task model.

A (type, id) pair awaiting deletion together with its attempt history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .resource_record import ResourceRecord


class TaskState(Enum):
    """Deletion task state with transitions.

    pending → attempting → succeeded
    pending → attempting → retrying → attempting → ...
    pending → attempting → failed
    """

    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


class ErrorKind(Enum):
    """Classified outcome of the most recent delete attempt."""

    NOT_FOUND = "not-found"
    DEPENDENCY_IN_USE = "dependency-in-use"
    PROVIDER = "provider"
    CANCELLED = "cancelled"
    RETRY_EXHAUSTED = "retry-exhausted"


_TRANSITIONS = {
    TaskState.PENDING: {TaskState.ATTEMPTING, TaskState.FAILED},
    TaskState.ATTEMPTING: {TaskState.SUCCEEDED, TaskState.RETRYING, TaskState.FAILED},
    TaskState.RETRYING: {TaskState.ATTEMPTING, TaskState.FAILED},
    TaskState.SUCCEEDED: set(),
    TaskState.FAILED: set(),
}


@dataclass
class DeletionTask:
    """Deletion task entity.

    Created when the matcher selects a resource and dropped from the pending
    set once it reaches a terminal state.

    Attributes:
        resource_type: Resource type name
        resource_id: Provider identifier
        record: Resource record the task was created from (optional)
        state: Current task state
        attempts: Number of delete calls issued so far
        last_error: Classification of the last failed attempt (optional)
        last_message: Provider message of the last failed attempt (optional)
        already_gone: True when the resource vanished before deletion
    """

    resource_type: str
    resource_id: str
    record: Optional[ResourceRecord] = field(default=None, compare=False, repr=False)
    state: TaskState = TaskState.PENDING
    attempts: int = 0
    last_error: Optional[ErrorKind] = None
    last_message: Optional[str] = None
    already_gone: bool = False

    @classmethod
    def from_record(cls, record: ResourceRecord) -> DeletionTask:
        return cls(resource_type=record.type, resource_id=record.id, record=record)

    @property
    def key(self) -> tuple[str, str]:
        return (self.resource_type, self.resource_id)

    @property
    def tags(self) -> dict[str, str]:
        return dict(self.record.tags) if self.record else {}

    def transition(self, new_state: TaskState) -> None:
        """Move to a new state.

        Raises:
            ValueError: If the transition is not allowed from the current state
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid transition for {self.resource_type} {self.resource_id}: "
                f"{self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def begin_attempt(self) -> None:
        self.transition(TaskState.ATTEMPTING)
        self.attempts += 1

    def succeed(self, already_gone: bool = False) -> None:
        self.transition(TaskState.SUCCEEDED)
        self.already_gone = already_gone
        if already_gone:
            self.last_error = ErrorKind.NOT_FOUND

    def retry(self, message: str) -> None:
        self.transition(TaskState.RETRYING)
        self.last_error = ErrorKind.DEPENDENCY_IN_USE
        self.last_message = message

    def fail(self, kind: ErrorKind, message: str) -> None:
        self.transition(TaskState.FAILED)
        self.last_error = kind
        self.last_message = message
