"""Data models shared by the matcher, orchestrator and reporters."""

from __future__ import annotations

from .deletion_task import DeletionTask, ErrorKind, TaskState
from .filter_clause import (
    CriteriaModel,
    FilterClause,
    FilterGroup,
    IdsClause,
    MatchAllClause,
    RawAttributeClause,
    TagsClause,
    TypeCriteria,
)
from .report import Report, RunMode
from .resource_record import ResourceRecord
from .run_result import RunResult, RunStatus

__all__ = [
    "CriteriaModel",
    "DeletionTask",
    "ErrorKind",
    "FilterClause",
    "FilterGroup",
    "IdsClause",
    "MatchAllClause",
    "RawAttributeClause",
    "Report",
    "ResourceRecord",
    "RunMode",
    "RunResult",
    "RunStatus",
    "TagsClause",
    "TaskState",
    "TypeCriteria",
]
