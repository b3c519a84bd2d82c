"""Run report model.

Aggregated outcome of a plan or apply run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .run_result import RunResult, RunStatus


class RunMode(Enum):
    """Run mode."""

    PLAN = "plan"
    APPLY = "apply"


@dataclass(frozen=True)
class Report:
    """Report entity.

    Results are sorted by (dependency rank, type, id), so two runs that see the
    same cloud state produce equal reports. Identity and timing fields do not
    take part in equality.

    Validation rules:
        - plan reports contain only skipped-dry-run results
        - apply reports never contain skipped-dry-run results

    Attributes:
        mode: plan or apply
        results: Terminal result per matched task
        list_errors: Resource type -> listing failure message
        cancelled: True if the run was cancelled before completion
        run_id: Unique identifier for the run
        started_at: When the run started (UTC)
        completed_at: When the run completed (UTC)
        criteria: Human-readable criteria per type (optional)
    """

    mode: RunMode
    results: Tuple[RunResult, ...]
    list_errors: Tuple[Tuple[str, str], ...] = ()
    cancelled: bool = False
    run_id: str = field(default="", compare=False)
    started_at: Optional[datetime] = field(default=None, compare=False)
    completed_at: Optional[datetime] = field(default=None, compare=False)
    criteria: Optional[Dict[str, str]] = field(default=None, compare=False, hash=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.results, key=lambda r: r.sort_key))
        object.__setattr__(self, "results", ordered)
        object.__setattr__(self, "list_errors", tuple(sorted(self.list_errors)))

        for result in self.results:
            if self.mode == RunMode.PLAN and result.status != RunStatus.SKIPPED_DRY_RUN:
                raise ValueError(f"Plan report cannot contain {result.status.value} results")
            if self.mode == RunMode.APPLY and result.status == RunStatus.SKIPPED_DRY_RUN:
                raise ValueError("Apply report cannot contain skipped-dry-run results")

    @property
    def failed(self) -> List[RunResult]:
        return [r for r in self.results if r.status == RunStatus.FAILED]

    @property
    def has_failures(self) -> bool:
        """True if any task failed or any resource type could not be listed."""
        return bool(self.failed) or bool(self.list_errors)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def counts(self) -> Dict[str, int]:
        """Count results by status."""
        counts = {status.value: 0 for status in RunStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts

    def matched(self) -> List[Tuple[str, str]]:
        return [(r.resource_type, r.resource_id) for r in self.results]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode.value,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "criteria": self.criteria or {},
            "counts": self.counts(),
            "list_errors": dict(self.list_errors),
            "results": [r.to_dict() for r in self.results],
        }
