"""Run controller for plan and apply runs.

Plan runs only match; the orchestrator is never constructed on that path.
Apply runs match, then hand every matched task to the orchestrator.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Collection, List, Optional, Tuple

from ..models.filter_clause import CriteriaModel
from ..models.report import Report, RunMode
from ..models.run_result import RunResult
from ..registry.registry import ResourceRegistry
from .matcher import Matcher, MatchResult
from .orchestrator import DeletionOrchestrator

logger = logging.getLogger(__name__)


class RunController:
    """Run controller orchestrator.

    Wires the matcher and the deletion orchestrator together and produces the
    run report. Running a plan twice against unchanged cloud state yields
    equal reports.

    Attributes:
        registry: Resource type registry
        matcher: Matcher used by every run
        orchestrator_factory: Builds the orchestrator for apply runs
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        matcher: Optional[Matcher] = None,
        orchestrator_factory: Optional[Callable[[], DeletionOrchestrator]] = None,
    ) -> None:
        """Initialize run controller.

        Args:
            registry: Resource type registry
            matcher: Matcher instance (default: Matcher(registry))
            orchestrator_factory: Zero-argument callable returning an
                orchestrator (default: DeletionOrchestrator(registry))
        """
        self.registry = registry
        self.matcher = matcher or Matcher(registry)
        self.orchestrator_factory = orchestrator_factory or (lambda: DeletionOrchestrator(registry))

    def run(
        self,
        mode: RunMode,
        criteria: CriteriaModel,
        cancel_event: Optional[threading.Event] = None,
        restrict_to: Optional[Collection[Tuple[str, str]]] = None,
    ) -> Report:
        """Run a plan or apply.

        Args:
            mode: RunMode.PLAN or RunMode.APPLY
            criteria: Parsed criteria model
            cancel_event: Set to cancel the run (optional)
            restrict_to: (type, id) keys an apply may delete, usually the
                keys of a confirmed plan. Matches outside this set are left
                alone (optional, default: every match)

        Returns:
            Report for the run
        """
        run_id = f"run_{uuid.uuid4()}"
        started_at = datetime.now(timezone.utc)
        logger.info(f"Starting {mode.value} run {run_id} for {len(criteria)} resource type(s)")

        match_result = self.matcher.match(criteria, cancel_event=cancel_event)
        if restrict_to is not None:
            self._restrict(match_result, set(restrict_to))

        if mode == RunMode.PLAN:
            results = self._plan_results(match_result)
            cancelled = match_result.cancelled
        else:
            results = self._apply(match_result, cancel_event)
            cancelled = match_result.cancelled or (cancel_event is not None and cancel_event.is_set())

        report = Report(
            mode=mode,
            results=tuple(results),
            list_errors=tuple((name, str(error)) for name, error in match_result.list_errors.items()),
            cancelled=cancelled,
            run_id=run_id,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            criteria=criteria.to_dict(),
        )

        counts = report.counts()
        logger.info(
            f"Finished {mode.value} run {run_id}: "
            + ", ".join(f"{count} {status}" for status, count in counts.items() if count)
            + (" (cancelled)" if report.cancelled else "")
        )
        return report

    def _plan_results(self, match_result: MatchResult) -> List[RunResult]:
        return [
            RunResult.skipped(task, dependency_rank=self.registry.rank(task.resource_type))
            for task in match_result.all_tasks()
        ]

    def _apply(self, match_result: MatchResult, cancel_event: Optional[threading.Event]) -> List[RunResult]:
        if match_result.task_count == 0:
            logger.info("Nothing to delete")
            return []

        orchestrator = self.orchestrator_factory()
        return orchestrator.run(match_result.tasks, cancel_event=cancel_event)

    @staticmethod
    def _restrict(match_result: MatchResult, allowed: Collection[Tuple[str, str]]) -> None:
        for resource_type, tasks in match_result.tasks.items():
            kept = [task for task in tasks if task.key in allowed]
            for task in tasks:
                if task.key not in allowed:
                    logger.warning(f"Leaving {resource_type} {task.resource_id} alone: not in the confirmed plan")
            match_result.tasks[resource_type] = kept
