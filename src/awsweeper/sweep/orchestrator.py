"""Deletion orchestrator.

Deletes matched resources tier by tier in ascending dependency rank and
retries dependency violations in later passes until every task is terminal.

Each pass walks the tiers in rank order. Inside a tier, pending tasks are
deleted in parallel on a bounded thread pool and the tier finishes before the
next one starts. A task that hits a dependency violation is re-queued for the
next pass, which starts once the whole current pass is done (after
retry_delay seconds). Every task is attempted at most max_attempts times, so
a run makes at most max_attempts passes.

Only the coordinating thread mutates the pending set. A task is handed to at
most one worker per pass and the coordinator waits for the tier, so no
resource ever has two delete calls in flight.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import DependencyInUseError, NotFoundError, ProviderError, RunCancelledError
from ..models.deletion_task import DeletionTask, ErrorKind, TaskState
from ..models.run_result import RunResult
from ..registry.registry import ResourceRegistry, ResourceTypeDescriptor

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_MAX_WORKERS = 10

TaskKey = Tuple[str, str]


class DeletionOrchestrator:
    """Bounded retry-until-convergence deletion engine.

    Attributes:
        registry: Resource type registry providing deleters and ranks
        max_attempts: Maximum delete calls per task
        max_workers: Maximum concurrent delete calls
        retry_delay: Seconds to wait between passes
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        retry_delay: float = 0.0,
        on_result: Optional[Callable[[RunResult], None]] = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            registry: Resource type registry
            max_attempts: Maximum delete calls per task (default: 10)
            max_workers: Maximum concurrent delete calls (default: 10)
            retry_delay: Seconds between passes (default: 0)
            on_result: Called with each RunResult as soon as it is final (optional)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")

        self.registry = registry
        self.max_attempts = max_attempts
        self.max_workers = max_workers
        self.retry_delay = retry_delay
        self.on_result = on_result

    def run(
        self,
        tasks_by_type: Mapping[str, Iterable[DeletionTask]],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[RunResult]:
        """Delete every task and return one terminal result per task.

        Args:
            tasks_by_type: Resource type -> tasks to delete
            cancel_event: Set to stop issuing new delete calls (optional)

        Returns:
            RunResults ordered by (rank, type, id)
        """
        pending = self._build_pending(tasks_by_type)
        tiers = self._build_tiers(pending)
        results: Dict[TaskKey, RunResult] = {}

        if not pending:
            return []

        logger.info(f"Deleting {len(pending)} resource(s) in {len(tiers)} tier(s)")

        pass_number = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while pending and not self._cancelled(cancel_event):
                pass_number += 1
                if pass_number > 1 and self._wait_between_passes(cancel_event):
                    break

                progress = 0
                for rank, keys in tiers:
                    tier_tasks = [pending[key] for key in keys if key in pending]
                    if not tier_tasks:
                        continue
                    if self._cancelled(cancel_event):
                        break

                    for task, error in self._run_tier(executor, tier_tasks, cancel_event):
                        self._apply_outcome(task, error)
                        if task.state.is_terminal:
                            del pending[task.key]
                            self._record(results, task, rank)
                            if task.state == TaskState.SUCCEEDED:
                                progress += 1

                retrying = sum(1 for task in pending.values() if task.state == TaskState.RETRYING)
                logger.info(f"Pass {pass_number}: {progress} deleted, {retrying} waiting on dependencies")
                if progress == 0 and retrying:
                    logger.debug(f"Pass {pass_number} made no progress")

        for task in sorted(pending.values(), key=lambda t: t.key):
            # Cancellation is the only way out of the loop with pending tasks
            task.fail(ErrorKind.CANCELLED, "cancelled")
            self._record(results, task, self.registry.rank(task.resource_type))

        if pending:
            logger.warning(f"Run cancelled; {len(pending)} task(s) were not completed")

        return sorted(results.values(), key=lambda r: r.sort_key)

    def _build_pending(self, tasks_by_type: Mapping[str, Iterable[DeletionTask]]) -> Dict[TaskKey, DeletionTask]:
        pending: Dict[TaskKey, DeletionTask] = {}
        for resource_type, tasks in tasks_by_type.items():
            self.registry.get(resource_type)
            for task in tasks:
                if task.resource_type != resource_type:
                    raise ValueError(f"Task {task.key} listed under resource type {resource_type}")
                if task.key in pending:
                    logger.warning(f"Ignoring duplicate task for {task.resource_type} {task.resource_id}")
                    continue
                if task.state != TaskState.PENDING:
                    raise ValueError(f"Task {task.key} is not pending: {task.state.value}")
                pending[task.key] = task
        return pending

    def _build_tiers(self, pending: Mapping[TaskKey, DeletionTask]) -> List[Tuple[int, List[TaskKey]]]:
        tiers: Dict[int, List[TaskKey]] = {}
        for key in sorted(pending):
            tiers.setdefault(self.registry.rank(key[0]), []).append(key)
        return sorted(tiers.items())

    def _run_tier(
        self,
        executor: ThreadPoolExecutor,
        tasks: List[DeletionTask],
        cancel_event: Optional[threading.Event],
    ) -> Iterable[Tuple[DeletionTask, Optional[Exception]]]:
        futures: Dict[Future, DeletionTask] = {}
        for task in tasks:
            descriptor = self.registry.get(task.resource_type)
            futures[executor.submit(self._attempt, descriptor, task, cancel_event)] = task

        for future in as_completed(futures):
            yield futures[future], future.result()

    def _attempt(
        self,
        descriptor: ResourceTypeDescriptor,
        task: DeletionTask,
        cancel_event: Optional[threading.Event],
    ) -> Optional[Exception]:
        """Issue one delete call. Runs on a worker thread.

        The worker owns the task until it returns; the error is returned
        rather than raised so the coordinator classifies every outcome.
        """
        if self._cancelled(cancel_event):
            return RunCancelledError(f"{task.resource_type} {task.resource_id} not attempted")

        task.begin_attempt()
        logger.debug(f"Deleting {task.resource_type} {task.resource_id} (attempt {task.attempts})")
        try:
            descriptor.deleter(task.resource_id)
        except Exception as e:
            return e
        return None

    def _apply_outcome(self, task: DeletionTask, error: Optional[Exception]) -> None:
        if error is None:
            logger.info(f"Deleted {task.resource_type} {task.resource_id}")
            task.succeed()
        elif isinstance(error, RunCancelledError):
            task.fail(ErrorKind.CANCELLED, "cancelled")
        elif isinstance(error, NotFoundError):
            logger.info(f"{task.resource_type} {task.resource_id} already deleted")
            task.succeed(already_gone=True)
        elif isinstance(error, DependencyInUseError):
            if task.attempts >= self.max_attempts:
                message = f"retry budget exhausted after {task.attempts} attempts: {error}"
                logger.error(f"Failed to delete {task.resource_type} {task.resource_id}: {message}")
                task.fail(ErrorKind.RETRY_EXHAUSTED, message)
            else:
                logger.debug(f"Dependency violation for {task.resource_type} {task.resource_id}: {error}")
                task.retry(str(error))
        elif isinstance(error, ProviderError):
            logger.error(f"Failed to delete {task.resource_type} {task.resource_id}: {error}")
            task.fail(ErrorKind.PROVIDER, str(error))
        else:
            logger.error(f"Unexpected error deleting {task.resource_type} {task.resource_id}: {error}")
            task.fail(ErrorKind.PROVIDER, f"unexpected error: {error}")

    def _record(self, results: Dict[TaskKey, RunResult], task: DeletionTask, rank: int) -> None:
        result = RunResult.from_task(task, dependency_rank=rank)
        results[task.key] = result
        if self.on_result is not None:
            self.on_result(result)

    def _wait_between_passes(self, cancel_event: Optional[threading.Event]) -> bool:
        """Sleep retry_delay seconds. Returns True if cancelled while waiting."""
        if self.retry_delay <= 0:
            return self._cancelled(cancel_event)
        if cancel_event is not None:
            return cancel_event.wait(self.retry_delay)
        time.sleep(self.retry_delay)
        return False

    @staticmethod
    def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()
