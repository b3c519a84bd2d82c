"""Matcher: lists live resources and selects the ones the criteria match.

Read-only. Listing calls for distinct resource types run in parallel on a
bounded thread pool; a failure listing one type never stops the others.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import ProviderError
from ..models.deletion_task import DeletionTask
from ..models.filter_clause import CriteriaModel, TypeCriteria
from ..models.resource_record import ResourceRecord
from ..registry.registry import ResourceRegistry, ResourceTypeDescriptor

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Output of a matcher run.

    Attributes:
        tasks: Resource type -> deletion tasks sorted by id
        records: Resource type -> every record listed for that type
        list_errors: Resource type -> listing failure
        cancelled: True if cancellation stopped some listings
    """

    tasks: Dict[str, List[DeletionTask]] = field(default_factory=dict)
    records: Dict[str, List[ResourceRecord]] = field(default_factory=dict)
    list_errors: Dict[str, ProviderError] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def task_count(self) -> int:
        return sum(len(tasks) for tasks in self.tasks.values())

    def all_tasks(self) -> List[DeletionTask]:
        return [task for resource_type in sorted(self.tasks) for task in self.tasks[resource_type]]


class Matcher:
    """Evaluates criteria against the records returned by registry listers.

    Attributes:
        registry: Resource type registry
        max_workers: Maximum concurrent listing calls
        list_attempts: Attempts per type for transient listing failures
        backoff_base: Base delay in seconds for exponential listing backoff
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        max_workers: int = 10,
        list_attempts: int = 3,
        backoff_base: float = 1.0,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if list_attempts < 1:
            raise ValueError("list_attempts must be >= 1")

        self.registry = registry
        self.max_workers = max_workers
        self.list_attempts = list_attempts
        self.backoff_base = backoff_base

    def match(self, criteria: CriteriaModel, cancel_event: Optional[threading.Event] = None) -> MatchResult:
        """List every type in the criteria and collect matching resources.

        Args:
            criteria: Parsed criteria model
            cancel_event: Set to stop issuing further listing calls (optional)

        Returns:
            MatchResult with tasks per type and recorded listing errors
        """
        result = MatchResult()
        if not criteria:
            return result

        workers = min(self.max_workers, len(criteria))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._list_type, self.registry.get(resource_type), cancel_event): resource_type
                for resource_type in criteria
            }

            for future in as_completed(futures):
                resource_type = futures[future]
                try:
                    records = future.result()
                except ProviderError as e:
                    logger.error(f"Failed to list {resource_type}: {e}")
                    result.list_errors[resource_type] = e
                    continue

                if records is None:
                    result.cancelled = True
                    continue

                result.records[resource_type] = records
                result.tasks[resource_type] = self._select(criteria[resource_type], records)

        logger.info(
            f"Matched {result.task_count} resource(s) across {len(result.tasks)} type(s)"
            + (f", {len(result.list_errors)} type(s) failed to list" if result.list_errors else "")
        )
        return result

    def _list_type(
        self,
        descriptor: ResourceTypeDescriptor,
        cancel_event: Optional[threading.Event],
    ) -> Optional[List[ResourceRecord]]:
        """List and normalize one resource type.

        Returns:
            Records of the listed type, or None if cancelled

        Raises:
            ProviderError: If listing fails after all attempts
        """
        for attempt in range(self.list_attempts):
            if cancel_event is not None and cancel_event.is_set():
                logger.debug(f"Listing of {descriptor.name} cancelled")
                return None

            try:
                raw_records = descriptor.lister()
            except ProviderError as e:
                if e.resource_type is None:
                    e.resource_type = descriptor.name
                if e.is_transient and attempt < self.list_attempts - 1:
                    wait_time = self.backoff_base * (2**attempt)
                    logger.debug(
                        f"Transient error listing {descriptor.name}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self.list_attempts}): {e}"
                    )
                    if self._backoff(wait_time, cancel_event):
                        logger.debug(f"Listing of {descriptor.name} cancelled during backoff")
                        return None
                    continue
                raise
            except Exception as e:
                raise ProviderError(f"Unexpected error listing: {e}", resource_type=descriptor.name) from e

            try:
                return self._extract(descriptor, raw_records)
            except Exception as e:
                raise ProviderError(
                    f"Unexpected error reading {descriptor.name} records: {e}", resource_type=descriptor.name
                ) from e

        raise ProviderError("Listing failed", resource_type=descriptor.name)

    @staticmethod
    def _backoff(wait_time: float, cancel_event: Optional[threading.Event]) -> bool:
        """Sleep wait_time seconds. Returns True if cancelled while waiting."""
        if cancel_event is not None:
            return cancel_event.wait(wait_time)
        time.sleep(wait_time)
        return False

    def _extract(self, descriptor: ResourceTypeDescriptor, raw_records: List) -> List[ResourceRecord]:
        records: List[ResourceRecord] = []
        for raw in raw_records:
            try:
                record = descriptor.extractor(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {descriptor.name} record: {e}")
                continue

            if record.type != descriptor.name:
                logger.warning(f"Skipping record of type {record.type} returned by {descriptor.name} lister")
                continue
            records.append(record)

        logger.debug(f"Listed {len(records)} {descriptor.name} resource(s)")
        return records

    def _select(self, criteria: TypeCriteria, records: List[ResourceRecord]) -> List[DeletionTask]:
        selected: Dict[str, DeletionTask] = {}
        for record in records:
            if record.id in selected:
                continue
            if criteria.matches(record):
                selected[record.id] = DeletionTask.from_record(record)

        return [selected[resource_id] for resource_id in sorted(selected)]
