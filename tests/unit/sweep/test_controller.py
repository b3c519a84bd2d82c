"""Tests for RunController."""

from __future__ import annotations

import threading
from unittest.mock import Mock

import pytest

from awsweeper.criteria.parser import parse
from awsweeper.models.report import RunMode
from awsweeper.models.run_result import RunStatus
from awsweeper.registry.registry import ResourceRegistry
from awsweeper.sweep.controller import RunController
from tests.fixtures.cloud import FakeCloud, access_denied

RANKS = {"load-balancer": 1, "instance": 2, "subnet": 5, "vpc": 6}


@pytest.fixture
def cloud() -> FakeCloud:
    """Create a fake cloud."""
    return FakeCloud()


@pytest.fixture
def registry(cloud: FakeCloud) -> ResourceRegistry:
    """Create a registry bound to the fake cloud."""
    return cloud.registry(RANKS)


class TestRunController:
    """Test suite for RunController."""

    def test_apply_deletes_by_id(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test deleting a load balancer selected by id."""
        cloud.add("load-balancer", "lb-foo")
        cloud.add("load-balancer", "lb-keep")

        report = RunController(registry).run(RunMode.APPLY, parse({"load-balancer": {"ids": ["lb-foo"]}}, registry))

        assert len(report.results) == 1
        result = report.results[0]
        assert (result.resource_type, result.resource_id, result.status) == ("load-balancer", "lb-foo", RunStatus.DELETED)
        assert not report.has_failures
        assert cloud.exists("load-balancer", "lb-keep")

    def test_plan_by_tags_makes_no_delete_calls(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that plan lists only the matching load balancer and deletes nothing."""
        cloud.add("load-balancer", "lb-1", tags={"foo": "bar"})
        cloud.add("load-balancer", "lb-2", tags={"foo": "baz"})

        report = RunController(registry).run(RunMode.PLAN, parse({"load-balancer": {"tags": {"foo": "bar"}}}, registry))

        assert report.matched() == [("load-balancer", "lb-1")]
        assert report.results[0].status == RunStatus.SKIPPED_DRY_RUN
        assert report.results[0].tags == {"foo": "bar"}
        assert cloud.delete_calls == []

    def test_plan_never_builds_orchestrator(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that the orchestrator factory is not used in plan mode."""
        cloud.add("vpc", "vpc-1")
        factory = Mock()

        RunController(registry, orchestrator_factory=factory).run(RunMode.PLAN, parse({"vpc": None}, registry))

        factory.assert_not_called()

    def test_plan_is_idempotent(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that two plans against the same state give equal reports."""
        cloud.add("subnet", "subnet-1", tags={"env": "ci"})
        cloud.add("subnet", "subnet-2", tags={"env": "ci"})
        criteria = parse({"subnet": {"tags": {"env": "ci"}}}, registry)
        controller = RunController(registry)

        first = controller.run(RunMode.PLAN, criteria)
        second = controller.run(RunMode.PLAN, criteria)

        assert first == second
        assert first.run_id != second.run_id

    def test_list_failure_isolated(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that a listing failure for one type does not stop another."""
        cloud.add("subnet", "subnet-1")
        cloud.add("instance", "i-1")
        cloud.fail_list("instance", access_denied("instance"))

        report = RunController(registry).run(RunMode.APPLY, parse({"instance": None, "subnet": None}, registry))

        assert report.matched() == [("subnet", "subnet-1")]
        assert report.results[0].status == RunStatus.DELETED
        assert dict(report.list_errors).keys() == {"instance"}
        assert report.has_failures

    def test_apply_with_nothing_matched(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test an apply run with no matches."""
        factory = Mock()

        report = RunController(registry, orchestrator_factory=factory).run(
            RunMode.APPLY, parse({"vpc": {"ids": ["vpc-none"]}}, registry)
        )

        assert report.results == ()
        factory.assert_not_called()

    def test_apply_respects_dependencies(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test a full teardown of a small network."""
        instance = cloud.add("instance", "i-1", tags={"stack": "ci"})
        subnet = cloud.add("subnet", "subnet-1", tags={"stack": "ci"})
        vpc = cloud.add("vpc", "vpc-1", tags={"stack": "ci"})
        cloud.add_dependency(subnet, instance)
        cloud.add_dependency(vpc, subnet)
        selector = {"tags": {"stack": "ci"}}

        report = RunController(registry).run(
            RunMode.APPLY, parse({"vpc": selector, "subnet": selector, "instance": selector}, registry)
        )

        assert [r.status for r in report.results] == [RunStatus.DELETED] * 3
        assert cloud.deleted == [instance, subnet, vpc]

    def test_apply_restricted_to_confirmed_keys(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that apply leaves alone matches outside the confirmed plan."""
        cloud.add("load-balancer", "lb-1", tags={"foo": "bar"})
        criteria = parse({"load-balancer": {"tags": {"foo": "bar"}}}, registry)
        controller = RunController(registry)

        plan = controller.run(RunMode.PLAN, criteria)
        cloud.add("load-balancer", "lb-new", tags={"foo": "bar"})
        report = controller.run(RunMode.APPLY, criteria, restrict_to=plan.matched())

        assert report.matched() == [("load-balancer", "lb-1")]
        assert cloud.deleted == [("load-balancer", "lb-1")]
        assert cloud.exists("load-balancer", "lb-new")

    def test_report_metadata(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test run identity, timing and criteria in the report."""
        report = RunController(registry).run(RunMode.PLAN, parse({"vpc": None}, registry))

        assert report.run_id.startswith("run_")
        assert report.started_at <= report.completed_at
        assert report.criteria == {"vpc": "(all resources)"}

    def test_cancelled_apply(self, cloud: FakeCloud, registry: ResourceRegistry) -> None:
        """Test that a cancelled apply returns a report instead of raising."""
        cloud.add("vpc", "vpc-1")
        cancel_event = threading.Event()
        cancel_event.set()

        report = RunController(registry).run(RunMode.APPLY, parse({"vpc": None}, registry), cancel_event)

        assert report.cancelled
        assert cloud.delete_calls == []
