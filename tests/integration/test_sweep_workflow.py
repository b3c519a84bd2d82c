"""Integration tests for the plan/apply workflow.

End-to-end tests running criteria files through the parser, matcher,
orchestrator and reporters against the fake cloud.
"""

from __future__ import annotations

import signal
import threading
from pathlib import Path

import pytest

from awsweeper.cli.main import cancellation
from awsweeper.criteria import load_criteria_file, parse
from awsweeper.models.report import RunMode
from awsweeper.models.run_result import RunStatus
from awsweeper.report.reporter import SweepReporter
from awsweeper.sweep.audit import AuditStorage
from awsweeper.sweep.controller import RunController
from awsweeper.sweep.matcher import Matcher
from awsweeper.sweep.orchestrator import DeletionOrchestrator
from tests.fixtures.cloud import FakeCloud, throttled

RANKS = {
    "instance": 2,
    "nat-gateway": 3,
    "eip": 4,
    "internet-gateway": 4,
    "subnet": 5,
    "security-group": 5,
    "vpc": 6,
}

CRITERIA = """\
instance:
  tags:
    stack: ci
nat-gateway:
  vpc_id: vpc-ci
eip:
  - tags: {stack: ci}
  - ids: [eipalloc-orphan]
internet-gateway:
  vpc_id: vpc-ci
subnet:
  all:
    - tags: {stack: ci}
    - cidr_block: {regex: "^10\\\\.0\\\\."}
security-group:
  tags:
    stack: ci
vpc:
  ids: [vpc-ci]
"""


@pytest.fixture
def cloud() -> FakeCloud:
    """Create a small CI network with dependencies between its pieces."""
    cloud = FakeCloud()
    instance = cloud.add("instance", "i-ci", tags={"stack": "ci"}, vpc_id="vpc-ci")
    cloud.add("instance", "i-prod", tags={"stack": "prod"}, vpc_id="vpc-prod")
    nat = cloud.add("nat-gateway", "nat-ci", vpc_id="vpc-ci")
    eip = cloud.add("eip", "eipalloc-ci", tags={"stack": "ci"})
    cloud.add("eip", "eipalloc-orphan")
    igw = cloud.add("internet-gateway", "igw-ci", vpc_id="vpc-ci")
    subnet = cloud.add("subnet", "subnet-ci", tags={"stack": "ci"}, cidr_block="10.0.1.0/24")
    cloud.add("subnet", "subnet-other", tags={"stack": "ci"}, cidr_block="172.16.0.0/24")
    group = cloud.add("security-group", "sg-ci", tags={"stack": "ci"})
    vpc = cloud.add("vpc", "vpc-ci")

    cloud.add_dependency(eip, nat)
    cloud.add_dependency(subnet, instance)
    cloud.add_dependency(subnet, nat)
    cloud.add_dependency(group, instance)
    cloud.add_dependency(vpc, subnet)
    cloud.add_dependency(vpc, igw)
    cloud.add_dependency(vpc, group)
    return cloud


@pytest.fixture
def criteria_file(tmp_path: Path) -> Path:
    """Write the CI teardown criteria to a file."""
    path = tmp_path / "teardown.yaml"
    path.write_text(CRITERIA)
    return path


class TestSweepWorkflow:
    """End-to-end plan and apply runs."""

    def test_plan_then_apply(self, cloud: FakeCloud, criteria_file: Path, tmp_path: Path) -> None:
        """Test the full teardown of a network in dependency order."""
        registry = cloud.registry(RANKS)
        criteria = parse(load_criteria_file(criteria_file), registry)
        controller = RunController(registry)

        plan = controller.run(RunMode.PLAN, criteria)

        expected = [
            ("instance", "i-ci"),
            ("nat-gateway", "nat-ci"),
            ("eip", "eipalloc-ci"),
            ("eip", "eipalloc-orphan"),
            ("internet-gateway", "igw-ci"),
            ("security-group", "sg-ci"),
            ("subnet", "subnet-ci"),
            ("vpc", "vpc-ci"),
        ]
        assert plan.matched() == expected
        assert cloud.delete_calls == []

        report = controller.run(RunMode.APPLY, criteria)

        assert report.matched() == expected
        assert all(r.status == RunStatus.DELETED for r in report.results)
        assert cloud.exists("instance", "i-prod")
        assert cloud.exists("subnet", "subnet-other")
        assert cloud.deleted.index(("instance", "i-ci")) < cloud.deleted.index(("subnet", "subnet-ci"))
        assert cloud.deleted[-1] == ("vpc", "vpc-ci")

        audit_file = AuditStorage(str(tmp_path / "audit")).log_report(report)
        assert audit_file.exists()
        assert "vpc-ci" in SweepReporter().format_terminal(report)

    def test_second_apply_finds_nothing(self, cloud: FakeCloud, criteria_file: Path) -> None:
        """Test that re-running after a successful teardown is a no-op."""
        registry = cloud.registry(RANKS)
        criteria = parse(load_criteria_file(criteria_file), registry)
        controller = RunController(registry)

        controller.run(RunMode.APPLY, criteria)
        calls_after_first = len(cloud.delete_calls)
        second = controller.run(RunMode.APPLY, criteria)

        assert second.results == ()
        assert len(cloud.delete_calls) == calls_after_first

    def test_throttled_listing_recovers(self, cloud: FakeCloud, criteria_file: Path) -> None:
        """Test that a transient listing error is retried within the run."""
        cloud.fail_list("vpc", throttled("vpc"))
        registry = cloud.registry(RANKS)
        criteria = parse(load_criteria_file(criteria_file), registry)
        controller = RunController(registry, matcher=Matcher(registry, backoff_base=0))

        report = controller.run(RunMode.APPLY, criteria)

        assert report.list_errors == ()
        assert not cloud.exists("vpc", "vpc-ci")

    def test_wrong_ranks_still_converge(self, cloud: FakeCloud, criteria_file: Path) -> None:
        """Test that the retry loop repairs a misordered registry."""
        upside_down = {name: 6 - rank for name, rank in RANKS.items()}
        registry = cloud.registry(upside_down)
        criteria = parse(load_criteria_file(criteria_file), registry)
        controller = RunController(
            registry,
            orchestrator_factory=lambda: DeletionOrchestrator(registry, max_attempts=10, max_workers=4),
        )

        report = controller.run(RunMode.APPLY, criteria)

        assert all(r.status == RunStatus.DELETED for r in report.results)
        assert any(r.attempts > 1 for r in report.results)


class TestCancellation:
    """Tests for the CLI cancellation helper."""

    def test_timeout_sets_event(self) -> None:
        """Test that the timeout cancels the run."""
        with cancellation(timeout=0.01) as cancel_event:
            assert cancel_event.wait(5)

    def test_sigint_handler_restored(self) -> None:
        """Test that the previous SIGINT handler is restored on exit."""
        previous = signal.getsignal(signal.SIGINT)

        with cancellation() as cancel_event:
            assert isinstance(cancel_event, threading.Event)
            assert signal.getsignal(signal.SIGINT) is not previous

        assert signal.getsignal(signal.SIGINT) is previous
