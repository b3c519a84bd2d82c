"""Audit storage for sweep runs.

Stores and retrieves run reports in YAML format for compliance and troubleshooting.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from ..models.report import Report


class AuditStorage:
    """Audit log storage and retrieval.

    Stores run reports as YAML files organized by year/month.

    Storage structure:
        ~/.awsweeper/audit-logs/
            2026/
                10/
                    run-run_123.yaml
                    run-run_456.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.awsweeper/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".awsweeper" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_report(self, report: Report, account_id: Optional[str] = None, region: Optional[str] = None) -> Path:
        """Write a run report to audit storage.

        Overwrites an existing log with the same run ID.

        Args:
            report: Report to log
            account_id: AWS account the run targeted (optional)
            region: AWS region the run targeted (optional)

        Returns:
            Path of the written audit file
        """
        timestamp = report.started_at or datetime.now(timezone.utc)
        year_month_dir = self.storage_dir / str(timestamp.year) / f"{timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "sweep_run",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "run": {
                "run_id": report.run_id,
                "mode": report.mode.value,
                "account_id": account_id,
                "region": region,
                "started_at": report.started_at.isoformat() if report.started_at else None,
                "completed_at": report.completed_at.isoformat() if report.completed_at else None,
                "duration_seconds": report.duration_seconds,
                "cancelled": report.cancelled,
                "criteria": report.criteria or {},
                "counts": report.counts(),
                "list_errors": dict(report.list_errors),
            },
            "results": [result.to_dict() for result in report.results],
        }

        audit_file = year_month_dir / f"run-{report.run_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)

        return audit_file

    def get_run(self, run_id: str) -> Optional[dict]:
        """Retrieve a run audit log by ID.

        Args:
            run_id: Run ID to retrieve

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/run-{run_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)

        return None

    def query_runs(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query runs within a date range.

        Args:
            since: Start time (inclusive, timezone-aware), None for all
            until: End time (inclusive, timezone-aware), None for all

        Returns:
            List of run audit logs ordered by storage path
        """
        results = []

        for year_dir in sorted(self.storage_dir.glob("*")):
            if not year_dir.is_dir():
                continue

            for month_dir in sorted(year_dir.glob("*")):
                if not month_dir.is_dir():
                    continue

                for audit_file in sorted(month_dir.glob("run-*.yaml")):
                    with open(audit_file, "r") as f:
                        audit_data = yaml.safe_load(f)

                    started_at = audit_data["run"].get("started_at")
                    if started_at is None:
                        continue
                    timestamp = datetime.fromisoformat(started_at)

                    if since and timestamp < since:
                        continue
                    if until and timestamp > until:
                        continue

                    results.append(audit_data)

        return results
