"""Run report rendering and export (terminal, JSON, CSV)."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

from ..models.report import Report, RunMode
from ..models.run_result import RunStatus

STATUS_STYLES = {
    RunStatus.DELETED: "green",
    RunStatus.ALREADY_GONE: "cyan",
    RunStatus.FAILED: "red",
    RunStatus.SKIPPED_DRY_RUN: "yellow",
}

CSV_FIELDS = ["type", "id", "tags", "status", "error", "attempts"]


class SweepReporter:
    """Report sweep runs in various formats (terminal, JSON, CSV)."""

    def build_table(self, report: Report) -> Table:
        """Build a Rich table with one row per result."""
        title = "Planned deletions" if report.mode == RunMode.PLAN else "Deletion results"
        table = Table(title=title)
        table.add_column("Type", style="bold")
        table.add_column("ID")
        table.add_column("Tags")
        table.add_column("Status")
        table.add_column("Error")

        for result in report.results:
            style = STATUS_STYLES[result.status]
            tags = ", ".join(f"{k}={v}" for k, v in sorted(result.tags.items()))
            reason = result.reason or ""
            if len(reason) > 60:
                reason = reason[:57] + "..."

            table.add_row(
                result.resource_type,
                result.resource_id,
                tags,
                f"[{style}]{result.status.value}[/{style}]",
                reason,
            )

        return table

    def format_terminal(self, report: Report, width: int = 160) -> str:
        """Format a report for terminal output using Rich.

        Args:
            report: Run report
            width: Render width in columns

        Returns:
            Formatted string for terminal display
        """
        if not report.results:
            return "No matching resources found."

        console = Console(width=width)
        with console.capture() as capture:
            console.print(self.build_table(report))

        return capture.get()

    def generate_summary(self, report: Report) -> Dict[str, Any]:
        """Generate summary statistics for a report."""
        counts = report.counts()
        return {
            "mode": report.mode.value,
            "total": len(report.results),
            "deleted_count": counts[RunStatus.DELETED.value],
            "already_gone_count": counts[RunStatus.ALREADY_GONE.value],
            "failed_count": counts[RunStatus.FAILED.value],
            "skipped_count": counts[RunStatus.SKIPPED_DRY_RUN.value],
            "list_error_count": len(report.list_errors),
            "cancelled": report.cancelled,
        }

    def export_json(self, report: Report, filepath: str) -> None:
        """Export a report to JSON format.

        Args:
            report: Run report
            filepath: Output file path
        """
        output = report.to_dict()
        output["summary"] = self.generate_summary(report)

        output_path = Path(filepath)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w") as f:
            json.dump(output, f, indent=2)

    def export_csv(self, report: Report, filepath: str) -> None:
        """Export report results to CSV format, one row per resource.

        Args:
            report: Run report
            filepath: Output file path
        """
        output_path = Path(filepath)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()

            for result in report.results:
                writer.writerow(
                    {
                        "type": result.resource_type,
                        "id": result.resource_id,
                        "tags": ";".join(f"{k}={v}" for k, v in sorted(result.tags.items())),
                        "status": result.status.value,
                        "error": result.reason or "",
                        "attempts": result.attempts,
                    }
                )
