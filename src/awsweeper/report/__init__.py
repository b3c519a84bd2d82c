"""Run report rendering and export."""

from __future__ import annotations

from .reporter import SweepReporter

__all__ = ["SweepReporter"]
