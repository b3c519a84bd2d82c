"""Sweep engine: matching, deletion orchestration and run control.

Classes:
    Matcher: Lists live resources and selects matches per resource type
    DeletionOrchestrator: Tiered, bounded-retry deletion of matched resources
    RunController: Plan/apply run state machine producing reports
    AuditStorage: Audit log storage and retrieval
"""

from __future__ import annotations

from .audit import AuditStorage
from .controller import RunController
from .matcher import Matcher, MatchResult
from .orchestrator import DeletionOrchestrator

__all__ = [
    "AuditStorage",
    "DeletionOrchestrator",
    "MatchResult",
    "Matcher",
    "RunController",
]
