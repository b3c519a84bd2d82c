"""Criteria document loading and validation."""

from __future__ import annotations

from .loader import load_criteria_file
from .parser import parse

__all__ = ["load_criteria_file", "parse"]
