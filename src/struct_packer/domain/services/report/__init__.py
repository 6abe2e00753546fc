#!/usr/bin/env python3

"""Layout report service."""

from .layout_report import LayoutReport, RepackSummary, ReportRow

__all__ = ["LayoutReport", "RepackSummary", "ReportRow"]
