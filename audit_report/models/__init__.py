"""Report data model and the shared document tree."""

from .report import LoadItem, PowerParameters, ReportData, SnapshotGroup

__all__ = ["LoadItem", "PowerParameters", "ReportData", "SnapshotGroup"]
