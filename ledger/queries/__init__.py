"""Report execution package."""

from ledger.queries.executor import UNCATEGORIZED, ReportExecutor

__all__ = ["UNCATEGORIZED", "ReportExecutor"]
