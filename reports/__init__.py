"""Reports - client for the report/analytics service."""

from reports.models import HistoryEntityType, Report, ReportChart
from reports.client import ReportsClient

__all__ = [
    "HistoryEntityType",
    "Report",
    "ReportChart",
    "ReportsClient",
]
