"""
Pipeline report ingestion, deduplication and search.
"""

from .catalog import CatalogService
from .enums import NO_SCM_SENTINELS, ResourceType
from .ingest import ReportIngestor
from .query import ReportFilters, ReportQueryEngine, ReportSearchRow
from .reports import ReportService
from .scm import SCMService
from .summary import SummaryService

__all__ = [
    "CatalogService",
    "NO_SCM_SENTINELS",
    "ReportFilters",
    "ReportIngestor",
    "ReportQueryEngine",
    "ReportSearchRow",
    "ReportService",
    "ResourceType",
    "SCMService",
    "SummaryService",
]
