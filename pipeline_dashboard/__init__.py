"""
Pipeline Dashboard

Collects automation pipeline reports and serves them back with their
configuration and repository references deduplicated.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("pipeline-dashboard")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .errors import (
    ConsistencyError,
    DashboardError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .pipeline import (
    CatalogService,
    ReportFilters,
    ReportIngestor,
    ReportQueryEngine,
    ReportService,
    ResourceType,
    SCMService,
    SummaryService,
)

__all__ = [
    "CatalogService",
    "ConsistencyError",
    "DashboardError",
    "NotFoundError",
    "ReportFilters",
    "ReportIngestor",
    "ReportQueryEngine",
    "ReportService",
    "ResourceType",
    "SCMService",
    "StorageError",
    "SummaryService",
    "ValidationError",
]
