"""
Database package for Pipeline Dashboard.
"""

from .base import Base, Database, get_database_url, get_db
from .models import (
    CONFIG_MODELS,
    ConfigConditionModel,
    ConfigSourceModel,
    ConfigTargetModel,
    PipelineReportModel,
    SCMModel,
)

__all__ = [
    "Base",
    "Database",
    "get_database_url",
    "get_db",
    "CONFIG_MODELS",
    "ConfigSourceModel",
    "ConfigConditionModel",
    "ConfigTargetModel",
    "PipelineReportModel",
    "SCMModel",
]
