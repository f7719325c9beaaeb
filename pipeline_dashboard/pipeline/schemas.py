"""
Request and response bodies for the pipeline API.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ReportSearchRequest(BaseModel):
    """Body of ``POST /api/pipeline/reports/search``."""

    scmid: str = Field("", description="SCM id, or none/null/nil for reports without one")
    sourceid: str = Field("", description="Source config id")
    conditionid: str = Field("", description="Condition config id")
    targetid: str = Field("", description="Target config id")
    limit: int = Field(0, description="Page size; 0 returns every match")
    page: int = Field(1, description="1-based page number")
    start_time: str = Field("", description="Inclusive lower bound, YYYY-MM-DD HH:MM:SS+HH:MM")
    end_time: str = Field("", description="Exclusive upper bound, YYYY-MM-DD HH:MM:SS+HH:MM")
    latest: bool = Field(False, description="Only the latest report per pipeline")


class ConfigSearchRequest(BaseModel):
    """Body of ``POST /api/pipeline/config/{type}/search``."""

    id: str = ""
    kind: str = ""
    config: Optional[Any] = Field(None, description="Containment filter on the stored document")
    limit: int = 0
    page: int = 1
    spec_only: bool = False


class ReportCreateResponse(BaseModel):
    message: str
    reportid: str


class ReportDetailResponse(BaseModel):
    message: str
    data: Dict[str, Any]
    nbReportsByID: int
    latestReportByID: Optional[Dict[str, Any]]

