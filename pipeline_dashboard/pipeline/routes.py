"""
Pipeline API Routes.

REST endpoints for reports, config catalog entries and SCM registry entries.
All endpoints are prefixed with /api/pipeline.
"""

import json
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..db.base import get_db
from ..errors import ValidationError
from .catalog import CatalogService
from .enums import ResourceType
from .ingest import ReportIngestor
from .pagination import check_pagination
from .query import ReportFilters, ReportQueryEngine
from .reports import ReportService
from .schemas import ConfigSearchRequest, ReportCreateResponse, ReportDetailResponse, ReportSearchRequest
from .scm import SCMService
from .summary import SummaryService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/pipeline", tags=["Pipeline"])


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _parse_flag(value: Optional[str], name: str) -> bool:
    if not value:
        return False
    normalized = value.strip().lower()
    if normalized in ("1", "t", "true", "yes"):
        return True
    if normalized not in ("0", "f", "false", "no"):
        logger.warning("ignoring_flag_param", param=name, value=value)
    return False


# =============================================================================
# Report Endpoints
# =============================================================================


@router.get("/reports")
def list_reports(
    scmid: str = "",
    limit: Optional[int] = None,
    page: Optional[int] = None,
    start_time: str = "",
    end_time: str = "",
    latest: Optional[str] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """List reports, optionally restricted to one SCM and a time range."""
    limit, page = check_pagination(limit, page, settings.max_page_limit)
    engine = ReportQueryEngine(db, recency_days=settings.monitoring_duration_days)
    rows, total_count = engine.search(
        ReportFilters(scm_id=scmid),
        limit=limit,
        page=page,
        start_time=start_time,
        end_time=end_time,
        latest=_parse_flag(latest, "latest"),
    )
    return {"data": [row.to_dict() for row in rows], "total_count": total_count}


@router.post("/reports/search")
def search_reports(
    request: ReportSearchRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Search reports by SCM, config resource and time range."""
    limit, page = check_pagination(request.limit, request.page, settings.max_page_limit)
    engine = ReportQueryEngine(db, recency_days=settings.monitoring_duration_days)
    rows, total_count = engine.search(
        ReportFilters(
            scm_id=request.scmid,
            source_id=request.sourceid,
            condition_id=request.conditionid,
            target_id=request.targetid,
        ),
        limit=limit,
        page=page,
        start_time=request.start_time,
        end_time=request.end_time,
        latest=request.latest,
    )
    return {"data": [row.to_dict() for row in rows], "total_count": total_count}


@router.get("/reports/{report_id}", response_model=ReportDetailResponse)
def get_report(
    report_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Get a report with the run count and latest run of its pipeline."""
    service = ReportService(db)
    report = service.get(report_id)

    latest = service.latest_by_pipeline_id(report.pipeline_id)
    return {
        "message": "success!",
        "data": report.to_dict(),
        "nbReportsByID": service.count_by_pipeline_id(report.pipeline_id),
        "latestReportByID": latest.to_dict() if latest else None,
    }


@router.post("/reports", status_code=201, response_model=ReportCreateResponse)
def create_report(
    report: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Publish a new pipeline report."""
    ingestor = ReportIngestor(db, store_source_branch=settings.scm_store_source_branch)
    report_id = ingestor.ingest(report)
    return {"message": "report successfully published", "reportid": report_id}


@router.put("/reports/{report_id}")
def update_report(report_id: str) -> Dict[str, Any]:
    """Reports cannot be modified once published."""
    return {"message": "pipeline update is not supported yet!"}


@router.delete("/reports/{report_id}")
def delete_report(
    report_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Delete a report."""
    ReportService(db).delete(report_id)
    return {"message": "Pipeline report deleted successfully"}


# =============================================================================
# Config Catalog Endpoints
# =============================================================================


def _parse_config_filter(raw: Optional[str]) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("config filter is not valid JSON") from None


@router.get("/config/kinds")
def list_config_kinds(
    resource_type: str = Query("", alias="type"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Distinct kinds recorded for one config resource type."""
    if not resource_type:
        raise ValidationError("no type provided")
    return {"data": CatalogService(db).kinds(ResourceType.from_value(resource_type))}


@router.get("/config/{resource_type}")
def list_configs(
    resource_type: str,
    id: str = "",
    kind: str = "",
    config: str = "",
    limit: Optional[int] = None,
    page: Optional[int] = None,
    spec_only: bool = False,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """List config catalog entries of one resource type."""
    rt = ResourceType.from_value(resource_type)
    limit, page = check_pagination(limit, page, settings.max_page_limit)
    configs, total_count = CatalogService(db).search(
        rt,
        kind=kind,
        resource_id=id,
        config=_parse_config_filter(config),
        limit=limit,
        page=page,
        spec_only=spec_only,
    )
    return {"configs": configs, "total_count": total_count}


@router.post("/config/{resource_type}/search")
def search_configs(
    resource_type: str,
    request: ConfigSearchRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Search config catalog entries of one resource type."""
    rt = ResourceType.from_value(resource_type)
    limit, page = check_pagination(request.limit, request.page, settings.max_page_limit)
    configs, total_count = CatalogService(db).search(
        rt,
        kind=request.kind,
        resource_id=request.id,
        config=request.config,
        limit=limit,
        page=page,
        spec_only=request.spec_only,
    )
    return {"configs": configs, "total_count": total_count}


@router.delete("/config/{resource_type}")
def delete_config(
    resource_type: str,
    id: str = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Delete a config catalog entry."""
    CatalogService(db).delete(ResourceType.from_value(resource_type), id)
    return {"message": "success"}


# =============================================================================
# SCM Endpoints
# =============================================================================


@router.get("/scms")
def list_scms(
    scmid: str = "",
    url: str = "",
    branch: str = "",
    summary: str = "",
    limit: Optional[int] = None,
    page: Optional[int] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """List SCM registry entries, or summarize their recent results."""
    limit, page = check_pagination(limit, page, settings.max_page_limit)
    rows, total_count = SCMService(db).search(scm_id=scmid, url=url, branch=branch, limit=limit, page=page)

    if summary.strip().lower() == "true":
        service = SummaryService(db, recency_days=settings.monitoring_duration_days)
        return {"data": service.summarize(rows, total_count), "total_count": total_count}

    return {"scms": [row.to_dict() for row in rows], "total_count": total_count}


@router.delete("/scms")
def delete_scm(
    id: str = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Delete an SCM registry entry."""
    SCMService(db).delete(id)
    return {"message": "success"}
