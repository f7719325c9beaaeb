"""Factories shared by the test modules."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pipeline_dashboard.db.models import PipelineReportModel

_counter = 0


def _next() -> int:
    global _counter
    _counter += 1
    return _counter


def make_report(
    report_id: Optional[str] = None,
    pipeline_id: Optional[str] = None,
    result: str = "success",
    sources: Optional[Dict[str, Any]] = None,
    conditions: Optional[Dict[str, Any]] = None,
    targets: Optional[Dict[str, Any]] = None,
    name: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a raw report document the way the pipeline tool emits it."""
    suffix = _next()
    report: Dict[str, Any] = {
        "ID": report_id or f"run-{suffix}",
        "Name": name or f"Pipeline {suffix}",
        "Result": result,
        "Sources": sources or {},
        "Conditions": conditions or {},
        "Targets": targets or {},
    }
    if pipeline_id is not None:
        report["PipelineID"] = pipeline_id
    return report


def make_step(kind: Optional[str] = None, spec: Optional[Dict[str, Any]] = None, **extra: Any) -> Dict[str, Any]:
    config: Dict[str, Any] = {"spec": spec or {}}
    if kind is not None:
        config["Kind"] = kind
    step: Dict[str, Any] = {"Name": extra.pop("name", "step"), "Result": extra.pop("result", "success"), "Config": config}
    step.update(extra)
    return step


def make_scm_target(url: str, target: str, source: Optional[str] = None, kind: Optional[str] = None) -> Dict[str, Any]:
    step: Dict[str, Any] = {
        "Name": "update",
        "Result": "success",
        "Scm": {"URL": url, "Branch": {"Source": source if source is not None else target, "Target": target}},
    }
    if kind is not None:
        step["Config"] = {"Kind": kind, "spec": {"file": "values.yaml"}}
    return step


def hours_ago(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def set_updated_at(db: Session, report_id: str, moment: datetime) -> None:
    """Move a stored report in time."""
    db.query(PipelineReportModel).filter(PipelineReportModel.id == report_id).update(
        {PipelineReportModel.updated_at: moment}, synchronize_session=False
    )
    db.commit()
    db.expire_all()
