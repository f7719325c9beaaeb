"""
Report ingestion.

A raw report is stored verbatim. Alongside it, ingestion records which
catalog entries its step configurations resolve to and which SCM registry
entries its target steps point at. Interning a configuration or resolving a
repository reference can fail on its own without aborting the report; only
the final insert is fatal.
"""

from typing import Any, Dict, List

import pydantic
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import PipelineReportModel
from ..errors import DashboardError, StorageError, ValidationError
from .catalog import CatalogService
from .enums import ResourceType
from .primitives import generate_id, utc_now
from .report import PipelineReport, StepReport
from .scm import SCMService

logger = structlog.get_logger()


class ReportIngestor:
    """Turns raw pipeline reports into stored report rows."""

    def __init__(self, db: Session, store_source_branch: bool = False):
        self.db = db
        self.catalog = CatalogService(db)
        self.scms = SCMService(db)
        # Register new SCM entries under the source branch rather than the
        # target branch they are looked up by
        self.store_source_branch = store_source_branch

    def ingest(self, raw: Dict[str, Any]) -> str:
        """Store ``raw`` and return the new report's storage id."""
        if not isinstance(raw, dict):
            raise ValidationError("report must be a JSON object")
        try:
            report = PipelineReport.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"malformed report: {exc.errors()[0]['msg']}") from exc

        mappings: Dict[ResourceType, Dict[str, str]] = {rt: {} for rt in ResourceType}
        for resource_type, step_name, step in report.iter_steps():
            resource_id = self._intern_step(resource_type, step_name, step)
            if resource_id is not None:
                mappings[resource_type][resource_id] = step_name

        scm_ids: List[str] = []
        for step_name, step in report.targets.items():
            for scm_id in self._resolve_scm(step_name, step):
                if scm_id not in scm_ids:
                    scm_ids.append(scm_id)

        now = utc_now()
        row = PipelineReportModel(
            id=generate_id(),
            report_id=report.id,
            pipeline_id=report.effective_pipeline_id,
            name=report.name,
            result=report.result,
            data=raw,
            scm_ids=scm_ids,
            source_config_ids=mappings[ResourceType.SOURCE],
            condition_config_ids=mappings[ResourceType.CONDITION],
            target_config_ids=mappings[ResourceType.TARGET],
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("report_insert_failed", report_id=report.id, error=str(exc))
            raise StorageError("report insert failed") from exc

        logger.info(
            "report_ingested",
            id=row.id,
            report_id=report.id,
            pipeline_id=row.pipeline_id,
            scm_ids=len(scm_ids),
        )
        return row.id

    def _intern_step(self, resource_type: ResourceType, step_name: str, step: StepReport):
        if step.config is None:
            return None
        kind = step.kind
        if kind is None:
            logger.debug("config_without_kind", resource_type=resource_type.value, step=step_name)
            return None

        try:
            return self.catalog.intern(resource_type, kind, step.config)
        except DashboardError as exc:
            logger.error(
                "config_intern_failed",
                resource_type=resource_type.value,
                step=step_name,
                kind=kind,
                error=exc.message,
            )
            return None

    def _resolve_scm(self, step_name: str, step: StepReport) -> List[str]:
        url = step.scm.url
        target_branch = step.scm.branch.target
        if not url or not target_branch:
            return []

        try:
            ids = self.scms.find(url, target_branch)
            if ids:
                return ids
            branch = step.scm.branch.source if self.store_source_branch else target_branch
            return [self.scms.create(url, branch)]
        except DashboardError as exc:
            logger.error("scm_resolve_failed", step=step_name, url=url, branch=target_branch, error=exc.message)
            return []
