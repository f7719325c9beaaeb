"""
Direct lookups and removal of stored reports.
"""

from typing import Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import PipelineReportModel
from ..errors import NotFoundError, StorageError

logger = structlog.get_logger()


class ReportService:
    """Service for single stored reports."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, report_id: str) -> PipelineReportModel:
        """Get a report by storage id, raising NotFoundError when missing."""
        try:
            report = self.db.query(PipelineReportModel).filter(PipelineReportModel.id == report_id).first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("report_lookup_failed", id=report_id, error=str(exc))
            raise StorageError("report lookup failed") from exc

        if report is None:
            raise NotFoundError("report", report_id)
        return report

    def count_by_pipeline_id(self, pipeline_id: str) -> int:
        """Number of stored runs of one pipeline."""
        return (
            self.db.query(PipelineReportModel)
            .filter(PipelineReportModel.pipeline_id == pipeline_id)
            .count()
        )

    def latest_by_pipeline_id(self, pipeline_id: str) -> Optional[PipelineReportModel]:
        """Most recently updated run of one pipeline."""
        return (
            self.db.query(PipelineReportModel)
            .filter(PipelineReportModel.pipeline_id == pipeline_id)
            .order_by(desc(PipelineReportModel.updated_at), desc(PipelineReportModel.id))
            .first()
        )

    def delete(self, report_id: str) -> None:
        try:
            self.db.query(PipelineReportModel).filter(PipelineReportModel.id == report_id).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("report_delete_failed", id=report_id, error=str(exc))
            raise StorageError("report delete failed") from exc

        logger.info("report_deleted", id=report_id)
