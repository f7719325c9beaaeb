"""
Report Query Engine.

Filters are collected as clause objects, compiled for the active database
dialect and ANDed together. The total is counted over the filtered set
before pagination and before the latest-per-pipeline collapse.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import desc, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from ..db.models import PipelineReportModel, isoformat_utc
from ..db.predicates import After, AnyElement, Between, HasKey, IsEmptyArray, MatchNone, compiler_for
from ..errors import ConsistencyError, StorageError, ValidationError
from .enums import NO_SCM_SENTINELS, ResourceType
from .pagination import count_rows, paginate
from .primitives import parse_timestamp, parse_uuid, utc_now
from .scm import SCMService

logger = structlog.get_logger()

DEFAULT_RECENCY_DAYS = 2


@dataclass
class ReportFilters:
    """Association filters for a report search. Empty strings mean unset."""

    scm_id: str = ""
    source_id: str = ""
    condition_id: str = ""
    target_id: str = ""

    def resource_filters(self) -> List[Tuple[ResourceType, str]]:
        """Non-empty resource filters, in source, condition, target order."""
        candidates = [
            (ResourceType.SOURCE, self.source_id),
            (ResourceType.CONDITION, self.condition_id),
            (ResourceType.TARGET, self.target_id),
        ]
        return [(resource_type, value) for resource_type, value in candidates if value]


@dataclass
class ReportSearchRow:
    """One search hit, with the step name matched by a resource filter."""

    report: PipelineReportModel
    filtered_resource_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        report = self.report
        return {
            "id": report.id,
            "report_id": report.report_id,
            "pipeline_id": report.pipeline_id,
            "name": report.name,
            "result": report.result,
            "report": report.data,
            "filtered_resource_id": self.filtered_resource_id,
            "created_at": isoformat_utc(report.created_at),
            "updated_at": isoformat_utc(report.updated_at),
        }


@dataclass
class _Plan:
    clauses: List[Any] = field(default_factory=list)
    resource_keys: List[Tuple[ResourceType, str]] = field(default_factory=list)
    scm_id: str = ""


class ReportQueryEngine:
    """Filtered, paginated search over stored reports."""

    def __init__(self, db: Session, recency_days: int = DEFAULT_RECENCY_DAYS):
        self.db = db
        self.recency_days = recency_days
        self.scms = SCMService(db)

    def search(
        self,
        filters: Optional[ReportFilters] = None,
        limit: int = 0,
        page: int = 1,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        recency_days: Optional[int] = None,
        latest: bool = False,
        now: Optional[datetime] = None,
    ) -> Tuple[List[ReportSearchRow], int]:
        """Search reports.

        Args:
            filters: SCM and config resource association filters.
            limit: Page size; ignored unless smaller than the total.
            page: 1-based page number.
            start_time: Inclusive lower bound on ``updated_at``.
            end_time: Exclusive upper bound on ``updated_at``.
            recency_days: Lookback window used when no explicit range is
                given. Defaults to the engine's window; ``0`` disables it.
            latest: Keep only the most recently updated report per pipeline.
            now: Reference time for the recency window.

        Returns:
            The page of rows and the total number of matching reports.

        Raises:
            ValidationError: Malformed identifier or time range. Raised
                before any query runs.
            ConsistencyError: A matched report lacks the filtered key.
            StorageError: The row query failed.
        """
        filters = filters or ReportFilters()
        if recency_days is None:
            recency_days = self.recency_days

        plan = self._validate(filters, start_time, end_time, recency_days, now or utc_now())
        plan.clauses.extend(self._scm_clauses(plan.scm_id))

        compiler = compiler_for(self.db.get_bind().dialect.name, PipelineReportModel)
        query = self.db.query(PipelineReportModel).filter(*compiler.compile(plan.clauses))

        total_count = count_rows(self.db, query, PipelineReportModel.__tablename__)

        entity = PipelineReportModel
        if latest:
            rank = (
                func.row_number()
                .over(
                    partition_by=PipelineReportModel.pipeline_id,
                    order_by=(desc(PipelineReportModel.updated_at), desc(PipelineReportModel.id)),
                )
                .label("pipeline_rank")
            )
            ranked = query.add_columns(rank).subquery()
            entity = aliased(PipelineReportModel, ranked)
            query = self.db.query(entity).filter(ranked.c.pipeline_rank == 1)

        query = query.order_by(desc(entity.updated_at), desc(entity.id))
        try:
            reports = paginate(query, limit, page, total_count).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("report_search_failed", error=str(exc))
            raise StorageError("report search failed") from exc

        return [self._row(report, plan.resource_keys) for report in reports], total_count

    def _validate(
        self,
        filters: ReportFilters,
        start_time: Optional[str],
        end_time: Optional[str],
        recency_days: int,
        now: datetime,
    ) -> _Plan:
        plan = _Plan()

        for resource_type, value in filters.resource_filters():
            key = parse_uuid(value, f"{resource_type.value}id")
            plan.resource_keys.append((resource_type, key))
            plan.clauses.append(HasKey(resource_type.mapping_field, key))

        start = parse_timestamp(start_time, "start_time")
        end = parse_timestamp(end_time, "end_time")
        if start is not None and end is not None:
            if start > end:
                start, end = end, start
            plan.clauses.append(Between("updated_at", start, end))
        elif start is not None or end is not None:
            raise ValidationError("both start_time and end_time must be provided for time range filtering")
        elif recency_days > 0:
            plan.clauses.append(After("updated_at", now - timedelta(days=recency_days)))

        plan.scm_id = filters.scm_id
        if plan.scm_id and plan.scm_id.lower() not in NO_SCM_SENTINELS:
            plan.scm_id = parse_uuid(plan.scm_id, "scmid")

        return plan

    def _scm_clauses(self, scm_id: str) -> List[Any]:
        if not scm_id:
            return []
        if scm_id.lower() in NO_SCM_SENTINELS:
            return [IsEmptyArray("scm_ids")]

        ids = self.scms.resolve(scm_id)
        if not ids:
            logger.warning("scm_filter_not_found", scm_id=scm_id)
            return [MatchNone()]
        if len(ids) > 1:
            logger.error("multiple_scms_for_id", scm_id=scm_id, candidates=ids)
        return [AnyElement("scm_ids", tuple(ids))]

    @staticmethod
    def _row(report: PipelineReportModel, resource_keys: List[Tuple[ResourceType, str]]) -> ReportSearchRow:
        row = ReportSearchRow(report=report)
        # With several resource filters the last one (target) names the step
        for resource_type, key in resource_keys:
            mapping = getattr(report, resource_type.mapping_field) or {}
            if key not in mapping:
                raise ConsistencyError(
                    f"{resource_type.value}id {key} not found in pipeline report {report.id}"
                )
            row.filtered_resource_id = mapping[key]
        return row
