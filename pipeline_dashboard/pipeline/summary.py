"""
Per repository summary of recent pipeline results.
"""

from collections import Counter
from typing import Any, Dict, Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from ..db.models import SCMModel
from .query import DEFAULT_RECENCY_DAYS, ReportFilters, ReportQueryEngine

logger = structlog.get_logger()


class SummaryService:
    """Tallies the latest result of every pipeline per URL and branch."""

    def __init__(self, db: Session, recency_days: int = DEFAULT_RECENCY_DAYS):
        self.db = db
        self.engine = ReportQueryEngine(db, recency_days=recency_days)

    def summarize(
        self,
        scm_rows: Iterable[SCMModel],
        total_count: int = 0,
        recency_days: Optional[int] = None,
    ) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Build ``{url: {branch: {id, total_result_by_type, total_result}}}``.

        Only reports updated within the recency window count, and only the
        most recent report of each pipeline. Registry entries missing a url
        or a branch produce no node at all.
        """
        logger.debug("scm_summary_started", total_count=total_count)
        summary: Dict[str, Dict[str, Dict[str, Any]]] = {}

        for scm in scm_rows:
            if not scm.url or not scm.branch:
                logger.debug("scm_summary_skipped", id=scm.id)
                continue

            rows, _ = self.engine.search(
                ReportFilters(scm_id=scm.id),
                recency_days=recency_days,
                latest=True,
            )
            tally = Counter(row.report.result or "" for row in rows)

            summary.setdefault(scm.url, {})[scm.branch] = {
                "id": scm.id,
                "total_result_by_type": dict(tally),
                "total_result": sum(tally.values()),
            }

        return summary
