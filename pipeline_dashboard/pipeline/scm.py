"""
SCM Registry: deduplicated (repository URL, branch) pairs.
"""

from typing import List, Optional, Tuple

import structlog
from sqlalchemy import asc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import SCMModel
from ..errors import StorageError
from .pagination import count_rows, paginate
from .primitives import generate_id, utc_now

logger = structlog.get_logger()


class SCMService:
    """Service for SCM registry entries."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, url: str, branch: str) -> List[str]:
        """Ids registered for exactly ``(url, branch)``, oldest first."""
        try:
            rows = (
                self.db.query(SCMModel.id)
                .filter(SCMModel.url == url, SCMModel.branch == branch)
                .order_by(asc(SCMModel.created_at), asc(SCMModel.id))
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("scm_lookup_failed", url=url, branch=branch, error=str(exc))
            raise StorageError("scm lookup failed") from exc
        return [row.id for row in rows]

    def create(self, url: str, branch: str) -> str:
        now = utc_now()
        row = SCMModel(id=generate_id(), url=url, branch=branch, created_at=now, updated_at=now)
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("scm_insert_failed", url=url, branch=branch, error=str(exc))
            raise StorageError("scm insert failed") from exc

        logger.info("scm_created", id=row.id, url=url, branch=branch)
        return row.id

    def intern(self, url: str, branch: str) -> str:
        """Return the id registered for ``(url, branch)``, creating it if new."""
        ids = self.find(url, branch)
        if len(ids) > 1:
            logger.warning("multiple_scms_found", url=url, branch=branch, candidates=ids, selected=ids[0])
        if ids:
            return ids[0]
        return self.create(url, branch)

    def resolve(self, scm_id: str) -> List[str]:
        """Ids of registry entries stored under ``scm_id``."""
        try:
            rows = self.db.query(SCMModel.id).filter(SCMModel.id == scm_id).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("scm_lookup_failed", id=scm_id, error=str(exc))
            raise StorageError("scm lookup failed") from exc
        return [row.id for row in rows]

    def get(self, scm_id: str) -> Optional[SCMModel]:
        return self.db.query(SCMModel).filter(SCMModel.id == scm_id).first()

    def search(
        self,
        scm_id: Optional[str] = None,
        url: Optional[str] = None,
        branch: Optional[str] = None,
        limit: int = 0,
        page: int = 1,
    ) -> Tuple[List[SCMModel], int]:
        """List registry entries matching the given exact values.

        The total counts every matching row; entries missing a url or a
        branch are then dropped from the returned page.
        """
        query = self.db.query(SCMModel)
        if scm_id:
            query = query.filter(SCMModel.id == scm_id)
        if url:
            query = query.filter(SCMModel.url == url)
        if branch:
            query = query.filter(SCMModel.branch == branch)

        total_count = count_rows(self.db, query, SCMModel.__tablename__)

        query = query.order_by(asc(SCMModel.created_at), asc(SCMModel.id))
        try:
            rows = paginate(query, limit, page, total_count).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("scm_search_failed", error=str(exc))
            raise StorageError("scm search failed") from exc

        return [row for row in rows if row.url and row.branch], total_count

    def delete(self, scm_id: str) -> None:
        """Remove a registry entry. Reports referencing it are left untouched."""
        try:
            self.db.query(SCMModel).filter(SCMModel.id == scm_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("scm_delete_failed", id=scm_id, error=str(exc))
            raise StorageError("scm delete failed") from exc

        logger.info("scm_deleted", id=scm_id)
