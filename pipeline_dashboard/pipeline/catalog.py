"""
Config Resource Catalog.

Step configurations are interned per resource type: within a (type, kind)
pair, documents with the same canonical JSON share one row and one id.
Entries are never modified after creation.
"""

from typing import Any, Dict, List, Optional, Tuple, Type

import structlog
from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import CONFIG_MODELS, ConfigResourceMixin
from ..db.predicates import Contains, Equals, compiler_for
from ..errors import StorageError
from .enums import ResourceType
from .pagination import count_rows, paginate
from .primitives import config_digest, generate_id, utc_now

logger = structlog.get_logger()


class CatalogService:
    """Service for the source/condition/target configuration catalog."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def model_for(resource_type: Any) -> Type[ConfigResourceMixin]:
        return CONFIG_MODELS[ResourceType.from_value(resource_type).value]

    def intern(self, resource_type: Any, kind: str, content: Any) -> str:
        """Return the id of ``content`` under ``kind``, creating it if new.

        When several rows already hold the same content the oldest one wins.
        """
        model = self.model_for(resource_type)
        digest = config_digest(content)

        try:
            matches = (
                self.db.query(model)
                .filter(model.kind == kind, model.config_digest == digest)
                .order_by(asc(model.created_at), asc(model.id))
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("config_lookup_failed", resource_type=model.resource_type, kind=kind, error=str(exc))
            raise StorageError("config lookup failed") from exc

        if len(matches) > 1:
            logger.warning(
                "multiple_config_resources_found",
                resource_type=model.resource_type,
                kind=kind,
                candidates=[row.id for row in matches],
                selected=matches[0].id,
            )
        if matches:
            return matches[0].id

        now = utc_now()
        row = model(
            id=generate_id(),
            kind=kind,
            config=content,
            config_digest=digest,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("config_insert_failed", resource_type=model.resource_type, kind=kind, error=str(exc))
            raise StorageError("config insert failed") from exc

        logger.info("config_resource_created", resource_type=model.resource_type, kind=kind, id=row.id)
        return row.id

    def get(self, resource_type: Any, resource_id: str) -> Optional[ConfigResourceMixin]:
        model = self.model_for(resource_type)
        return self.db.query(model).filter(model.id == resource_id).first()

    def delete(self, resource_type: Any, resource_id: str) -> None:
        """Remove a catalog entry. Reports referencing it are left untouched."""
        model = self.model_for(resource_type)
        try:
            self.db.query(model).filter(model.id == resource_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("config_delete_failed", resource_type=model.resource_type, id=resource_id, error=str(exc))
            raise StorageError("config delete failed") from exc

        logger.info("config_resource_deleted", resource_type=model.resource_type, id=resource_id)

    def search(
        self,
        resource_type: Any,
        kind: Optional[str] = None,
        resource_id: Optional[str] = None,
        config: Any = None,
        limit: int = 0,
        page: int = 1,
        spec_only: bool = False,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """List catalog entries, most recently updated first.

        ``config`` is a containment filter: an entry matches when its stored
        document contains every key and value of ``config``. With
        ``spec_only`` each document is reduced to its ``spec`` member.
        """
        model = self.model_for(resource_type)
        compiler = compiler_for(self.db.get_bind().dialect.name, model)

        clauses = []
        if resource_id:
            clauses.append(Equals("id", resource_id))
        if kind:
            clauses.append(Equals("kind", kind))
        if config is not None:
            clauses.append(Contains("config", config))

        query = self.db.query(model).filter(*compiler.compile(clauses))
        total_count = count_rows(self.db, query, model.__tablename__)

        query = query.order_by(desc(model.updated_at), desc(model.id))
        try:
            rows = paginate(query, limit, page, total_count).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("config_search_failed", resource_type=model.resource_type, error=str(exc))
            raise StorageError("config search failed") from exc

        return [row.to_dict(spec_only=spec_only) for row in rows], total_count

    def kinds(self, resource_type: Any) -> List[str]:
        """Distinct kinds recorded for a resource type."""
        model = self.model_for(resource_type)
        try:
            rows = self.db.query(model.kind).group_by(model.kind).order_by(model.kind).all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("config_kinds_failed", resource_type=model.resource_type, error=str(exc))
            raise StorageError("config kind lookup failed") from exc
        return [row.kind for row in rows]
