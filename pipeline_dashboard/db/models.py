"""
SQLAlchemy models for Pipeline Dashboard.

Config catalog tables and the SCM registry hold immutable, deduplicated
entries. Report rows keep the raw document verbatim next to the ids derived
from it at ingestion time.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from .base import Base

# JSONB on PostgreSQL for containment and key-existence operators
JSONDocument = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# =============================================================================
# Config Resource Catalog
# =============================================================================


class ConfigResourceMixin:
    """Columns shared by the three config catalog tables."""

    id = Column(String(36), primary_key=True)
    kind = Column(String(256), nullable=False)
    config = Column(JSONDocument, nullable=True)

    # SHA-256 of the canonical JSON form of ``config``
    config_digest = Column(String(64), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    resource_type = ""

    def to_dict(self, spec_only: bool = False) -> Dict[str, Any]:
        config = self.config
        if spec_only:
            config = {"spec": config.get("spec") if isinstance(config, dict) else None}
        return {
            "id": self.id,
            "kind": self.kind,
            "config": config,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }


class ConfigSourceModel(ConfigResourceMixin, Base):
    """Deduplicated source step configurations."""

    __tablename__ = "config_sources"
    resource_type = "source"

    __table_args__ = (
        Index("ix_config_sources_kind_digest", "kind", "config_digest"),
        Index("ix_config_sources_updated_at", "updated_at"),
    )


class ConfigConditionModel(ConfigResourceMixin, Base):
    """Deduplicated condition step configurations."""

    __tablename__ = "config_conditions"
    resource_type = "condition"

    __table_args__ = (
        Index("ix_config_conditions_kind_digest", "kind", "config_digest"),
        Index("ix_config_conditions_updated_at", "updated_at"),
    )


class ConfigTargetModel(ConfigResourceMixin, Base):
    """Deduplicated target step configurations."""

    __tablename__ = "config_targets"
    resource_type = "target"

    __table_args__ = (
        Index("ix_config_targets_kind_digest", "kind", "config_digest"),
        Index("ix_config_targets_updated_at", "updated_at"),
    )


# =============================================================================
# SCM Registry
# =============================================================================


class SCMModel(Base):
    """A (repository URL, branch) pair referenced by reports."""

    __tablename__ = "scms"

    id = Column(String(36), primary_key=True)
    url = Column(Text, nullable=True)
    branch = Column(String(512), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (Index("ix_scms_url_branch", "url", "branch"),)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "branch": self.branch,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }


# =============================================================================
# Pipeline Reports
# =============================================================================


class PipelineReportModel(Base):
    """One ingested pipeline execution report."""

    __tablename__ = "pipeline_reports"

    # Storage identity
    id = Column(String(36), primary_key=True)

    # Denormalized from the raw document
    report_id = Column(String(256), nullable=True)
    pipeline_id = Column(String(256), nullable=True, index=True)
    name = Column(Text, nullable=True)
    result = Column(String(64), nullable=True)

    # Raw document, stored untouched
    data = Column(JSONDocument, nullable=False)

    # Derived associations: list of SCM ids, and catalog id -> step name maps
    scm_ids = Column(JSONDocument, nullable=True, default=list)
    source_config_ids = Column(JSONDocument, nullable=True, default=dict)
    condition_config_ids = Column(JSONDocument, nullable=True, default=dict)
    target_config_ids = Column(JSONDocument, nullable=True, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_pipeline_reports_updated_at", "updated_at"),
        Index("ix_pipeline_reports_pipeline_updated", "pipeline_id", "updated_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "pipeline_id": self.pipeline_id,
            "name": self.name,
            "result": self.result,
            "data": self.data,
            "scm_ids": self.scm_ids or [],
            "source_config_ids": self.source_config_ids or {},
            "condition_config_ids": self.condition_config_ids or {},
            "target_config_ids": self.target_config_ids or {},
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }


CONFIG_MODELS = {
    "source": ConfigSourceModel,
    "condition": ConfigConditionModel,
    "target": ConfigTargetModel,
}
