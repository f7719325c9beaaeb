"""Create pipeline report tables

Revision ID: 3f9c1a7d2b40
Revises:
Create Date: 2026-10-18

Creates the config catalog tables (config_sources, config_conditions,
config_targets), the scms registry and pipeline_reports.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f9c1a7d2b40"
down_revision = None
branch_labels = None
depends_on = None

JSONDocument = sa.JSON(none_as_null=True).with_variant(postgresql.JSONB(none_as_null=True), "postgresql")

CONFIG_TABLES = ("config_sources", "config_conditions", "config_targets")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ===========================================
    # 1. Config catalog tables
    # ===========================================
    for table in CONFIG_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("kind", sa.String(length=256), nullable=False),
            sa.Column("config", JSONDocument, nullable=True),
            sa.Column("config_digest", sa.String(length=64), nullable=False),
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_kind_digest", table, ["kind", "config_digest"])
        op.create_index(f"ix_{table}_updated_at", table, ["updated_at"])

    # ===========================================
    # 2. SCM registry
    # ===========================================
    op.create_table(
        "scms",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("url", sa.Text, nullable=True),
        sa.Column("branch", sa.String(length=512), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_scms_url_branch", "scms", ["url", "branch"])

    # ===========================================
    # 3. Pipeline reports
    # ===========================================
    op.create_table(
        "pipeline_reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("report_id", sa.String(length=256), nullable=True),
        sa.Column("pipeline_id", sa.String(length=256), nullable=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("result", sa.String(length=64), nullable=True),
        sa.Column("data", JSONDocument, nullable=False),
        sa.Column("scm_ids", JSONDocument, nullable=True),
        sa.Column("source_config_ids", JSONDocument, nullable=True),
        sa.Column("condition_config_ids", JSONDocument, nullable=True),
        sa.Column("target_config_ids", JSONDocument, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_pipeline_reports_pipeline_id", "pipeline_reports", ["pipeline_id"])
    op.create_index("ix_pipeline_reports_updated_at", "pipeline_reports", ["updated_at"])
    op.create_index(
        "ix_pipeline_reports_pipeline_updated",
        "pipeline_reports",
        ["pipeline_id", "updated_at"],
    )


def downgrade() -> None:
    op.drop_table("pipeline_reports")
    op.drop_table("scms")
    for table in reversed(CONFIG_TABLES):
        op.drop_table(table)
