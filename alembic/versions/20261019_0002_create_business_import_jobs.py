"""create business_import_jobs table

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "business_import_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            comment="idle, validating, resolving, importing, completed, completed_with_errors, aborted",
        ),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("processed_rows", sa.Integer(), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column(
            "errors_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Ordered row errors: row, error, data",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_business_import_jobs_created_at",
        "business_import_jobs",
        ["created_at"],
        unique=False,
    )
    op.create_index("ix_business_import_jobs_status", "business_import_jobs", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_business_import_jobs_status", table_name="business_import_jobs")
    op.drop_index("ix_business_import_jobs_created_at", table_name="business_import_jobs")
    op.drop_table("business_import_jobs")
