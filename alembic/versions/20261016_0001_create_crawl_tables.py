"""create crawl job, run, credential, document and change tables

Revision ID: 20261016_0001
Revises:
Create Date: 2026-10-16 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261016_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "crawl_credentials",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("auth_kind", sa.String(length=16), nullable=False, comment="basic, form, cookie, header, sso"),
        sa.Column(
            "encrypted_payload",
            sa.Text(),
            nullable=False,
            comment="Fernet token; decrypted only inside a crawl run",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawl_credentials_tenant_id", "crawl_credentials", ["tenant_id"], unique=False)
    op.create_index(
        "ix_crawl_credentials_tenant_domain",
        "crawl_credentials",
        ["tenant_id", "domain"],
        unique=False,
    )

    op.create_table(
        "crawl_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("base_url", sa.Text(), nullable=False),
        sa.Column(
            "template_id",
            sa.String(length=64),
            nullable=True,
            comment="Catalog template id, 'auto' to suggest from the URL, NULL for defaults",
        ),
        sa.Column("scrape_children", sa.Boolean(), nullable=False),
        sa.Column("max_depth", sa.Integer(), nullable=True),
        sa.Column("max_pages", sa.Integer(), nullable=True),
        sa.Column("include_patterns", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("exclude_patterns", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "options",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Crawl option overrides (timeout_ms, delay_ms, respect_robots, ...)",
        ),
        sa.Column("credential_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "schedule",
            sa.String(length=120),
            nullable=True,
            comment="5-field cron expression; NULL for manual-only jobs",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["credential_id"], ["crawl_credentials.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crawl_jobs_tenant_id", "crawl_jobs", ["tenant_id"], unique=False)
    op.create_index("ix_crawl_jobs_tenant_active", "crawl_jobs", ["tenant_id", "is_active"], unique=False)
    op.create_index("ix_crawl_jobs_status", "crawl_jobs", ["status"], unique=False)

    op.create_table(
        "job_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("urls_processed", sa.Integer(), nullable=False),
        sa.Column("urls_successful", sa.Integer(), nullable=False),
        sa.Column("urls_failed", sa.Integer(), nullable=False),
        sa.Column("documents_created", sa.Integer(), nullable=False),
        sa.Column("documents_updated", sa.Integer(), nullable=False),
        sa.Column("changes_detected", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "logs",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Per-URL errors: {url, error, needsCredentials?, loginMethod?}",
        ),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Crawl summary: template, auth attempts, content type, duration",
        ),
        sa.ForeignKeyConstraint(["job_id"], ["crawl_jobs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_runs_tenant_id", "job_runs", ["tenant_id"], unique=False)
    op.create_index("ix_job_runs_job_started", "job_runs", ["job_id", "started_at"], unique=False)
    op.create_index("ix_job_runs_status", "job_runs", ["status"], unique=False)

    op.create_table(
        "versioned_documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("parent_url", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("depth", sa.Integer(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "embedding",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Retrieval vector; filled after the version write and may lag",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["job_id"], ["crawl_jobs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "url", "version", name="uq_versioned_documents_tenant_url_version"),
    )
    op.create_index("ix_versioned_documents_tenant_id", "versioned_documents", ["tenant_id"], unique=False)
    op.create_index("ix_versioned_documents_job", "versioned_documents", ["job_id"], unique=False)
    op.create_index(
        "uq_versioned_documents_one_active",
        "versioned_documents",
        ["tenant_id", "url"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "change_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_run_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("change_type", sa.String(length=32), nullable=False),
        sa.Column("old_content_hash", sa.String(length=64), nullable=True),
        sa.Column("new_content_hash", sa.String(length=64), nullable=True),
        sa.Column("change_percentage", sa.Float(), nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("detected_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["versioned_documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["job_run_id"], ["job_runs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_records_tenant_id", "change_records", ["tenant_id"], unique=False)
    op.create_index(
        "ix_change_records_tenant_detected",
        "change_records",
        ["tenant_id", "detected_at"],
        unique=False,
    )
    op.create_index("ix_change_records_document", "change_records", ["document_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_change_records_document", table_name="change_records")
    op.drop_index("ix_change_records_tenant_detected", table_name="change_records")
    op.drop_index("ix_change_records_tenant_id", table_name="change_records")
    op.drop_table("change_records")

    op.drop_index("uq_versioned_documents_one_active", table_name="versioned_documents")
    op.drop_index("ix_versioned_documents_job", table_name="versioned_documents")
    op.drop_index("ix_versioned_documents_tenant_id", table_name="versioned_documents")
    op.drop_table("versioned_documents")

    op.drop_index("ix_job_runs_status", table_name="job_runs")
    op.drop_index("ix_job_runs_job_started", table_name="job_runs")
    op.drop_index("ix_job_runs_tenant_id", table_name="job_runs")
    op.drop_table("job_runs")

    op.drop_index("ix_crawl_jobs_status", table_name="crawl_jobs")
    op.drop_index("ix_crawl_jobs_tenant_active", table_name="crawl_jobs")
    op.drop_index("ix_crawl_jobs_tenant_id", table_name="crawl_jobs")
    op.drop_table("crawl_jobs")

    op.drop_index("ix_crawl_credentials_tenant_domain", table_name="crawl_credentials")
    op.drop_index("ix_crawl_credentials_tenant_id", table_name="crawl_credentials")
    op.drop_table("crawl_credentials")
