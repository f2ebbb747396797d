"""Initial schema for contracts, lifecycle events and validation jobs."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

CONTRACT_STATES = (
    "draft",
    "under_review",
    "under_approval",
    "sent_for_signature",
    "active",
    "expired",
    "denounced",
    "terminated",
)
VALIDATION_STATUSES = ("none", "draft_only", "validating", "validated", "needs_review", "failed")
EVENT_TYPES = (
    "criacao",
    "assinatura",
    "inicio_vigencia",
    "renovacao",
    "adenda",
    "rescisao",
    "denuncia",
    "expiracao",
    "nota_interna",
    "alteracao",
)
RENEWAL_TYPES = ("sem_renovacao_automatica", "renovacao_automatica", "renovacao_mediante_acordo")
JOB_STATUSES = ("pending", "running", "succeeded", "failed")
EXTRACTION_KINDS = ("draft", "canonical")

IN_FLIGHT = "status IN ('pending', 'running')"


def upgrade() -> None:
    contract_state = sa.Enum(*CONTRACT_STATES, name="contract_state")
    validation_status = sa.Enum(*VALIDATION_STATUSES, name="validation_status")
    # Reused by several columns; created once with the first table
    contract_state_ref = postgresql.ENUM(*CONTRACT_STATES, name="contract_state", create_type=False)
    validation_status_ref = postgresql.ENUM(*VALIDATION_STATUSES, name="validation_status", create_type=False)

    op.create_table(
        "contracts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("state", contract_state, nullable=False, server_default="draft"),
        sa.Column("validation_status", validation_status, nullable=False, server_default="none"),
        sa.Column("start_of_effect", sa.Date(), nullable=True),
        sa.Column("term_date", sa.Date(), nullable=True),
        sa.Column("renewal_decision_deadline", sa.Date(), nullable=True),
        sa.Column("notice_period_days", sa.Integer(), nullable=True),
        sa.Column("renewal_type", sa.Enum(*RENEWAL_TYPES, name="renewal_type"), nullable=True),
        sa.Column("confidence_threshold", sa.Float(), nullable=False, server_default="0.7"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_contracts_organization_id", "contracts", ["organization_id"])

    op.create_table(
        "lifecycle_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("contract_id", sa.String(length=36), sa.ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.Enum(*EVENT_TYPES, name="event_type"), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("previous_state", contract_state_ref, nullable=False),
        sa.Column("resulting_state", contract_state_ref, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("contract_id", "sequence", name="uq_lifecycle_events_contract_sequence"),
    )
    op.create_index("idx_lifecycle_events_contract_occurred", "lifecycle_events", ["contract_id", "occurred_at"])

    op.create_table(
        "extractions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("contract_id", sa.String(length=36), sa.ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("kind", sa.Enum(*EXTRACTION_KINDS, name="extraction_kind"), nullable=False),
        sa.Column("source", sa.String(length=80), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_extractions_contract_created", "extractions", ["contract_id", "created_at"])

    op.create_table(
        "extraction_jobs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("contract_id", sa.String(length=36), sa.ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("status", sa.Enum(*JOB_STATUSES, name="job_status"), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("canonical_requested_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("draft_extraction_id", sa.String(length=36), sa.ForeignKey("extractions.id"), nullable=False),
        sa.Column("canonical_extraction_id", sa.String(length=36), sa.ForeignKey("extractions.id"), nullable=True),
        sa.Column("outcome", validation_status_ref, nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
    )
    op.create_index("idx_extraction_jobs_contract_started", "extraction_jobs", ["contract_id", "started_at"])
    op.create_index(
        "uq_extraction_jobs_contract_in_flight",
        "extraction_jobs",
        ["contract_id"],
        unique=True,
        postgresql_where=sa.text(IN_FLIGHT),
        sqlite_where=sa.text(IN_FLIGHT),
    )

    op.create_table(
        "diffs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("job_id", sa.String(length=36), sa.ForeignKey("extraction_jobs.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("field_path", sa.String(length=255), nullable=False),
        sa.Column("draft_value", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("canonical_value", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("material", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("job_id", "field_path", name="uq_diffs_job_field"),
    )


def downgrade() -> None:
    op.drop_table("diffs")
    op.drop_index("uq_extraction_jobs_contract_in_flight", table_name="extraction_jobs")
    op.drop_index("idx_extraction_jobs_contract_started", table_name="extraction_jobs")
    op.drop_table("extraction_jobs")
    op.drop_index("idx_extractions_contract_created", table_name="extractions")
    op.drop_table("extractions")
    op.drop_index("idx_lifecycle_events_contract_occurred", table_name="lifecycle_events")
    op.drop_table("lifecycle_events")
    op.drop_index("ix_contracts_organization_id", table_name="contracts")
    op.drop_table("contracts")

    bind = op.get_bind()
    if bind.dialect.name != "postgresql":
        return
    for name in (
        "extraction_kind",
        "job_status",
        "event_type",
        "renewal_type",
        "validation_status",
        "contract_state",
    ):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
