"""SQLAlchemy models for contracts, their lifecycle ledger and validation jobs."""

from __future__ import annotations

import enum
from datetime import date, datetime
from uuid import uuid4
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clm.db.session import Base


def _enum(enum_cls: type[enum.Enum], name: str) -> SAEnum:
    # Persist enum values (not member names) so the columns read the same in SQL.
    return SAEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class ContractState(str, enum.Enum):
    draft = "draft"
    under_review = "under_review"
    under_approval = "under_approval"
    sent_for_signature = "sent_for_signature"
    active = "active"
    expired = "expired"
    denounced = "denounced"
    terminated = "terminated"


class ValidationStatus(str, enum.Enum):
    none = "none"
    draft_only = "draft_only"
    validating = "validating"
    validated = "validated"
    needs_review = "needs_review"
    failed = "failed"


class EventType(str, enum.Enum):
    criacao = "criacao"  # creation
    assinatura = "assinatura"  # signature
    inicio_vigencia = "inicio_vigencia"  # start of effect
    renovacao = "renovacao"  # renewal
    adenda = "adenda"  # amendment
    rescisao = "rescisao"  # termination for cause
    denuncia = "denuncia"  # termination by notice
    expiracao = "expiracao"  # expiration
    nota_interna = "nota_interna"  # internal note
    alteracao = "alteracao"  # alteration


class RenewalType(str, enum.Enum):
    sem_renovacao_automatica = "sem_renovacao_automatica"
    renovacao_automatica = "renovacao_automatica"
    renovacao_mediante_acordo = "renovacao_mediante_acordo"


class JobStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"


IN_FLIGHT_STATUSES = (JobStatus.pending, JobStatus.running)


class ExtractionKind(str, enum.Enum):
    draft = "draft"
    canonical = "canonical"


# Shared column types: one database enum per Python enum
contract_state_type = _enum(ContractState, "contract_state")
validation_status_type = _enum(ValidationStatus, "validation_status")


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    # Written only by the state machine (via the ledger) and the validation pipeline
    state: Mapped[ContractState] = mapped_column(
        contract_state_type, nullable=False, default=ContractState.draft
    )
    validation_status: Mapped[ValidationStatus] = mapped_column(
        validation_status_type, nullable=False, default=ValidationStatus.none
    )

    start_of_effect: Mapped[Optional[date]] = mapped_column(Date)
    term_date: Mapped[Optional[date]] = mapped_column(Date)
    renewal_decision_deadline: Mapped[Optional[date]] = mapped_column(Date)
    notice_period_days: Mapped[Optional[int]] = mapped_column(Integer)
    renewal_type: Mapped[Optional[RenewalType]] = mapped_column(_enum(RenewalType, "renewal_type"))
    confidence_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.7)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    events: Mapped[list["LifecycleEvent"]] = relationship(
        "LifecycleEvent",
        back_populates="contract",
        order_by="LifecycleEvent.sequence",
    )
    jobs: Mapped[list["ExtractionJob"]] = relationship(
        "ExtractionJob",
        back_populates="contract",
        order_by="ExtractionJob.started_at",
    )


class LifecycleEvent(Base):
    """Append-only ledger entry; never updated or deleted."""

    __tablename__ = "lifecycle_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # per-contract insertion order
    event_type: Mapped[EventType] = mapped_column(_enum(EventType, "event_type"), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    previous_state: Mapped[ContractState] = mapped_column(
        contract_state_type, nullable=False
    )
    resulting_state: Mapped[ContractState] = mapped_column(
        contract_state_type, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="events")

    __table_args__ = (
        UniqueConstraint("contract_id", "sequence", name="uq_lifecycle_events_contract_sequence"),
        Index("idx_lifecycle_events_contract_occurred", "contract_id", "occurred_at"),
    )


class Extraction(Base):
    """A stored reading of a contract document; immutable once written."""

    __tablename__ = "extractions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False
    )
    kind: Mapped[ExtractionKind] = mapped_column(_enum(ExtractionKind, "extraction_kind"), nullable=False)
    source: Mapped[str] = mapped_column(String(80), nullable=False)  # e.g., "gpt-4o-mini", "cca_agent"
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)  # field path -> value
    confidence: Mapped[Optional[float]] = mapped_column(Float)
    # Canonical readings only: the reader's notes and supporting evidence
    review_notes: Mapped[Optional[str]] = mapped_column(Text)
    evidence: Mapped[Optional[Any]] = mapped_column(JSON(none_as_null=True))

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_extractions_contract_created", "contract_id", "created_at"),
    )


class ExtractionJob(Base):
    __tablename__ = "extraction_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("contracts.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[JobStatus] = mapped_column(
        _enum(JobStatus, "job_status"), nullable=False, default=JobStatus.pending
    )
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    canonical_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    draft_extraction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("extractions.id"), nullable=False
    )
    canonical_extraction_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("extractions.id")
    )
    # validated | needs_review once succeeded
    outcome: Mapped[Optional[ValidationStatus]] = mapped_column(
        validation_status_type
    )
    error: Mapped[Optional[str]] = mapped_column(Text)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="jobs")
    draft_extraction: Mapped["Extraction"] = relationship(
        "Extraction", foreign_keys=[draft_extraction_id]
    )
    canonical_extraction: Mapped[Optional["Extraction"]] = relationship(
        "Extraction", foreign_keys=[canonical_extraction_id]
    )
    diffs: Mapped[list["Diff"]] = relationship(
        "Diff", back_populates="job", order_by="Diff.field_path"
    )

    __table_args__ = (
        Index("idx_extraction_jobs_contract_started", "contract_id", "started_at"),
        # At most one pending/running job per contract
        Index(
            "uq_extraction_jobs_contract_in_flight",
            "contract_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'running')"),
            sqlite_where=text("status IN ('pending', 'running')"),
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status not in IN_FLIGHT_STATUSES


class Diff(Base):
    """One disagreeing field path between a job's draft and canonical readings."""

    __tablename__ = "diffs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("extraction_jobs.id", ondelete="RESTRICT"), nullable=False
    )
    field_path: Mapped[str] = mapped_column(String(255), nullable=False)
    draft_value: Mapped[Optional[Any]] = mapped_column(JSON(none_as_null=True))
    canonical_value: Mapped[Optional[Any]] = mapped_column(JSON(none_as_null=True))
    material: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    job: Mapped["ExtractionJob"] = relationship("ExtractionJob", back_populates="diffs")

    __table_args__ = (
        UniqueConstraint("job_id", "field_path", name="uq_diffs_job_field"),
    )
