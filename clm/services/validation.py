"""Validation pipeline: extraction jobs and the contract's validation status.

A job moves pending -> running -> succeeded | failed and is terminal once
it gets there. A contract has at most one job that is not terminal; the
check happens under the contract's row lock and is backed by a partial
unique index, so two concurrent starts cannot both win.

The contract's ``validation_status`` is always written from
``derive_validation_status`` of its latest job, never set directly.

All functions take a sync Session and flush but do not commit; the caller's
session scope commits the whole operation or rolls it back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clm.core.config import settings
from clm.core.errors import JobAlreadyInFlight, JobNotActive, JobNotFound
from clm.db.models import (
    IN_FLIGHT_STATUSES,
    Contract,
    Diff,
    Extraction,
    ExtractionJob,
    ExtractionKind,
    JobStatus,
    ValidationStatus,
)
from clm.services.diff import compute_diff, is_material, normalize_payload, to_json_payload
from clm.services.ledger import lock_contract

logger = logging.getLogger(__name__)

CANONICAL_SOURCE = "cca_agent"


@dataclass(frozen=True, slots=True)
class CanonicalExtraction:
    """What the canonical (CCA-verified) collaborator handed back.

    ``review_status`` is the collaborator's own verdict (validated,
    needs_review); a needs_review verdict always reaches the outcome.
    """

    payload: Optional[dict[str, Any]] = None
    confidence: Optional[float] = None
    error: Optional[str] = None
    source: str = CANONICAL_SOURCE
    review_status: Optional[str] = None
    review_notes: Optional[str] = None
    evidence: Any = None


@dataclass(frozen=True, slots=True)
class ValidationResult:
    job: ExtractionJob
    status: ValidationStatus
    diffs: list[Diff]


def _now() -> datetime:
    return datetime.utcnow()


def derive_validation_status(job: Optional[ExtractionJob]) -> ValidationStatus:
    """Map a contract's latest job to the single status shown to users."""
    if job is None:
        return ValidationStatus.none
    if job.status == JobStatus.failed:
        return ValidationStatus.failed
    if job.status == JobStatus.succeeded:
        return ValidationStatus(job.outcome) if job.outcome else ValidationStatus.validated
    if job.canonical_extraction_id is not None or job.canonical_requested_at is not None:
        return ValidationStatus.validating
    return ValidationStatus.draft_only


def _sync_status(contract: Contract, job: ExtractionJob) -> ValidationStatus:
    status = derive_validation_status(job)
    contract.validation_status = status
    return status


def find_in_flight_job(db: Session, contract_id: str) -> Optional[ExtractionJob]:
    return db.execute(
        select(ExtractionJob).where(
            ExtractionJob.contract_id == contract_id,
            ExtractionJob.status.in_(IN_FLIGHT_STATUSES),
        )
    ).scalar_one_or_none()


def latest_job(db: Session, contract_id: str) -> Optional[ExtractionJob]:
    return db.execute(
        select(ExtractionJob)
        .where(ExtractionJob.contract_id == contract_id)
        .order_by(ExtractionJob.started_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_job(db: Session, job_id: str) -> ExtractionJob:
    job = db.get(ExtractionJob, job_id)
    if job is None:
        raise JobNotFound(job_id)
    return job


def list_diffs(db: Session, job_id: str) -> list[Diff]:
    return list(
        db.execute(select(Diff).where(Diff.job_id == job_id).order_by(Diff.field_path)).scalars()
    )


def _lock_job(db: Session, job_id: str) -> tuple[ExtractionJob, Contract]:
    job = get_job(db, job_id)
    contract = lock_contract(db, job.contract_id)
    db.refresh(job)
    return job, contract


def start_validation(
    db: Session,
    contract_id: str,
    draft_payload: Any,
    *,
    confidence: Optional[float] = None,
    source: str = "client",
) -> ExtractionJob:
    """Open a validation job for a contract from a draft reading.

    Args:
        db: Session whose transaction the job joins.
        contract_id: Contract being validated.
        draft_payload: Field path -> value mapping produced by the draft extractor.
        confidence: Draft extractor confidence (0..1), if reported.
        source: Who produced the draft (model name, "client", ...).

    Returns:
        The running job; the contract's status is draft_only.

    Raises:
        ContractNotFound: No such contract.
        JobAlreadyInFlight: The contract already has a pending/running job.
        MalformedPayload: The draft is not a structured mapping.
    """
    contract = lock_contract(db, contract_id)

    existing = find_in_flight_job(db, contract_id)
    if existing is not None:
        logger.info("Validation already in flight for contract %s (job %s)", contract_id, existing.id)
        raise JobAlreadyInFlight(contract_id, existing.id)

    payload = to_json_payload(draft_payload)

    draft = Extraction(
        id=str(uuid4()),
        contract_id=contract_id,
        kind=ExtractionKind.draft,
        source=source,
        payload=payload,
        confidence=confidence,
    )
    job = ExtractionJob(
        id=str(uuid4()),
        contract_id=contract_id,
        status=JobStatus.running,
        started_at=_now(),
        draft_extraction_id=draft.id,
    )
    db.add(draft)
    db.flush()
    db.add(job)
    try:
        db.flush()  # the in-flight unique index catches a start that raced past the check
    except IntegrityError:
        db.rollback()
        logger.info("Concurrent validation start lost the race for contract %s", contract_id)
        raise JobAlreadyInFlight(contract_id) from None

    _sync_status(contract, job)
    db.flush()
    logger.info("Started validation job %s for contract %s", job.id, contract_id)
    return job


def mark_validating(db: Session, job_id: str) -> ExtractionJob:
    """Record that the canonical pass has been requested for a running job."""
    job, contract = _lock_job(db, job_id)
    if job.is_terminal:
        raise JobNotActive(job_id, job.status.value)
    if job.canonical_requested_at is None:
        job.canonical_requested_at = _now()
    if job.status == JobStatus.pending:
        job.status = JobStatus.running
    _sync_status(contract, job)
    db.flush()
    logger.info("Job %s for contract %s is validating", job.id, contract.id)
    return job


def _fail(db: Session, job: ExtractionJob, contract: Contract, error: str) -> ExtractionJob:
    job.status = JobStatus.failed
    job.error = error
    job.finished_at = _now()
    _sync_status(contract, job)
    db.flush()
    logger.warning("Validation job %s for contract %s failed: %s", job.id, contract.id, error)
    return job


def fail_job(db: Session, job_id: str, error: str) -> ExtractionJob:
    """Mark a job failed and the contract's validation as failed.

    The draft extraction stays stored and linked to the job. Failing an
    already failed job is a no-op.

    Raises:
        JobNotFound: No such job.
        JobNotActive: The job already succeeded.
    """
    job, contract = _lock_job(db, job_id)
    if job.status == JobStatus.failed:
        return job
    if job.status == JobStatus.succeeded:
        raise JobNotActive(job_id, job.status.value)
    return _fail(db, job, contract, error)


def _decide_outcome(
    contract: Contract, canonical: CanonicalExtraction, diffs: list[Diff]
) -> ValidationStatus:
    if canonical.review_status == ValidationStatus.needs_review.value:
        return ValidationStatus.needs_review
    if any(d.material for d in diffs):
        return ValidationStatus.needs_review
    if canonical.confidence is not None and canonical.confidence < contract.confidence_threshold:
        return ValidationStatus.needs_review
    return ValidationStatus.validated


def attach_canonical(
    db: Session,
    job_id: str,
    canonical: CanonicalExtraction,
    material_fields: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """Reconcile a job's draft with its canonical reading and finish the job.

    A canonical result carrying an error fails the job (same effect as
    fail_job). Otherwise the canonical extraction is stored, diffs against
    the draft are appended and the job succeeds with outcome needs_review
    (the canonical reader asked for review, any material diff, or canonical
    confidence under the contract's threshold) or validated.

    Raises:
        JobNotFound: No such job.
        JobNotActive: The job is already terminal.
        MalformedPayload: Either payload cannot be diffed; nothing is written.
    """
    job, contract = _lock_job(db, job_id)
    if job.is_terminal:
        raise JobNotActive(job_id, job.status.value)

    if canonical.error:
        _fail(db, job, contract, canonical.error)
        return ValidationResult(job=job, status=ValidationStatus.failed, diffs=[])

    draft_fields = normalize_payload(job.draft_extraction.payload)
    canonical_fields = normalize_payload(canonical.payload)
    canonical_payload = to_json_payload(canonical.payload)
    fields = settings.MATERIAL_FIELDS if material_fields is None else list(material_fields)

    extraction = Extraction(
        id=str(uuid4()),
        contract_id=contract.id,
        kind=ExtractionKind.canonical,
        source=canonical.source,
        payload=canonical_payload,
        confidence=canonical.confidence,
        review_notes=canonical.review_notes,
        evidence=canonical.evidence,
    )
    db.add(extraction)
    db.flush()
    job.canonical_extraction_id = extraction.id
    if job.canonical_requested_at is None:
        job.canonical_requested_at = _now()
    _sync_status(contract, job)  # validating while the comparison runs

    diffs = [
        Diff(
            id=str(uuid4()),
            job_id=job.id,
            field_path=d.field_path,
            draft_value=d.draft_value,
            canonical_value=d.canonical_value,
            material=is_material(d.field_path, fields),
        )
        for d in compute_diff(draft_fields, canonical_fields)
    ]
    db.add_all(diffs)

    job.outcome = _decide_outcome(contract, canonical, diffs)
    job.status = JobStatus.succeeded
    job.finished_at = _now()
    job.error = None
    status = _sync_status(contract, job)
    db.flush()

    logger.info(
        "Validation job %s for contract %s finished: %s (%d diffs, %d material)",
        job.id,
        contract.id,
        status.value,
        len(diffs),
        sum(1 for d in diffs if d.material),
    )
    return ValidationResult(job=job, status=status, diffs=diffs)


__all__ = [
    "CanonicalExtraction",
    "ValidationResult",
    "attach_canonical",
    "derive_validation_status",
    "fail_job",
    "find_in_flight_job",
    "get_job",
    "latest_job",
    "list_diffs",
    "mark_validating",
    "start_validation",
]
