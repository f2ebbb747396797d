"""Validation pipeline endpoints."""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from clm.core.config import settings
from clm.core.errors import JobAlreadyInFlight, LifecycleError
from clm.db.models import ExtractionJob
from clm.db.repository import get_contract
from clm.db.session import get_db, run_in_transaction
from clm.routes.errors import to_http_exception
from clm.schemas.api import (
    DiffResponse,
    FailJobRequest,
    JobResponse,
    ValidationStartRequest,
    ValidationStartResponse,
)
from clm.services.validation import (
    fail_job,
    find_in_flight_job,
    get_job,
    latest_job,
    list_diffs,
    start_validation,
)
from worker.workflows import ValidationRequest, ValidationWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["validations"])


def _build_job_response(db: Session, job: ExtractionJob) -> JobResponse:
    contract = get_contract(db, job.contract_id)
    return JobResponse(
        id=job.id,
        contract_id=job.contract_id,
        status=job.status,
        outcome=job.outcome,
        started_at=job.started_at,
        canonical_requested_at=job.canonical_requested_at,
        finished_at=job.finished_at,
        draft_extraction_id=job.draft_extraction_id,
        canonical_extraction_id=job.canonical_extraction_id,
        error=job.error,
        review_notes=job.canonical_extraction.review_notes if job.canonical_extraction else None,
        validation_status=contract.validation_status,
        diffs=[DiffResponse.model_validate(d) for d in list_diffs(db, job.id)],
    )


def _open_job(db: Session, contract_id: str, body: ValidationStartRequest) -> ValidationStartResponse:
    job = start_validation(db, contract_id, body.draft, confidence=body.confidence)
    return ValidationStartResponse(
        contract_id=contract_id,
        job_id=job.id,
        workflow_id=f"validation-{job.id}",
        validation_status=job.contract.validation_status,
    )


def _check_startable(db: Session, contract_id: str) -> ValidationStartResponse:
    # Early answer only; the worker's start_validation is the authoritative check
    contract = get_contract(db, contract_id)
    existing = find_in_flight_job(db, contract_id)
    if existing is not None:
        raise JobAlreadyInFlight(contract_id, existing.id)
    return ValidationStartResponse(
        contract_id=contract_id,
        workflow_id=f"validation-{contract_id}-{uuid4()}",
        validation_status=contract.validation_status,
    )


def _show_job(db: Session, job_id: str) -> JobResponse:
    return _build_job_response(db, get_job(db, job_id))


def _latest(db: Session, contract_id: str) -> JobResponse:
    get_contract(db, contract_id)
    job = latest_job(db, contract_id)
    if job is None:
        raise HTTPException(status_code=404, detail="No validation found for contract")
    return _build_job_response(db, job)


def _fail(db: Session, job_id: str, error: str) -> JobResponse:
    return _build_job_response(db, fail_job(db, job_id, error))


@router.post(
    "/contracts/{contract_id}/validations",
    response_model=ValidationStartResponse,
    status_code=202,
)
async def start(
    request: Request,
    contract_id: str,
    body: ValidationStartRequest,
    db: AsyncSession = Depends(get_db),
):
    """Start validating a contract from a draft reading or from document text."""
    temporal = getattr(request.app.state, "temporal", None)
    if temporal is None:
        raise HTTPException(status_code=503, detail="Validation service unavailable")

    try:
        if body.draft is not None:
            started = await run_in_transaction(db, _open_job, contract_id, body)
        else:
            started = await db.run_sync(_check_startable, contract_id)
    except LifecycleError as e:
        raise to_http_exception(e)

    workflow_input = ValidationRequest(
        contract_id=contract_id,
        job_id=started.job_id,
        document_text=body.document_text if body.draft is None else None,
        document_reference=body.document_reference,
        timeout_minutes=settings.VALIDATION_TIMEOUT_MINUTES,
    )
    try:
        await temporal.start_workflow(
            ValidationWorkflow.run,
            workflow_input,
            id=started.workflow_id,
            task_queue=settings.WORKER_TASK_QUEUE,
        )
    except Exception as e:
        logger.warning("Failed to start validation workflow for contract %s: %s", contract_id, e)
        if started.job_id is not None:
            await run_in_transaction(db, fail_job, started.job_id, f"workflow start failed: {e}")
        raise HTTPException(status_code=503, detail="Validation service unavailable")

    logger.info("Started validation workflow %s for contract %s", started.workflow_id, contract_id)
    return started


@router.get("/contracts/{contract_id}/validations/latest", response_model=JobResponse)
async def show_latest(contract_id: str, db: AsyncSession = Depends(get_db)):
    """The contract's most recent validation job with its diffs."""
    try:
        return await db.run_sync(_latest, contract_id)
    except LifecycleError as e:
        raise to_http_exception(e)


@router.get("/validations/{job_id}", response_model=JobResponse)
async def show_job(job_id: str, db: AsyncSession = Depends(get_db)):
    """A validation job with its diffs."""
    try:
        return await db.run_sync(_show_job, job_id)
    except LifecycleError as e:
        raise to_http_exception(e)


@router.post("/validations/{job_id}/fail", response_model=JobResponse)
async def fail(job_id: str, body: FailJobRequest, db: AsyncSession = Depends(get_db)):
    """Force a job to failed (supervisor timeout or explicit supersede)."""
    try:
        return await run_in_transaction(db, _fail, job_id, body.error)
    except LifecycleError as e:
        raise to_http_exception(e)
