"""Temporal Activities for the contract validation workflow.

This module contains the activities executed by the worker:
- llm_extract_draft: Draft reading of document text using OpenAI
- open_validation_job: Store the draft and open the contract's job
- begin_canonical_pass: Mark the job as validating
- request_canonical: Ask the CCA agent for the canonical reading
- complete_validation: Diff draft against canonical and finish the job
- abort_validation: Fail the job, keeping its draft
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Optional

from temporalio import activity

from clm.core.config import settings
from clm.core.errors import ExtractionFailure
from clm.db.session import get_sync_db
from clm.services.validation import (
    CanonicalExtraction,
    attach_canonical,
    fail_job,
    get_job,
    mark_validating,
    start_validation,
)
from worker.cca_client import CCAAgentError, request_canonical_reading
from worker.llm_extractor import LLM_MODEL, LLMExtractError, extract_contract_reading

logger = logging.getLogger(__name__)


@activity.defn
def llm_extract_draft(contract_id: str, document_text: str) -> dict[str, Any]:
    """Produce a draft reading of the contract text with the LLM.

    Does not touch the database.

    Returns:
        Dict with 'payload' (field mapping), 'confidence' and 'source'.

    Raises:
        ExtractionFailure: The LLM adapter failed (its own retries exhausted).
    """
    logger.info("Running draft extraction for contract %s (%d chars)", contract_id, len(document_text))

    try:
        reading = extract_contract_reading(document_text)
    except LLMExtractError as e:
        logger.warning("Draft extraction failed for contract %s: %s", contract_id, e)
        raise ExtractionFailure(f"draft extraction failed: {e}")

    logger.info("Draft extraction complete for contract %s: confidence=%.2f", contract_id, reading.confianca)
    return {
        "payload": reading.to_payload(),
        "confidence": reading.confianca,
        "source": LLM_MODEL,
    }


@activity.defn
def open_validation_job(
    contract_id: str,
    draft: dict[str, Any],
    confidence: Optional[float] = None,
    source: str = "llm",
) -> str:
    """Store the draft extraction and open a running job.

    Returns:
        The new job id.

    Raises:
        JobAlreadyInFlight: The contract already has a job in flight.
        MalformedPayload: The draft cannot be diffed.
    """
    with get_sync_db() as db:
        job = start_validation(db, contract_id, draft, confidence=confidence, source=source)
        return job.id


@activity.defn
def begin_canonical_pass(job_id: str) -> str:
    """Mark the job as validating; returns the contract's status."""
    with get_sync_db() as db:
        job = mark_validating(db, job_id)
        return job.contract.validation_status.value


@activity.defn
def request_canonical(job_id: str, document_reference: Optional[str] = None) -> dict[str, Any]:
    """Ask the CCA agent for the canonical reading of the job's contract.

    The database session is closed before the agent is called; the agent
    may take minutes to answer.

    Returns:
        Dict form of CanonicalExtraction.

    Raises:
        ExtractionFailure: The agent could not be reached or answered with an error status.
    """
    with get_sync_db() as db:
        job = get_job(db, job_id)
        contract_id = job.contract_id
        draft = dict(job.draft_extraction.payload)

    try:
        canonical = request_canonical_reading(contract_id, draft, document_reference=document_reference)
    except CCAAgentError as e:
        logger.warning("CCA agent failed for job %s: %s", job_id, e)
        raise ExtractionFailure(str(e), job_id=job_id)

    return asdict(canonical)


@activity.defn
def complete_validation(job_id: str, canonical: dict[str, Any]) -> str:
    """Reconcile the draft with the canonical reading; returns the final status."""
    with get_sync_db() as db:
        result = attach_canonical(
            db,
            job_id,
            CanonicalExtraction(**canonical),
            material_fields=settings.MATERIAL_FIELDS,
        )
        return result.status.value


@activity.defn
def abort_validation(job_id: str, error: str) -> str:
    """Fail the job with the given error; returns the final job status."""
    with get_sync_db() as db:
        job = fail_job(db, job_id, error)
        return job.status.value


__all__ = [
    "llm_extract_draft",
    "open_validation_job",
    "begin_canonical_pass",
    "request_canonical",
    "complete_validation",
    "abort_validation",
]
