"""Temporal Workflows for contract validation.

This module contains the ValidationWorkflow that checks a draft reading
of a contract against the CCA agent's canonical reading:
[llm_extract_draft -> open_validation_job] -> begin_canonical_pass
-> request_canonical -> complete_validation
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from worker.activities import (
        abort_validation,
        begin_canonical_pass,
        complete_validation,
        llm_extract_draft,
        open_validation_job,
        request_canonical,
    )

# Failures no retry can fix: the job is gone, finished, or the input is bad
NON_RETRYABLE = [
    "JobAlreadyInFlight",
    "JobNotActive",
    "JobNotFound",
    "ContractNotFound",
    "MalformedPayload",
    "ExtractionFailure",
]


@dataclass
class ValidationRequest:
    """Input of ValidationWorkflow.

    With ``job_id`` set the draft is already stored and the job open; without
    it the workflow first reads ``document_text`` into a draft.
    """

    contract_id: str
    job_id: Optional[str] = None
    document_text: Optional[str] = None
    document_reference: Optional[str] = None
    timeout_minutes: int = 10


def _failure_message(err: ActivityError) -> str:
    cause = err.cause if err.cause is not None else err
    return str(cause) or type(cause).__name__


@workflow.defn
class ValidationWorkflow:
    """Workflow that validates a contract's draft reading.

    This workflow:
    1. Produces and stores the draft when only document text was given
    2. Marks the job as validating
    3. Asks the CCA agent for the canonical reading
    4. Diffs the two readings and finishes the job

    Once the job exists, any step failing fails the job (draft kept) and
    the workflow still completes, reporting status failed.
    """

    @workflow.run
    async def run(self, request: ValidationRequest) -> dict:
        """Execute the validation workflow.

        Args:
            request: Contract, optional open job and optional document text.

        Returns:
            Dict with status, contract_id and job_id.
        """
        contract_id = request.contract_id
        job_id = request.job_id

        workflow.logger.info(f"Starting validation workflow for contract {contract_id}, job_id={job_id}")

        if job_id is None:
            # Step 0: Draft reading from text; nothing stored yet, so a failure ends the run
            draft = await workflow.execute_activity(
                llm_extract_draft,
                args=[contract_id, request.document_text or ""],
                start_to_close_timeout=timedelta(minutes=3),
                retry_policy=RetryPolicy(
                    maximum_attempts=3,
                    initial_interval=timedelta(seconds=2),
                    backoff_coefficient=2.0,
                    maximum_interval=timedelta(seconds=30),
                    non_retryable_error_types=NON_RETRYABLE,
                ),
            )
            job_id = await workflow.execute_activity(
                open_validation_job,
                args=[contract_id, draft["payload"], draft["confidence"], draft["source"]],
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(
                    maximum_attempts=3,
                    non_retryable_error_types=NON_RETRYABLE,
                ),
            )
            workflow.logger.info(f"Opened validation job {job_id} for contract {contract_id}")

        try:
            # Step 1: Contract shows validating
            await workflow.execute_activity(
                begin_canonical_pass,
                job_id,
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(
                    maximum_attempts=3,
                    non_retryable_error_types=NON_RETRYABLE,
                ),
            )

            # Step 2: Canonical reading; the agent can be slow, bound the whole pass
            canonical = await workflow.execute_activity(
                request_canonical,
                args=[job_id, request.document_reference],
                start_to_close_timeout=timedelta(minutes=3),
                schedule_to_close_timeout=timedelta(minutes=request.timeout_minutes),
                retry_policy=RetryPolicy(
                    maximum_attempts=2,
                    initial_interval=timedelta(seconds=5),
                    non_retryable_error_types=NON_RETRYABLE,
                ),
            )

            # Step 3: Diff and finish
            status = await workflow.execute_activity(
                complete_validation,
                args=[job_id, canonical],
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(
                    maximum_attempts=3,
                    non_retryable_error_types=NON_RETRYABLE,
                ),
            )
        except ActivityError as err:
            message = _failure_message(err)
            workflow.logger.warning(f"Validation job {job_id} failed: {message}")
            status = await workflow.execute_activity(
                abort_validation,
                args=[job_id, message],
                start_to_close_timeout=timedelta(minutes=1),
                retry_policy=RetryPolicy(
                    maximum_attempts=5,
                    non_retryable_error_types=["JobNotActive", "JobNotFound"],
                ),
            )

        workflow.logger.info(f"Validation workflow completed for job {job_id}: {status}")

        return {
            "status": status,
            "contract_id": contract_id,
            "job_id": job_id,
        }


__all__ = ["ValidationRequest", "ValidationWorkflow"]
