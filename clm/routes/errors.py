"""Translate lifecycle errors into HTTP responses."""

from fastapi import HTTPException

from clm.core.errors import (
    ContractNotFound,
    ExtractionFailure,
    IllegalTransition,
    InvalidEventKind,
    JobAlreadyInFlight,
    JobNotActive,
    JobNotFound,
    LifecycleError,
    MalformedPayload,
)

_STATUS_CODES: dict[type[LifecycleError], int] = {
    InvalidEventKind: 422,
    MalformedPayload: 422,
    IllegalTransition: 409,
    JobAlreadyInFlight: 409,
    JobNotActive: 409,
    ContractNotFound: 404,
    JobNotFound: 404,
    ExtractionFailure: 502,
}


def to_http_exception(exc: LifecycleError) -> HTTPException:
    status_code = _STATUS_CODES.get(type(exc), 400)
    detail: dict = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, JobAlreadyInFlight) and exc.job_id:
        detail["job_id"] = exc.job_id
    return HTTPException(status_code=status_code, detail=detail)
