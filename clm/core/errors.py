"""Error taxonomy for the lifecycle and validation engine.

Every error raised by the services derives from LifecycleError so the API
layer can translate them in one place. None of them is raised after a
partial write: services raise before flushing, or inside a session scope
that rolls back.
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Base class for lifecycle and validation errors."""

    pass


class InvalidEventKind(LifecycleError):
    """The submitted event type is not a recognized value."""

    def __init__(self, event_type: object):
        self.event_type = event_type
        super().__init__(f"unrecognized event type: {event_type!r}")


class IllegalTransition(LifecycleError):
    """The event is not permitted while the contract is in its current state."""

    def __init__(self, contract_id: str, state: str, event_type: str):
        self.contract_id = contract_id
        self.state = state
        self.event_type = event_type
        super().__init__(
            f"event {event_type} is not allowed for contract {contract_id} in state {state}"
        )


class JobAlreadyInFlight(LifecycleError):
    """A non-terminal extraction job already exists for the contract."""

    def __init__(self, contract_id: str, job_id: str | None = None):
        self.contract_id = contract_id
        self.job_id = job_id
        detail = f" (job {job_id})" if job_id else ""
        super().__init__(f"contract {contract_id} already has a validation in flight{detail}")


class ExtractionFailure(LifecycleError):
    """An extraction collaborator reported an error."""

    def __init__(self, message: str, job_id: str | None = None):
        self.job_id = job_id
        self.message = message
        super().__init__(message)


class MalformedPayload(LifecycleError):
    """An extraction payload cannot be diffed (not a structured mapping)."""

    pass


class ContractNotFound(LifecycleError):
    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"contract {contract_id} not found")


class JobNotFound(LifecycleError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"extraction job {job_id} not found")


class JobNotActive(LifecycleError):
    """The job is terminal and cannot take the requested transition."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"extraction job {job_id} is already {status}")


__all__ = [
    "LifecycleError",
    "InvalidEventKind",
    "IllegalTransition",
    "JobAlreadyInFlight",
    "ExtractionFailure",
    "MalformedPayload",
    "ContractNotFound",
    "JobNotFound",
    "JobNotActive",
]
