"""Business logic services."""

from clm.services.deadlines import Deadline, NoticeStatus, NoticeWindow, next_deadline, notice_window
from clm.services.diff import FieldDiff, FieldValue, compute_diff, normalize_payload
from clm.services.ledger import list_events, record_event
from clm.services.state_machine import allowed_events, can_transition_to, resulting_state
from clm.services.validation import (
    CanonicalExtraction,
    ValidationResult,
    attach_canonical,
    derive_validation_status,
    fail_job,
    mark_validating,
    start_validation,
)

__all__ = [
    "CanonicalExtraction",
    "Deadline",
    "FieldDiff",
    "FieldValue",
    "NoticeStatus",
    "NoticeWindow",
    "ValidationResult",
    "allowed_events",
    "attach_canonical",
    "can_transition_to",
    "compute_diff",
    "derive_validation_status",
    "fail_job",
    "list_events",
    "mark_validating",
    "next_deadline",
    "normalize_payload",
    "notice_window",
    "record_event",
    "resulting_state",
    "start_validation",
]
