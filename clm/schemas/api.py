"""API request and response models."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from clm.db.models import ContractState, EventType, JobStatus, RenewalType, ValidationStatus
from clm.services.deadlines import NoticeStatus


class ContractCreate(BaseModel):
    """Contract record as imported from the surrounding application."""

    organization_id: str
    title: str
    state: ContractState = ContractState.draft
    start_of_effect: Optional[date] = None
    term_date: Optional[date] = None
    renewal_decision_deadline: Optional[date] = None
    notice_period_days: Optional[int] = Field(default=None, ge=0)
    renewal_type: Optional[RenewalType] = None
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class DeadlineResponse(BaseModel):
    label: str
    date: date
    days_remaining: int

    model_config = {"from_attributes": True}


class NoticeWindowResponse(BaseModel):
    notice_date: date
    days_until_notice: int
    status: NoticeStatus
    notice_days: int

    model_config = {"from_attributes": True}


class ContractResponse(BaseModel):
    id: str
    organization_id: str
    title: str
    state: ContractState
    validation_status: ValidationStatus
    start_of_effect: Optional[date] = None
    term_date: Optional[date] = None
    renewal_decision_deadline: Optional[date] = None
    notice_period_days: Optional[int] = None
    renewal_type: Optional[RenewalType] = None
    confidence_threshold: float
    next_deadline: Optional[DeadlineResponse] = None
    notice_window: Optional[NoticeWindowResponse] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventCreate(BaseModel):
    # Plain string: unknown kinds are rejected by the ledger as InvalidEventKind
    event_type: str
    occurred_at: datetime
    note: Optional[str] = None


class EventResponse(BaseModel):
    id: str
    contract_id: str
    sequence: int
    event_type: EventType
    occurred_at: datetime
    note: Optional[str] = None
    previous_state: ContractState
    resulting_state: ContractState
    created_at: datetime

    model_config = {"from_attributes": True}


class RecordEventResponse(BaseModel):
    event: EventResponse
    state: ContractState


class AllowedEventsResponse(BaseModel):
    contract_id: str
    state: ContractState
    allowed_events: list[str]


class ValidationStartRequest(BaseModel):
    """Start a validation from a draft reading, or from document text to be read."""

    draft: Optional[dict[str, Any]] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    document_text: Optional[str] = None
    document_reference: Optional[str] = None

    @model_validator(mode="after")
    def _draft_or_text(self) -> "ValidationStartRequest":
        if self.draft is None and not (self.document_text and self.document_text.strip()):
            raise ValueError("either draft or document_text is required")
        return self


class ValidationStartResponse(BaseModel):
    contract_id: str
    job_id: Optional[str] = None
    workflow_id: str
    validation_status: ValidationStatus


class DiffResponse(BaseModel):
    field_path: str
    draft_value: Any = None
    canonical_value: Any = None
    material: bool

    model_config = {"from_attributes": True}


class JobResponse(BaseModel):
    id: str
    contract_id: str
    status: JobStatus
    outcome: Optional[ValidationStatus] = None
    started_at: datetime
    canonical_requested_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    draft_extraction_id: str
    canonical_extraction_id: Optional[str] = None
    error: Optional[str] = None
    review_notes: Optional[str] = None
    validation_status: ValidationStatus
    diffs: list[DiffResponse] = Field(default_factory=list)


class FailJobRequest(BaseModel):
    error: str = Field(min_length=1)
