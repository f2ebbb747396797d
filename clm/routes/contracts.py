"""Contract, lifecycle event and deadline endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from clm.core.errors import LifecycleError
from clm.db.models import Contract
from clm.db.repository import create_contract, get_contract
from clm.db.session import get_db, run_in_transaction
from clm.routes.errors import to_http_exception
from clm.schemas.api import (
    AllowedEventsResponse,
    ContractCreate,
    ContractResponse,
    DeadlineResponse,
    EventCreate,
    EventResponse,
    NoticeWindowResponse,
    RecordEventResponse,
)
from clm.services.deadlines import next_deadline, notice_window
from clm.services.ledger import list_events, record_event
from clm.services.state_machine import allowed_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contracts", tags=["contracts"])


def _build_contract_response(contract: Contract) -> ContractResponse:
    """Map a Contract row to the API model, deadlines computed on read."""
    deadline = next_deadline(contract)
    window = notice_window(contract)
    return ContractResponse.model_validate(contract).model_copy(
        update={
            "next_deadline": DeadlineResponse.model_validate(deadline) if deadline else None,
            "notice_window": NoticeWindowResponse.model_validate(window) if window else None,
        }
    )


def _create(db: Session, body: ContractCreate) -> ContractResponse:
    contract = create_contract(db, **body.model_dump())
    logger.info("Created contract %s in state %s", contract.id, contract.state.value)
    return _build_contract_response(contract)


def _show(db: Session, contract_id: str) -> ContractResponse:
    return _build_contract_response(get_contract(db, contract_id))


def _allowed(db: Session, contract_id: str) -> AllowedEventsResponse:
    contract = get_contract(db, contract_id)
    return AllowedEventsResponse(
        contract_id=contract.id,
        state=contract.state,
        allowed_events=sorted(e.value for e in allowed_events(contract.state)),
    )


def _record(db: Session, contract_id: str, body: EventCreate) -> RecordEventResponse:
    event = record_event(db, contract_id, body.event_type, body.occurred_at, body.note)
    return RecordEventResponse(event=EventResponse.model_validate(event), state=event.resulting_state)


def _events(db: Session, contract_id: str) -> list[EventResponse]:
    get_contract(db, contract_id)
    return [EventResponse.model_validate(e) for e in list_events(db, contract_id)]


@router.post("", response_model=ContractResponse, status_code=201)
async def create(body: ContractCreate, db: AsyncSession = Depends(get_db)):
    """Register a contract record."""
    return await run_in_transaction(db, _create, body)


@router.get("/{contract_id}", response_model=ContractResponse)
async def show(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Get a contract with its next deadline and notice window."""
    try:
        return await db.run_sync(_show, contract_id)
    except LifecycleError as e:
        raise to_http_exception(e)


@router.get("/{contract_id}/allowed-events", response_model=AllowedEventsResponse)
async def get_allowed_events(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Event types that may be recorded in the contract's current state."""
    try:
        return await db.run_sync(_allowed, contract_id)
    except LifecycleError as e:
        raise to_http_exception(e)


@router.post("/{contract_id}/events", response_model=RecordEventResponse, status_code=201)
async def create_event(contract_id: str, body: EventCreate, db: AsyncSession = Depends(get_db)):
    """Record a lifecycle event; the state change commits with it or not at all."""
    try:
        return await run_in_transaction(db, _record, contract_id, body)
    except LifecycleError as e:
        logger.info("Event %s rejected for contract %s: %s", body.event_type, contract_id, e)
        raise to_http_exception(e)


@router.get("/{contract_id}/events", response_model=list[EventResponse])
async def get_events(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Lifecycle events, most recent first."""
    try:
        return await db.run_sync(_events, contract_id)
    except LifecycleError as e:
        raise to_http_exception(e)
