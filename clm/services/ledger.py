"""Append-only ledger of contract lifecycle events.

Recording an event and applying its state effect happen in the caller's
transaction: the event row and the contract's new state are flushed
together, and a failure anywhere rolls both back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clm.core.errors import ContractNotFound, IllegalTransition, InvalidEventKind
from clm.db.models import Contract, ContractState, EventType, LifecycleEvent
from clm.services.state_machine import allowed_events, resulting_state

logger = logging.getLogger(__name__)


def parse_event_type(value: str | EventType) -> EventType:
    try:
        return EventType(value)
    except ValueError:
        raise InvalidEventKind(value) from None


def lock_contract(db: Session, contract_id: str) -> Contract:
    """Load a contract holding its row lock until the transaction ends.

    The lock serializes ledger appends and job starts for one contract on
    backends that support it (no-op on SQLite).
    """
    contract = db.execute(
        select(Contract).where(Contract.id == contract_id).with_for_update()
    ).scalar_one_or_none()
    if contract is None:
        raise ContractNotFound(contract_id)
    return contract


def record_event(
    db: Session,
    contract_id: str,
    event_type: str | EventType,
    occurred_at: datetime,
    note: Optional[str] = None,
) -> LifecycleEvent:
    """Append a lifecycle event and apply its state effect.

    Args:
        db: Session whose transaction the append joins.
        contract_id: Contract the event belongs to.
        event_type: One of the EventType values.
        occurred_at: When the event happened (business time).
        note: Optional free text.

    Returns:
        The stored LifecycleEvent (flushed, not committed).

    Raises:
        InvalidEventKind: event_type is not a recognized value (nothing read or written).
        ContractNotFound: No such contract.
        IllegalTransition: The event is not allowed in the contract's current state.
    """
    kind = parse_event_type(event_type)
    if occurred_at.tzinfo is not None:
        # Stored as naive UTC, like every other timestamp column
        occurred_at = occurred_at.astimezone(timezone.utc).replace(tzinfo=None)
    contract = lock_contract(db, contract_id)
    current = ContractState(contract.state)

    if kind not in allowed_events(current):
        logger.info("Rejected %s for contract %s in state %s", kind.value, contract_id, current.value)
        raise IllegalTransition(contract_id, current.value, kind.value)

    target = resulting_state(current, kind)
    new_state = target if target is not None else current

    last_sequence = db.execute(
        select(func.max(LifecycleEvent.sequence)).where(LifecycleEvent.contract_id == contract_id)
    ).scalar()

    event = LifecycleEvent(
        id=str(uuid4()),
        contract_id=contract_id,
        sequence=(last_sequence or 0) + 1,
        event_type=kind,
        occurred_at=occurred_at,
        note=note,
        previous_state=current,
        resulting_state=new_state,
    )
    db.add(event)
    contract.state = new_state
    db.flush()

    if target is not None:
        logger.info(
            "Contract %s moved %s -> %s on %s",
            contract_id,
            current.value,
            new_state.value,
            kind.value,
        )
    else:
        logger.info("Recorded %s for contract %s (state %s unchanged)", kind.value, contract_id, current.value)
    return event


def list_events(db: Session, contract_id: str) -> list[LifecycleEvent]:
    """Events for a contract, most recent occurrence first."""
    return list(
        db.execute(
            select(LifecycleEvent)
            .where(LifecycleEvent.contract_id == contract_id)
            .order_by(LifecycleEvent.occurred_at.desc(), LifecycleEvent.sequence.desc())
        ).scalars()
    )


def count_events(db: Session, contract_id: str) -> int:
    return db.execute(
        select(func.count(LifecycleEvent.id)).where(LifecycleEvent.contract_id == contract_id)
    ).scalar() or 0


__all__ = ["count_events", "list_events", "lock_contract", "parse_event_type", "record_event"]
