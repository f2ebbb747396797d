"""Contract state machine.

Pure functions only: which lifecycle events may be recorded in each
contract state, and which state an event leads to. The ledger consults
these before appending; nothing here touches the database.
"""

from __future__ import annotations

from typing import Optional

from clm.db.models import ContractState, EventType

# Recordable in every state; never change state.
UNIVERSAL_EVENTS: frozenset[EventType] = frozenset({EventType.nota_interna, EventType.alteracao})

_STATE_EVENTS: dict[ContractState, frozenset[EventType]] = {
    ContractState.draft: frozenset({EventType.criacao}),
    ContractState.under_review: frozenset(),
    ContractState.under_approval: frozenset(),
    ContractState.sent_for_signature: frozenset({EventType.assinatura, EventType.inicio_vigencia}),
    ContractState.active: frozenset(
        {
            EventType.inicio_vigencia,
            EventType.renovacao,
            EventType.adenda,
            EventType.rescisao,
            EventType.denuncia,
            EventType.expiracao,
        }
    ),
    ContractState.expired: frozenset({EventType.renovacao}),
    ContractState.denounced: frozenset(),
    ContractState.terminated: frozenset(),
}

# Target state per event type. Absent means the event never moves the contract.
# assinatura stays put: the move to active happens on inicio_vigencia, once
# signatures are complete, rather than on any single party's signature.
EVENT_TARGET_STATE: dict[EventType, ContractState] = {
    EventType.criacao: ContractState.draft,
    EventType.inicio_vigencia: ContractState.active,
    EventType.renovacao: ContractState.active,
    EventType.rescisao: ContractState.denounced,
    EventType.denuncia: ContractState.terminated,
    EventType.expiracao: ContractState.expired,
}

# Directed graph of legal state changes, event-driven or workflow-driven.
VALID_STATE_TRANSITIONS: dict[ContractState, frozenset[ContractState]] = {
    ContractState.draft: frozenset({ContractState.under_review, ContractState.active}),
    ContractState.under_review: frozenset(
        {ContractState.draft, ContractState.under_approval, ContractState.active}
    ),
    ContractState.under_approval: frozenset(
        {ContractState.under_review, ContractState.sent_for_signature, ContractState.active}
    ),
    ContractState.sent_for_signature: frozenset({ContractState.active, ContractState.under_review}),
    ContractState.active: frozenset(
        {ContractState.expired, ContractState.denounced, ContractState.terminated}
    ),
    ContractState.expired: frozenset({ContractState.active}),
    ContractState.denounced: frozenset(),
    ContractState.terminated: frozenset(),
}


def allowed_events(state: ContractState) -> frozenset[EventType]:
    """Return the closed set of event types recordable while in ``state``."""
    return UNIVERSAL_EVENTS | _STATE_EVENTS[ContractState(state)]


def is_allowed(state: ContractState, event_type: EventType) -> bool:
    return EventType(event_type) in allowed_events(state)


def resulting_state(current_state: ContractState, event_type: EventType) -> Optional[ContractState]:
    """Return the state an event moves the contract to, or None for no change.

    Depends only on the event type; a target equal to the current state is
    reported as no change.
    """
    target = EVENT_TARGET_STATE.get(EventType(event_type))
    if target is None or target == ContractState(current_state):
        return None
    return target


def can_transition_to(current_state: ContractState, target_state: ContractState) -> bool:
    return ContractState(target_state) in VALID_STATE_TRANSITIONS[ContractState(current_state)]


def is_terminal_state(state: ContractState) -> bool:
    """Denounced and terminated contracts only accept universal events."""
    return not VALID_STATE_TRANSITIONS[ContractState(state)]


__all__ = [
    "EVENT_TARGET_STATE",
    "UNIVERSAL_EVENTS",
    "VALID_STATE_TRANSITIONS",
    "allowed_events",
    "can_transition_to",
    "is_allowed",
    "is_terminal_state",
    "resulting_state",
]
