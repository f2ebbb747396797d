"""Tests for the contract state machine (pure functions)."""

import pytest

from clm.db.models import ContractState, EventType
from clm.services.state_machine import (
    EVENT_TARGET_STATE,
    UNIVERSAL_EVENTS,
    allowed_events,
    can_transition_to,
    is_allowed,
    is_terminal_state,
    resulting_state,
)

ALL_STATES = list(ContractState)


class TestAllowedEvents:
    @pytest.mark.parametrize("state", ALL_STATES)
    def test_universal_events_always_allowed(self, state):
        events = allowed_events(state)
        assert EventType.nota_interna in events
        assert EventType.alteracao in events

    def test_draft_allows_only_creation_and_universal(self):
        assert allowed_events(ContractState.draft) == UNIVERSAL_EVENTS | {EventType.criacao}

    def test_sent_for_signature(self):
        events = allowed_events(ContractState.sent_for_signature)
        assert EventType.assinatura in events
        assert EventType.inicio_vigencia in events
        assert EventType.renovacao not in events

    def test_active(self):
        assert allowed_events(ContractState.active) == UNIVERSAL_EVENTS | {
            EventType.inicio_vigencia,
            EventType.renovacao,
            EventType.adenda,
            EventType.rescisao,
            EventType.denuncia,
            EventType.expiracao,
        }

    def test_expired_can_be_renewed(self):
        assert allowed_events(ContractState.expired) == UNIVERSAL_EVENTS | {EventType.renovacao}

    @pytest.mark.parametrize(
        "state",
        [ContractState.under_review, ContractState.under_approval, ContractState.denounced, ContractState.terminated],
    )
    def test_states_with_only_universal_events(self, state):
        assert allowed_events(state) == UNIVERSAL_EVENTS

    def test_accepts_plain_string_state(self):
        assert allowed_events("draft") == allowed_events(ContractState.draft)

    def test_is_allowed(self):
        assert is_allowed(ContractState.draft, EventType.criacao)
        assert not is_allowed(ContractState.draft, EventType.assinatura)


class TestResultingState:
    @pytest.mark.parametrize("state", ALL_STATES)
    @pytest.mark.parametrize("event", [EventType.nota_interna, EventType.alteracao])
    def test_universal_events_never_change_state(self, state, event):
        assert resulting_state(state, event) is None

    def test_signature_does_not_change_state(self):
        assert resulting_state(ContractState.sent_for_signature, EventType.assinatura) is None

    def test_start_of_effect_activates(self):
        assert resulting_state(ContractState.sent_for_signature, EventType.inicio_vigencia) == ContractState.active

    def test_start_of_effect_when_already_active_is_no_change(self):
        assert resulting_state(ContractState.active, EventType.inicio_vigencia) is None

    def test_creation_in_draft_is_no_change(self):
        assert resulting_state(ContractState.draft, EventType.criacao) is None

    def test_amendment_keeps_state(self):
        assert resulting_state(ContractState.active, EventType.adenda) is None

    @pytest.mark.parametrize(
        "event, target",
        [
            (EventType.rescisao, ContractState.denounced),
            (EventType.denuncia, ContractState.terminated),
            (EventType.expiracao, ContractState.expired),
        ],
    )
    def test_ending_events_from_active(self, event, target):
        assert resulting_state(ContractState.active, event) == target

    def test_renewal_revives_expired_contract(self):
        assert resulting_state(ContractState.expired, EventType.renovacao) == ContractState.active

    def test_deterministic(self):
        for state in ALL_STATES:
            for event in EventType:
                assert resulting_state(state, event) == resulting_state(state, event)

    @pytest.mark.parametrize("state", ALL_STATES)
    def test_every_allowed_state_change_is_a_valid_transition(self, state):
        for event in allowed_events(state):
            target = resulting_state(state, event)
            if target is not None:
                assert can_transition_to(state, target), (state, event, target)

    def test_targets_only_from_event_type(self):
        assert set(EVENT_TARGET_STATE.values()) <= set(ContractState)


class TestTransitionGraph:
    def test_terminal_states(self):
        assert is_terminal_state(ContractState.denounced)
        assert is_terminal_state(ContractState.terminated)
        assert not is_terminal_state(ContractState.expired)

    def test_approval_flow(self):
        assert can_transition_to(ContractState.draft, ContractState.under_review)
        assert can_transition_to(ContractState.under_review, ContractState.under_approval)
        assert can_transition_to(ContractState.under_approval, ContractState.sent_for_signature)
        assert not can_transition_to(ContractState.draft, ContractState.terminated)
