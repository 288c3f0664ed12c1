import pytest

from app.core.errors import InvalidTicketTransitionError
from app.tickets.state import TicketStateMachine, TicketStatus


def test_ticket_state_machine_allows_expected_transitions():
    machine = TicketStateMachine()
    assert machine.can_transition(TicketStatus.NEW, TicketStatus.ATTENDING)
    assert machine.can_transition(TicketStatus.ATTENDING, TicketStatus.COMPLETED)
    assert machine.can_transition(TicketStatus.COMPLETED, TicketStatus.ESCALATED_L2)
    assert machine.can_transition(TicketStatus.ESCALATED_L2, TicketStatus.ESCALATED_L3)
    assert machine.can_transition(TicketStatus.ESCALATED_L3, TicketStatus.RESOLVED)
    assert machine.can_transition(TicketStatus.NEW, TicketStatus.RESOLVED)


def test_ticket_state_machine_accepts_same_status():
    machine = TicketStateMachine()
    for status in TicketStatus:
        assert machine.can_transition(status, status)


def test_ticket_state_machine_blocks_backward_transitions():
    machine = TicketStateMachine()
    assert not machine.can_transition(TicketStatus.ESCALATED_L2, TicketStatus.ATTENDING)
    assert not machine.can_transition(TicketStatus.ESCALATED_L3, TicketStatus.ESCALATED_L2)
    with pytest.raises(InvalidTicketTransitionError) as exc:
        machine.assert_transition(TicketStatus.RESOLVED, TicketStatus.NEW)
    assert exc.value.message == "Invalid ticket status transition: RESOLVED -> NEW"


def test_resolved_is_terminal():
    machine = TicketStateMachine()
    assert machine.targets(TicketStatus.RESOLVED) == frozenset()
    assert machine.initial_state() is TicketStatus.NEW


def test_transition_table_must_cover_every_status():
    with pytest.raises(ValueError):
        TicketStateMachine({TicketStatus.NEW: frozenset({TicketStatus.RESOLVED})})


def test_empty_transition_table_is_rejected():
    with pytest.raises(ValueError, match="missing states"):
        TicketStateMachine({})
