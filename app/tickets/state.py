from __future__ import annotations

from enum import Enum
from typing import Mapping

from app.core.errors import InvalidTicketTransitionError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "NEW"
    ATTENDING = "ATTENDING"
    COMPLETED = "COMPLETED"
    ESCALATED_L2 = "ESCALATED_L2"
    ESCALATED_L3 = "ESCALATED_L3"
    RESOLVED = "RESOLVED"


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    Every edge points forward: there is no way back to a lower tier and no
    way out of ``RESOLVED``. Setting a status to its current value is always
    accepted.
    """

    _DEFAULT_TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.NEW: frozenset(
            {
                TicketStatus.ATTENDING,
                TicketStatus.COMPLETED,
                TicketStatus.ESCALATED_L2,
                TicketStatus.ESCALATED_L3,
                TicketStatus.RESOLVED,
            }
        ),
        TicketStatus.ATTENDING: frozenset(
            {
                TicketStatus.COMPLETED,
                TicketStatus.ESCALATED_L2,
                TicketStatus.ESCALATED_L3,
                TicketStatus.RESOLVED,
            }
        ),
        TicketStatus.COMPLETED: frozenset(
            {TicketStatus.ESCALATED_L2, TicketStatus.ESCALATED_L3, TicketStatus.RESOLVED}
        ),
        TicketStatus.ESCALATED_L2: frozenset({TicketStatus.ESCALATED_L3, TicketStatus.RESOLVED}),
        TicketStatus.ESCALATED_L3: frozenset({TicketStatus.RESOLVED}),
        TicketStatus.RESOLVED: frozenset(),
    }

    def __init__(self, transitions: Mapping[TicketStatus, frozenset[TicketStatus]] | None = None) -> None:
        self._transitions = self._DEFAULT_TRANSITIONS if transitions is None else transitions
        missing = set(TicketStatus) - set(self._transitions)
        if missing:
            names = ", ".join(sorted(status.value for status in missing))
            raise ValueError(f"Transition table is missing states: {names}")

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.NEW

    def targets(self, current: TicketStatus) -> frozenset[TicketStatus]:
        return frozenset(self._transitions[current])

    def can_transition(self, current: TicketStatus, target: TicketStatus) -> bool:
        if current == target:
            return True
        return target in self._transitions[current]

    def assert_transition(self, current: TicketStatus, target: TicketStatus) -> None:
        if not self.can_transition(current, target):
            raise InvalidTicketTransitionError(
                f"Invalid ticket status transition: {current.value} -> {target.value}"
            )
