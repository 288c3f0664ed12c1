from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Sequence

from .state import TicketStatus


class UserRole(str, Enum):
    """Support tiers a user can belong to."""

    L1_AGENT = "L1_AGENT"
    L2_SUPPORT = "L2_SUPPORT"
    L3_SUPPORT = "L3_SUPPORT"


class TicketCategory(str, Enum):
    HARDWARE = "HARDWARE"
    SOFTWARE = "SOFTWARE"
    NETWORK = "NETWORK"
    ACCESS = "ACCESS"
    OTHER = "OTHER"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class CriticalValue(str, Enum):
    """Severity assigned once a ticket reaches the upper support tiers."""

    NONE = "NONE"
    C1 = "C1"
    C2 = "C2"
    C3 = "C3"


L3_CRITICAL_VALUES: frozenset[CriticalValue] = frozenset({CriticalValue.C1, CriticalValue.C2})


class EscalationLevel(str, Enum):
    """Support tier a ticket can be escalated to."""

    L2 = "L2"
    L3 = "L3"

    @property
    def status(self) -> TicketStatus:
        if self is EscalationLevel.L2:
            return TicketStatus.ESCALATED_L2
        return TicketStatus.ESCALATED_L3


@dataclass(slots=True)
class UserSummary:
    """Public projection of a user attached to tickets and actions."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole


@dataclass(slots=True)
class User:
    """Stored user account, including the opaque password hash."""

    id: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: datetime
    updated_at: datetime

    def summary(self) -> UserSummary:
        return UserSummary(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            role=self.role,
        )


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    title: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    critical_value: CriticalValue
    expected_completion_date: datetime
    created_by: str
    assigned_to: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class TicketAction:
    """Append-only audit entry describing who did what to a ticket."""

    id: str
    ticket_id: str
    user_id: str
    action: str
    notes: str | None
    new_status: TicketStatus | None
    created_at: datetime


@dataclass(slots=True)
class TicketHistoryEntry:
    """One step of a ticket's timeline, paired with the acting user."""

    action: str
    notes: str | None
    new_status: TicketStatus | None
    user: UserSummary | None
    created_at: datetime
    action_id: str | None = None


@dataclass(slots=True)
class TicketDetail:
    """Ticket bundled with its creator, assignee and ordered action history."""

    ticket: Ticket
    created_by: UserSummary | None
    assigned_to: UserSummary | None
    actions: Sequence[TicketAction]
    users: Mapping[str, UserSummary] = field(default_factory=dict)

    def history(self) -> list[TicketHistoryEntry]:
        """Return the full timeline, starting with the implicit creation event."""

        entries = [
            TicketHistoryEntry(
                action="Created ticket",
                notes=None,
                new_status=TicketStatus.NEW,
                user=self.created_by,
                created_at=self.ticket.created_at,
            )
        ]
        for action in self.actions:
            entries.append(
                TicketHistoryEntry(
                    action=action.action,
                    notes=action.notes,
                    new_status=action.new_status,
                    user=self.users.get(action.user_id),
                    created_at=action.created_at,
                    action_id=action.id,
                )
            )
        return entries


@dataclass(slots=True)
class TicketFilter:
    """Store level selection criteria for ticket listings."""

    statuses: frozenset[TicketStatus] | None = None
    exclude_statuses: frozenset[TicketStatus] | None = None
    priorities: frozenset[TicketPriority] | None = None
    categories: frozenset[TicketCategory] | None = None
    critical_values: frozenset[CriticalValue] | None = None
    assigned_to: str | None = None
    created_by: frozenset[str] | None = None
    search: str | None = None
    offset: int = 0
    limit: int | None = None


@dataclass(slots=True)
class TicketPage:
    """A single page of tickets together with the unpaged total."""

    items: Sequence[Ticket]
    total: int
    page: int
    limit: int
