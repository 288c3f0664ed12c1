from __future__ import annotations

import dataclasses
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping

import pytest

from app.core.errors import ConflictError, TicketNotFoundError
from app.tickets.lifecycle import TicketLifecycle
from app.tickets.models import (
    Ticket,
    TicketAction,
    TicketFilter,
    User,
    UserRole,
    UserSummary,
)
from app.tickets.query import TicketQuery

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class TickingClock:
    """Clock returning a strictly increasing timestamp on every call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self._counter = itertools.count()
        self._start = start
        self._step = step

    def __call__(self) -> datetime:
        return self._start + self._step * next(self._counter)


class InMemoryTicketStore:
    def __init__(self) -> None:
        self.tickets: dict[str, Ticket] = {}
        self.actions: list[TicketAction] = []
        self.writes = 0

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        self.writes += 1
        self.tickets[ticket.id] = dataclasses.replace(ticket)
        return dataclasses.replace(ticket)

    async def find_ticket_by_id(self, ticket_id: str) -> Ticket | None:
        ticket = self.tickets.get(ticket_id)
        return dataclasses.replace(ticket) if ticket is not None else None

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        action: TicketAction | None = None,
    ) -> Ticket | None:
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            return None
        self.writes += 1
        self.tickets[ticket_id] = dataclasses.replace(ticket, **changes)
        if action is not None:
            self.actions.append(action)
        return dataclasses.replace(self.tickets[ticket_id])

    async def list_tickets(self, criteria: TicketFilter) -> list[Ticket]:
        matches = sorted(
            (ticket for ticket in self.tickets.values() if _matches(ticket, criteria)),
            key=lambda ticket: (ticket.updated_at, ticket.created_at),
            reverse=True,
        )
        end = None if criteria.limit is None else criteria.offset + criteria.limit
        return [dataclasses.replace(ticket) for ticket in matches[criteria.offset : end]]

    async def count_tickets(self, criteria: TicketFilter) -> int:
        return sum(1 for ticket in self.tickets.values() if _matches(ticket, criteria))

    async def create_ticket_action(
        self,
        action: TicketAction,
        *,
        ticket_changes: Mapping[str, Any] | None = None,
    ) -> TicketAction:
        if ticket_changes:
            ticket = self.tickets.get(action.ticket_id)
            if ticket is None:
                raise TicketNotFoundError()
            self.tickets[action.ticket_id] = dataclasses.replace(ticket, **ticket_changes)
        self.writes += 1
        self.actions.append(action)
        return action

    async def list_ticket_actions_by_ticket(self, ticket_id: str) -> list[TicketAction]:
        return sorted(
            (action for action in self.actions if action.ticket_id == ticket_id),
            key=lambda action: action.created_at,
        )

    def actions_for(self, ticket_id: str) -> list[TicketAction]:
        return [action for action in self.actions if action.ticket_id == ticket_id]


def _matches(ticket: Ticket, criteria: TicketFilter) -> bool:
    if criteria.statuses is not None and ticket.status not in criteria.statuses:
        return False
    if criteria.exclude_statuses and ticket.status in criteria.exclude_statuses:
        return False
    if criteria.priorities is not None and ticket.priority not in criteria.priorities:
        return False
    if criteria.categories is not None and ticket.category not in criteria.categories:
        return False
    if criteria.critical_values is not None and ticket.critical_value not in criteria.critical_values:
        return False
    if criteria.assigned_to is not None and ticket.assigned_to != criteria.assigned_to:
        return False
    if criteria.created_by is not None and ticket.created_by not in criteria.created_by:
        return False
    if criteria.search:
        needle = criteria.search.lower()
        if needle not in ticket.title.lower() and needle not in ticket.description.lower():
            return False
    return True


class InMemoryUserStore:
    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    async def create_user(self, user: User) -> User:
        if any(existing.email == user.email for existing in self.users.values()):
            raise ConflictError("User with this email already exists")
        self.users[user.id] = user
        return user

    async def find_user_by_id(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def find_user_by_email(self, email: str) -> User | None:
        return next((user for user in self.users.values() if user.email == email), None)

    async def find_summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        return {user_id: self.users[user_id].summary() for user_id in set(user_ids) if user_id in self.users}

    def add(self, user_id: str, role: UserRole, *, email: str | None = None) -> User:
        user = User(
            id=user_id,
            email=email or f"{user_id}@helpdesk.com",
            password_hash="not-a-real-hash",
            first_name=user_id.capitalize(),
            last_name="Tester",
            role=role,
            created_at=BASE_TIME,
            updated_at=BASE_TIME,
        )
        self.users[user_id] = user
        return user


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    store = InMemoryUserStore()
    store.add("agent", UserRole.L1_AGENT)
    store.add("tech", UserRole.L2_SUPPORT)
    store.add("admin", UserRole.L3_SUPPORT)
    return store


@pytest.fixture
def lifecycle(ticket_store: InMemoryTicketStore, clock: TickingClock) -> TicketLifecycle:
    return TicketLifecycle(ticket_store, clock=clock)


@pytest.fixture
def query(ticket_store: InMemoryTicketStore, user_store: InMemoryUserStore) -> TicketQuery:
    return TicketQuery(ticket_store, user_store)


@pytest.fixture
def ticket_draft() -> dict[str, Any]:
    return {
        "title": "Printer not working",
        "description": "The printer in the lobby is not responding.",
        "category": "HARDWARE",
        "priority": "MEDIUM",
        "expected_completion_date": "2024-05-04T09:00:00Z",
    }
