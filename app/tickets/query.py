from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

from app.core.errors import TicketNotFoundError

from .models import (
    L3_CRITICAL_VALUES,
    EscalationLevel,
    Ticket,
    TicketDetail,
    TicketFilter,
    TicketPage,
    UserSummary,
)
from .repository import TicketStore
from .schemas import INVALID_ESCALATION_LEVEL, TicketListFilters, TicketSearch, parse_enum, parse_input
from .state import TicketStatus


class UserDirectory(Protocol):
    async def find_summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        ...


class TicketQuery:
    """Read side of the ticket store: listings, queues and ticket detail."""

    def __init__(self, store: TicketStore, users: UserDirectory) -> None:
        self._store = store
        self._users = users

    async def list(self, filters: TicketListFilters | Mapping[str, Any] | None = None) -> list[Ticket]:
        criteria = parse_input(TicketListFilters, filters or {})
        status = criteria.effective_status()
        return await self._store.list_tickets(
            TicketFilter(
                statuses=frozenset({status}) if status is not None else None,
                priorities=frozenset({criteria.priority}) if criteria.priority is not None else None,
            )
        )

    async def get_by_id(self, ticket_id: str) -> TicketDetail:
        ticket = await self._store.find_ticket_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        actions = await self._store.list_ticket_actions_by_ticket(ticket_id)

        user_ids = {ticket.created_by, *(action.user_id for action in actions)}
        if ticket.assigned_to:
            user_ids.add(ticket.assigned_to)
        users = await self._users.find_summaries(user_ids)

        return TicketDetail(
            ticket=ticket,
            created_by=users.get(ticket.created_by),
            assigned_to=users.get(ticket.assigned_to) if ticket.assigned_to else None,
            actions=sorted(actions, key=lambda action: action.created_at),
            users=users,
        )

    async def list_by_assignee(self, user_id: str) -> list[Ticket]:
        return await self._store.list_tickets(
            TicketFilter(assigned_to=user_id, exclude_statuses=frozenset({TicketStatus.RESOLVED}))
        )

    async def list_escalated(self, level: EscalationLevel | str) -> list[Ticket]:
        target = parse_enum(EscalationLevel, level, INVALID_ESCALATION_LEVEL)
        return await self._store.list_tickets(_escalated_filter(target))

    async def search(
        self,
        criteria: TicketSearch | Mapping[str, Any] | None = None,
        *,
        assigned_to: str | None = None,
        level: EscalationLevel | None = None,
    ) -> TicketPage:
        """Page through tickets; ``assigned_to`` and ``level`` narrow to a personal or tier queue."""

        search = parse_input(TicketSearch, criteria or {})
        base = _escalated_filter(level) if level is not None else TicketFilter()

        statuses = frozenset(search.statuses) or None
        if base.statuses is not None:
            # A tier queue never widens beyond its own status.
            statuses = base.statuses & statuses if statuses else base.statuses
        critical_values = frozenset(search.critical_values) or None
        if base.critical_values is not None:
            critical_values = base.critical_values & critical_values if critical_values else base.critical_values

        selection = TicketFilter(
            statuses=statuses,
            priorities=frozenset(search.priorities) or None,
            categories=frozenset(search.categories) or None,
            critical_values=critical_values,
            assigned_to=assigned_to,
            search=search.search or None,
        )
        total = await self._store.count_tickets(selection)
        selection.offset = search.offset
        selection.limit = search.limit
        items = await self._store.list_tickets(selection)
        return TicketPage(items=items, total=total, page=search.page, limit=search.limit)


def _escalated_filter(level: EscalationLevel) -> TicketFilter:
    if level is EscalationLevel.L3:
        return TicketFilter(statuses=frozenset({level.status}), critical_values=L3_CRITICAL_VALUES)
    return TicketFilter(statuses=frozenset({level.status}))
