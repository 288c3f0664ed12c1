from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol

from sqlalchemy import delete, func, or_
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from app.core.errors import TicketNotFoundError
from packages.db.models import TicketActionTable, TicketTable

from .models import (
    CriticalValue,
    Ticket,
    TicketAction,
    TicketCategory,
    TicketFilter,
    TicketPriority,
)
from .state import TicketStatus

_TICKET_COLUMNS = frozenset(
    {
        "title",
        "description",
        "category",
        "priority",
        "status",
        "critical_value",
        "expected_completion_date",
        "assigned_to",
        "updated_at",
    }
)


class TicketStore(Protocol):
    """Storage contract the ticket lifecycle and queries rely on."""

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        ...

    async def find_ticket_by_id(self, ticket_id: str) -> Ticket | None:
        ...

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        action: TicketAction | None = None,
    ) -> Ticket | None:
        ...

    async def list_tickets(self, criteria: TicketFilter) -> list[Ticket]:
        ...

    async def count_tickets(self, criteria: TicketFilter) -> int:
        ...

    async def create_ticket_action(
        self,
        action: TicketAction,
        *,
        ticket_changes: Mapping[str, Any] | None = None,
    ) -> TicketAction:
        ...

    async def list_ticket_actions_by_ticket(self, ticket_id: str) -> list[TicketAction]:
        ...


class TicketRepository:
    """Persistence helper wrapping the ``tickets`` and ``ticket_actions`` tables.

    A ticket mutation and the action describing it are written inside one
    transaction, so a ticket never changes without its audit entry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        title=ticket.title,
                        description=ticket.description,
                        category=ticket.category.value,
                        priority=ticket.priority.value,
                        status=ticket.status.value,
                        critical_value=ticket.critical_value.value,
                        expected_completion_date=ticket.expected_completion_date,
                        created_by=ticket.created_by,
                        assigned_to=ticket.assigned_to,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                    )
                )
        return ticket

    async def find_ticket_by_id(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        action: TicketAction | None = None,
    ) -> Ticket | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id)
                if row is None:
                    return None
                self._apply_changes(row, changes)
                if action is not None:
                    session.add(self._action_to_table(action))
                await session.flush()
                return self._table_to_ticket(row)

    async def list_tickets(self, criteria: TicketFilter) -> list[Ticket]:
        statement = self._filtered(select(TicketTable), criteria).order_by(
            TicketTable.updated_at.desc(), TicketTable.created_at.desc()
        )
        if criteria.offset:
            statement = statement.offset(criteria.offset)
        if criteria.limit is not None:
            statement = statement.limit(criteria.limit)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def count_tickets(self, criteria: TicketFilter) -> int:
        statement = self._filtered(sa_select(func.count()).select_from(TicketTable), criteria)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return int(result.scalar_one())

    async def create_ticket_action(
        self,
        action: TicketAction,
        *,
        ticket_changes: Mapping[str, Any] | None = None,
    ) -> TicketAction:
        async with self._session_factory() as session:
            async with session.begin():
                if ticket_changes:
                    row = await session.get(TicketTable, action.ticket_id)
                    if row is None:
                        raise TicketNotFoundError(f"Ticket {action.ticket_id} not found")
                    self._apply_changes(row, ticket_changes)
                session.add(self._action_to_table(action))
        return action

    async def list_ticket_actions_by_ticket(self, ticket_id: str) -> list[TicketAction]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketActionTable)
                .where(TicketActionTable.ticket_id == ticket_id)
                .order_by(TicketActionTable.created_at.asc())
            )
            return [self._table_to_action(row) for row in result.scalars().all()]

    async def delete_tickets_created_by(self, user_ids: Iterable[str]) -> int:
        """Remove tickets opened by ``user_ids``, deleting their actions first."""

        ids = list(user_ids)
        if not ids:
            return 0
        async with self._session_factory() as session:
            async with session.begin():
                owned = sa_select(TicketTable.id).where(TicketTable.created_by.in_(ids))
                await session.execute(
                    delete(TicketActionTable)
                    .where(TicketActionTable.ticket_id.in_(owned))
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(
                    delete(TicketTable)
                    .where(TicketTable.created_by.in_(ids))
                    .execution_options(synchronize_session=False)
                )
        return int(result.rowcount or 0)

    @staticmethod
    def _filtered(statement: Any, criteria: TicketFilter) -> Any:
        if criteria.statuses is not None:
            statement = statement.where(TicketTable.status.in_(_values(criteria.statuses)))
        if criteria.exclude_statuses:
            statement = statement.where(TicketTable.status.not_in(_values(criteria.exclude_statuses)))
        if criteria.priorities is not None:
            statement = statement.where(TicketTable.priority.in_(_values(criteria.priorities)))
        if criteria.categories is not None:
            statement = statement.where(TicketTable.category.in_(_values(criteria.categories)))
        if criteria.critical_values is not None:
            statement = statement.where(TicketTable.critical_value.in_(_values(criteria.critical_values)))
        if criteria.assigned_to is not None:
            statement = statement.where(TicketTable.assigned_to == criteria.assigned_to)
        if criteria.created_by is not None:
            statement = statement.where(TicketTable.created_by.in_(list(criteria.created_by)))
        if criteria.search:
            pattern = f"%{criteria.search}%"
            statement = statement.where(
                or_(TicketTable.title.ilike(pattern), TicketTable.description.ilike(pattern))
            )
        return statement

    @staticmethod
    def _apply_changes(row: TicketTable, changes: Mapping[str, Any]) -> None:
        unknown = set(changes) - _TICKET_COLUMNS
        if unknown:
            raise KeyError(f"Unknown ticket fields: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(row, name, value.value if isinstance(value, Enum) else value)

    @staticmethod
    def _action_to_table(action: TicketAction) -> TicketActionTable:
        return TicketActionTable(
            id=action.id,
            ticket_id=action.ticket_id,
            user_id=action.user_id,
            action=action.action,
            notes=action.notes,
            new_status=action.new_status.value if action.new_status else None,
            created_at=action.created_at,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description,
            category=TicketCategory(row.category),
            priority=TicketPriority(row.priority),
            status=TicketStatus(row.status),
            critical_value=CriticalValue(row.critical_value),
            expected_completion_date=_ensure_datetime(row.expected_completion_date),
            created_by=row.created_by,
            assigned_to=row.assigned_to,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_action(row: TicketActionTable) -> TicketAction:
        return TicketAction(
            id=row.id,
            ticket_id=row.ticket_id,
            user_id=row.user_id,
            action=row.action,
            notes=row.notes,
            new_status=TicketStatus(row.new_status) if row.new_status else None,
            created_at=_ensure_datetime(row.created_at),
        )


def _values(members: Iterable[Enum]) -> list[str]:
    return [member.value for member in members]


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
