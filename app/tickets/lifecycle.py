from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from app.core.errors import TicketNotFoundError

from .models import CriticalValue, EscalationLevel, Ticket, TicketAction
from .repository import TicketStore
from .schemas import (
    INVALID_ESCALATION_LEVEL,
    ActionDraft,
    TicketDraft,
    TicketPatch,
    parse_enum,
    parse_input,
)
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

UPDATED_DETAILS = "Updated ticket details"
RESOLVED_TICKET = "Resolved ticket"


class TicketLifecycle:
    """Apply ticket transitions and record the matching audit actions.

    Callers are expected to have authorized ``actor_id`` already; the
    lifecycle trusts it. Every status change follows the state machine, so
    a resolved ticket cannot be reopened. Each mutating call writes its action
    in the same store transaction as the ticket change.
    """

    def __init__(
        self,
        store: TicketStore,
        *,
        state_machine: TicketStateMachine | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._state_machine = state_machine or TicketStateMachine()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def create(self, data: TicketDraft | Mapping[str, Any], creator_id: str) -> Ticket:
        draft = parse_input(TicketDraft, data)
        now = self._clock()
        ticket = Ticket(
            id=str(uuid.uuid4()),
            title=draft.title,
            description=draft.description,
            category=draft.category,
            priority=draft.priority,
            status=self._state_machine.initial_state(),
            critical_value=CriticalValue.NONE,
            expected_completion_date=_as_utc(draft.expected_completion_date),
            created_by=creator_id,
            assigned_to=creator_id,
            created_at=now,
            updated_at=now,
        )
        created = await self._store.create_ticket(ticket)
        logger.info("Ticket %s created by %s", created.id, creator_id)
        return created

    async def update(
        self,
        ticket_id: str,
        patch: TicketPatch | Mapping[str, Any],
        actor_id: str,
    ) -> Ticket:
        changes = parse_input(TicketPatch, patch).changes()
        if "expected_completion_date" in changes:
            changes["expected_completion_date"] = _as_utc(changes["expected_completion_date"])
        current = await self._require(ticket_id)

        new_status: TicketStatus | None = changes.get("status")
        if new_status is not None and new_status != current.status:
            self._state_machine.assert_transition(current.status, new_status)
            label = f"Changed status from {current.status.value} to {new_status.value}"
            return await self._apply(ticket_id, changes, actor_id=actor_id, label=label, new_status=new_status)

        return await self._apply(ticket_id, changes, actor_id=actor_id, label=UPDATED_DETAILS)

    async def set_critical_value(
        self,
        ticket_id: str,
        actor_id: str,
        critical_value: CriticalValue | str,
    ) -> Ticket:
        value = parse_enum(CriticalValue, critical_value, "Invalid critical value")
        current = await self._require(ticket_id)
        if value != current.critical_value:
            label = f"Changed critical value from {current.critical_value.value} to {value.value}"
        else:
            label = UPDATED_DETAILS
        return await self._apply(ticket_id, {"critical_value": value}, actor_id=actor_id, label=label)

    async def escalate(
        self,
        ticket_id: str,
        actor_id: str,
        notes: str | None,
        target_level: EscalationLevel | str,
        critical_value: CriticalValue | str | None = None,
    ) -> Ticket:
        level = parse_enum(EscalationLevel, target_level, INVALID_ESCALATION_LEVEL)
        changes: dict[str, Any] = {"status": level.status}
        if critical_value is not None:
            changes["critical_value"] = parse_enum(CriticalValue, critical_value, "Invalid critical value")

        current = await self._require(ticket_id)
        self._state_machine.assert_transition(current.status, level.status)
        updated = await self._apply(
            ticket_id,
            changes,
            actor_id=actor_id,
            label=f"Escalated to {level.value}",
            notes=notes,
            new_status=level.status,
        )
        logger.info("Ticket %s escalated to %s by %s", ticket_id, level.value, actor_id)
        return updated

    async def resolve(self, ticket_id: str, actor_id: str, resolution_notes: str | None) -> Ticket:
        current = await self._require(ticket_id)
        self._state_machine.assert_transition(current.status, TicketStatus.RESOLVED)
        updated = await self._apply(
            ticket_id,
            {"status": TicketStatus.RESOLVED, "assigned_to": actor_id},
            actor_id=actor_id,
            label=RESOLVED_TICKET,
            notes=resolution_notes,
            new_status=TicketStatus.RESOLVED,
        )
        logger.info("Ticket %s resolved by %s", ticket_id, actor_id)
        return updated

    async def add_action(
        self,
        action_data: ActionDraft | Mapping[str, Any],
        actor_id: str,
        *,
        claim: bool = False,
    ) -> TicketAction:
        """Append a support note; ``new_status`` moves the ticket, ``claim`` assigns it to the actor."""

        draft = parse_input(ActionDraft, action_data)
        current = await self._require(draft.ticket_id)
        if draft.new_status is not None:
            self._state_machine.assert_transition(current.status, draft.new_status)

        now = self._clock()
        changes: dict[str, Any] = {"updated_at": now}
        if draft.new_status is not None:
            changes["status"] = draft.new_status
        if claim:
            changes["assigned_to"] = actor_id

        action = TicketAction(
            id=str(uuid.uuid4()),
            ticket_id=draft.ticket_id,
            user_id=actor_id,
            action=draft.action,
            notes=draft.notes,
            new_status=draft.new_status,
            created_at=now,
        )
        return await self._store.create_ticket_action(action, ticket_changes=changes)

    async def _require(self, ticket_id: str) -> Ticket:
        ticket = await self._store.find_ticket_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        return ticket

    async def _apply(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        actor_id: str,
        label: str,
        notes: str | None = None,
        new_status: TicketStatus | None = None,
    ) -> Ticket:
        now = self._clock()
        action = TicketAction(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            user_id=actor_id,
            action=label,
            notes=notes,
            new_status=new_status,
            created_at=now,
        )
        updated = await self._store.update_ticket(ticket_id, {**changes, "updated_at": now}, action=action)
        if updated is None:
            raise TicketNotFoundError()
        return updated


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
