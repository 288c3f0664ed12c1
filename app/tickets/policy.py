"""Role based authorization rules for ticket operations."""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from app.core.errors import AuthorizationError

from .models import EscalationLevel, UserRole
from .state import TicketStatus


class TicketOperation(str, Enum):
    """Operations exposed to callers that are subject to authorization."""

    CREATE = "create"
    UPDATE_STATUS = "update_status"
    ESCALATE_L2 = "escalate_l2"
    SET_CRITICAL_VALUE = "set_critical_value"
    ESCALATE_L3 = "escalate_l3"
    RESOLVE = "resolve"
    ADD_ACTION = "add_action"
    LIST = "list"
    GET = "get"
    LIST_MINE = "list_mine"
    LIST_ESCALATED = "list_escalated"


_ANY_ROLE = frozenset(UserRole)

DEFAULT_PERMISSIONS: Mapping[TicketOperation, frozenset[UserRole]] = {
    TicketOperation.CREATE: frozenset({UserRole.L1_AGENT}),
    TicketOperation.UPDATE_STATUS: frozenset({UserRole.L1_AGENT}),
    TicketOperation.ESCALATE_L2: frozenset({UserRole.L1_AGENT}),
    TicketOperation.SET_CRITICAL_VALUE: frozenset({UserRole.L2_SUPPORT}),
    TicketOperation.ESCALATE_L3: frozenset({UserRole.L2_SUPPORT}),
    TicketOperation.RESOLVE: frozenset({UserRole.L3_SUPPORT}),
    TicketOperation.ADD_ACTION: frozenset({UserRole.L2_SUPPORT, UserRole.L3_SUPPORT}),
    TicketOperation.LIST: _ANY_ROLE,
    TicketOperation.GET: _ANY_ROLE,
    TicketOperation.LIST_MINE: _ANY_ROLE,
    TicketOperation.LIST_ESCALATED: frozenset({UserRole.L2_SUPPORT, UserRole.L3_SUPPORT}),
}

# Statuses an L1 agent may set directly through a status update.
L1_SETTABLE_STATUSES: frozenset[TicketStatus] = frozenset(
    {TicketStatus.NEW, TicketStatus.ATTENDING, TicketStatus.COMPLETED}
)

_ESCALATION_QUEUES: Mapping[UserRole, EscalationLevel] = {
    UserRole.L2_SUPPORT: EscalationLevel.L2,
    UserRole.L3_SUPPORT: EscalationLevel.L3,
}


class AuthorizationPolicy:
    """Pure mapping of (role, operation) to permit or deny."""

    def __init__(self, permissions: Mapping[TicketOperation, frozenset[UserRole]] | None = None) -> None:
        self._permissions = DEFAULT_PERMISSIONS if permissions is None else permissions
        missing = set(TicketOperation) - set(self._permissions)
        if missing:
            names = ", ".join(sorted(operation.value for operation in missing))
            raise ValueError(f"Permission table is missing operations: {names}")

    def allowed_roles(self, operation: TicketOperation) -> frozenset[UserRole]:
        return self._permissions[operation]

    def permits(self, role: UserRole, operation: TicketOperation) -> bool:
        return role in self._permissions[operation]

    def authorize(self, role: UserRole, operation: TicketOperation) -> None:
        if not self.permits(role, operation):
            raise AuthorizationError()

    def authorize_status_change(self, role: UserRole, status: TicketStatus) -> None:
        """Check both the operation and the target status of a status update."""

        self.authorize(role, TicketOperation.UPDATE_STATUS)
        if role is UserRole.L1_AGENT and status not in L1_SETTABLE_STATUSES:
            raise AuthorizationError("L1 agents can only set status to NEW, ATTENDING, or COMPLETED")

    def escalation_queue(self, role: UserRole) -> EscalationLevel:
        """Return the escalation level whose queue ``role`` works on."""

        self.authorize(role, TicketOperation.LIST_ESCALATED)
        level = _ESCALATION_QUEUES.get(role)
        if level is None:
            raise AuthorizationError()
        return level
