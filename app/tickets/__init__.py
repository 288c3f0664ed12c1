"""Ticket domain models, lifecycle, queries and authorization policy."""

from .lifecycle import TicketLifecycle
from .models import (
    CriticalValue,
    EscalationLevel,
    Ticket,
    TicketAction,
    TicketCategory,
    TicketDetail,
    TicketPage,
    TicketPriority,
    User,
    UserRole,
    UserSummary,
)
from .policy import AuthorizationPolicy, TicketOperation
from .query import TicketQuery
from .repository import TicketRepository, TicketStore
from .schemas import ActionDraft, TicketDraft, TicketListFilters, TicketPatch, TicketSearch
from .state import TicketStateMachine, TicketStatus

__all__ = [
    "ActionDraft",
    "AuthorizationPolicy",
    "CriticalValue",
    "EscalationLevel",
    "Ticket",
    "TicketAction",
    "TicketCategory",
    "TicketDetail",
    "TicketDraft",
    "TicketLifecycle",
    "TicketListFilters",
    "TicketOperation",
    "TicketPage",
    "TicketPatch",
    "TicketPriority",
    "TicketQuery",
    "TicketRepository",
    "TicketSearch",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "User",
    "UserRole",
    "UserSummary",
]
