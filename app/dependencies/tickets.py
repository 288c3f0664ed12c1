from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.dependencies.auth import get_policy, permission_required
from app.tickets.lifecycle import TicketLifecycle
from app.tickets.models import UserSummary
from app.tickets.policy import AuthorizationPolicy, TicketOperation
from app.tickets.query import TicketQuery

AuthorUser = Annotated[UserSummary, Depends(permission_required(TicketOperation.CREATE))]
StatusEditor = Annotated[UserSummary, Depends(permission_required(TicketOperation.UPDATE_STATUS))]
L2Escalator = Annotated[UserSummary, Depends(permission_required(TicketOperation.ESCALATE_L2))]
SeverityEditor = Annotated[UserSummary, Depends(permission_required(TicketOperation.SET_CRITICAL_VALUE))]
L3Escalator = Annotated[UserSummary, Depends(permission_required(TicketOperation.ESCALATE_L3))]
Resolver = Annotated[UserSummary, Depends(permission_required(TicketOperation.RESOLVE))]
ActionAuthor = Annotated[UserSummary, Depends(permission_required(TicketOperation.ADD_ACTION))]
Reader = Annotated[UserSummary, Depends(permission_required(TicketOperation.LIST))]
DetailReader = Annotated[UserSummary, Depends(permission_required(TicketOperation.GET))]
QueueOwner = Annotated[UserSummary, Depends(permission_required(TicketOperation.LIST_MINE))]
EscalationReader = Annotated[UserSummary, Depends(permission_required(TicketOperation.LIST_ESCALATED))]


async def get_ticket_lifecycle(request: Request) -> TicketLifecycle:
    lifecycle = getattr(request.app.state, "ticket_lifecycle", None)
    if lifecycle is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return lifecycle


async def get_ticket_query(request: Request) -> TicketQuery:
    query = getattr(request.app.state, "ticket_query", None)
    if query is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return query


LifecycleDep = Annotated[TicketLifecycle, Depends(get_ticket_lifecycle)]
QueryDep = Annotated[TicketQuery, Depends(get_ticket_query)]
PolicyDep = Annotated[AuthorizationPolicy, Depends(get_policy)]
