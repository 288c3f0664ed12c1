from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import ValidationError
from app.dependencies.tickets import (
    ActionAuthor,
    AuthorUser,
    DetailReader,
    EscalationReader,
    L2Escalator,
    L3Escalator,
    LifecycleDep,
    PolicyDep,
    QueryDep,
    QueueOwner,
    Reader,
    Resolver,
    SeverityEditor,
    StatusEditor,
)
from app.tickets.models import (
    L3_CRITICAL_VALUES,
    CriticalValue,
    EscalationLevel,
    Ticket,
    TicketAction,
    TicketCategory,
    TicketDetail,
    TicketPage,
    TicketPriority,
    UserRole,
)
from app.tickets.schemas import TicketDraft, TicketListFilters, TicketSearch
from app.tickets.state import TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])

L3_CRITICAL_VALUE_REQUIRED = "Only tickets with critical value C1 or C2 can be escalated to L3"


class TicketStatusRequest(BaseModel):
    status: TicketStatus


class EscalationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    notes: str = Field(..., min_length=1, max_length=2000)


class L3EscalationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    notes: str = Field(..., min_length=1, max_length=2000)
    critical_value: CriticalValue


class CriticalValueRequest(BaseModel):
    critical_value: CriticalValue


class ResolutionRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    resolution_notes: str = Field(..., min_length=1, max_length=2000)


class ActionRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=255)
    notes: str | None = None
    new_status: TicketStatus | None = None


class UserSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class ActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    user_id: str
    action: str
    notes: str | None
    new_status: TicketStatus | None
    created_at: datetime


class HistoryEntryResponse(BaseModel):
    action_id: str | None
    action: str
    notes: str | None
    new_status: TicketStatus | None
    user: UserSummaryResponse | None
    created_at: datetime


class TicketDetailResponse(TicketResponse):
    creator: UserSummaryResponse | None
    assignee: UserSummaryResponse | None
    history: list[HistoryEntryResponse]


class TicketPageResponse(BaseModel):
    items: list[TicketResponse]
    total: int
    page: int
    limit: int


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_action_response(action: TicketAction) -> ActionResponse:
    return ActionResponse.model_validate(action)


def _to_detail_response(detail: TicketDetail) -> TicketDetailResponse:
    summary = _to_response(detail.ticket)
    return TicketDetailResponse(
        **summary.model_dump(),
        creator=UserSummaryResponse.model_validate(detail.created_by) if detail.created_by else None,
        assignee=UserSummaryResponse.model_validate(detail.assigned_to) if detail.assigned_to else None,
        history=[
            HistoryEntryResponse(
                action_id=entry.action_id,
                action=entry.action,
                notes=entry.notes,
                new_status=entry.new_status,
                user=UserSummaryResponse.model_validate(entry.user) if entry.user else None,
                created_at=entry.created_at,
            )
            for entry in detail.history()
        ],
    )


def _to_page_response(page: TicketPage) -> TicketPageResponse:
    return TicketPageResponse(
        items=[_to_response(ticket) for ticket in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
    )


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketDraft, lifecycle: LifecycleDep, user: AuthorUser) -> TicketResponse:
    ticket = await lifecycle.create(payload, user.id)
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    query: QueryDep,
    _: Reader,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    escalation: EscalationLevel | None = Query(default=None),
) -> list[TicketResponse]:
    tickets = await query.list(TicketListFilters(status=status_filter, priority=priority, escalation=escalation))
    return [_to_response(ticket) for ticket in tickets]


@router.get("/my-tickets", response_model=TicketPageResponse)
async def list_my_tickets(
    query: QueryDep,
    user: QueueOwner,
    status_filter: Annotated[list[TicketStatus] | None, Query(alias="status")] = None,
    priority: Annotated[list[TicketPriority] | None, Query()] = None,
    category: Annotated[list[TicketCategory] | None, Query()] = None,
    search: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> TicketPageResponse:
    criteria = TicketSearch(
        statuses=status_filter or [],
        priorities=priority or [],
        categories=category or [],
        search=search,
        page=page,
        limit=limit,
    )
    result = await query.search(criteria, assigned_to=user.id)
    return _to_page_response(result)


@router.get("/escalated", response_model=TicketPageResponse)
async def list_escalated_tickets(
    query: QueryDep,
    policy: PolicyDep,
    user: EscalationReader,
    critical_value: Annotated[list[CriticalValue] | None, Query()] = None,
    category: Annotated[list[TicketCategory] | None, Query()] = None,
    search: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> TicketPageResponse:
    level = policy.escalation_queue(user.role)
    criteria = TicketSearch(
        categories=category or [],
        critical_values=critical_value or [],
        search=search,
        page=page,
        limit=limit,
    )
    result = await query.search(criteria, level=level)
    return _to_page_response(result)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(ticket_id: str, query: QueryDep, _: DetailReader) -> TicketDetailResponse:
    detail = await query.get_by_id(ticket_id)
    return _to_detail_response(detail)


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
async def update_ticket_status(
    ticket_id: str,
    payload: TicketStatusRequest,
    lifecycle: LifecycleDep,
    policy: PolicyDep,
    user: StatusEditor,
) -> TicketResponse:
    policy.authorize_status_change(user.role, payload.status)
    ticket = await lifecycle.update(ticket_id, {"status": payload.status}, user.id)
    return _to_response(ticket)


@router.patch("/{ticket_id}/escalate-l2", response_model=TicketResponse)
async def escalate_to_l2(
    ticket_id: str,
    payload: EscalationRequest,
    lifecycle: LifecycleDep,
    user: L2Escalator,
) -> TicketResponse:
    ticket = await lifecycle.escalate(ticket_id, user.id, payload.notes, EscalationLevel.L2)
    return _to_response(ticket)


@router.patch("/{ticket_id}/critical-value", response_model=TicketResponse)
async def set_critical_value(
    ticket_id: str,
    payload: CriticalValueRequest,
    lifecycle: LifecycleDep,
    user: SeverityEditor,
) -> TicketResponse:
    ticket = await lifecycle.set_critical_value(ticket_id, user.id, payload.critical_value)
    return _to_response(ticket)


@router.patch("/{ticket_id}/escalate-l3", response_model=TicketResponse)
async def escalate_to_l3(
    ticket_id: str,
    payload: L3EscalationRequest,
    lifecycle: LifecycleDep,
    user: L3Escalator,
) -> TicketResponse:
    if payload.critical_value not in L3_CRITICAL_VALUES:
        raise ValidationError(L3_CRITICAL_VALUE_REQUIRED)
    ticket = await lifecycle.escalate(
        ticket_id,
        user.id,
        payload.notes,
        EscalationLevel.L3,
        critical_value=payload.critical_value,
    )
    return _to_response(ticket)


@router.patch("/{ticket_id}/resolve", response_model=TicketResponse)
async def resolve_ticket(
    ticket_id: str,
    payload: ResolutionRequest,
    lifecycle: LifecycleDep,
    user: Resolver,
) -> TicketResponse:
    ticket = await lifecycle.resolve(ticket_id, user.id, payload.resolution_notes)
    return _to_response(ticket)


@router.post("/{ticket_id}/actions", response_model=ActionResponse, status_code=status.HTTP_201_CREATED)
async def add_ticket_action(
    ticket_id: str,
    payload: ActionRequest,
    lifecycle: LifecycleDep,
    user: ActionAuthor,
) -> ActionResponse:
    action = await lifecycle.add_action(
        {"ticket_id": ticket_id, **payload.model_dump()},
        user.id,
        claim=True,
    )
    return _to_action_response(action)
