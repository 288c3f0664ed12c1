"""Validated input shapes accepted by the ticket lifecycle and queries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError

from .models import CriticalValue, EscalationLevel, TicketCategory, TicketPriority
from .state import TicketStatus

ModelT = TypeVar("ModelT", bound=BaseModel)
EnumT = TypeVar("EnumT", bound=Enum)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10
INVALID_ESCALATION_LEVEL = "Escalation level must be L2 or L3"


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else str(error["msg"]))
    return "; ".join(parts) or "Invalid request"


def parse_input(
    model: type[ModelT],
    data: ModelT | Mapping[str, Any],
    *,
    field_messages: Mapping[str, str] | None = None,
) -> ModelT:
    """Coerce ``data`` into ``model``, raising the domain :class:`ValidationError`.

    ``field_messages`` replaces the generated message when the named field is invalid.
    """

    if isinstance(data, model):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(f"Expected a mapping for {model.__name__}")
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as exc:
        for error in exc.errors():
            field = error["loc"][0] if error["loc"] else None
            if field_messages and field in field_messages:
                raise ValidationError(field_messages[field]) from exc
        raise ValidationError(_describe(exc)) from exc


class TicketDraft(BaseModel):
    """Fields required to open a ticket."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: TicketCategory
    priority: TicketPriority
    expected_completion_date: datetime


class TicketPatch(BaseModel):
    """Partial update of a ticket; only explicitly provided fields are applied."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    category: TicketCategory | None = None
    priority: TicketPriority | None = None
    status: TicketStatus | None = None
    critical_value: CriticalValue | None = None
    assigned_to: str | None = None
    expected_completion_date: datetime | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "TicketPatch":
        for name in self.model_fields_set:
            if name != "assigned_to" and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set}


class ActionDraft(BaseModel):
    """Free-form support note, optionally moving the ticket to a new status."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    ticket_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1, max_length=255)
    notes: str | None = None
    new_status: TicketStatus | None = None


class TicketListFilters(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    escalation: EscalationLevel | None = None

    def effective_status(self) -> TicketStatus | None:
        if self.status is not None:
            return self.status
        if self.escalation is not None:
            return self.escalation.status
        return None


class TicketSearch(BaseModel):
    """Paged search criteria used by the personal and escalated queues."""

    model_config = ConfigDict(extra="forbid")

    statuses: list[TicketStatus] = Field(default_factory=list)
    priorities: list[TicketPriority] = Field(default_factory=list)
    categories: list[TicketCategory] = Field(default_factory=list)
    critical_values: list[CriticalValue] = Field(default_factory=list)
    search: str = ""
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @field_validator("page", mode="before")
    @classmethod
    def _clamp_page(cls, value: Any) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            return 1
        return max(1, number)

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            return DEFAULT_PAGE_SIZE
        return min(MAX_PAGE_SIZE, max(1, number))

    @field_validator("search", mode="before")
    @classmethod
    def _strip_search(cls, value: Any) -> str:
        return str(value or "").strip()

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def parse_enum(enum_type: type[EnumT], value: Any, message: str) -> EnumT:
    """Coerce ``value`` into ``enum_type``, raising :class:`ValidationError` with ``message``."""

    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(message) from exc
