"""Database models and utilities."""

from .models import TicketActionTable, TicketTable, UserTable

__all__ = [
    "TicketActionTable",
    "TicketTable",
    "UserTable",
]
