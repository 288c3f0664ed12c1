"""User accounts: registration, login and token resolution."""

from .repository import UserRepository, UserStore
from .service import AccountService, AuthResult, Credentials, Registration

__all__ = [
    "AccountService",
    "AuthResult",
    "Credentials",
    "Registration",
    "UserRepository",
    "UserStore",
]
