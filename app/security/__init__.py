"""Security utilities for the helpdesk application."""

from .provider import EXPIRED_TOKEN, INVALID_TOKEN, AuthProvider, TokenClaims

__all__ = [
    "EXPIRED_TOKEN",
    "INVALID_TOKEN",
    "AuthProvider",
    "TokenClaims",
]
