from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.errors import AuthenticationError, ConflictError, ValidationError
from app.security import AuthProvider
from app.tickets.models import User, UserRole, UserSummary
from app.tickets.schemas import parse_input

from .repository import USER_WITH_EMAIL_ALREADY_EXISTS, UserStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
USER_NOT_FOUND = "User not found"
INVALID_EMAIL_FORMAT = "Invalid email format"
INVALID_USER_ROLE = (
    "Invalid user role, make sure role is provided and is one of the following: "
    "L1_AGENT, L2_SUPPORT, L3_SUPPORT"
)
MIN_PASSWORD_LENGTH = 6

_EMAIL_MESSAGES = {"email": INVALID_EMAIL_FORMAT}


class Registration(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    first_name: str = Field(..., min_length=1, max_length=150)
    last_name: str = Field(..., min_length=1, max_length=150)
    role: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.lower()


class Credentials(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.lower()


@dataclass(slots=True)
class AuthResult:
    """Authenticated user together with a freshly issued access token."""

    user: UserSummary
    token: str


class AccountService:
    """Registration, login and token resolution for support staff."""

    def __init__(self, users: UserStore, provider: AuthProvider) -> None:
        self._users = users
        self._provider = provider

    async def register(self, data: Registration | Mapping[str, Any]) -> AuthResult:
        registration = parse_input(Registration, data, field_messages=_EMAIL_MESSAGES)
        try:
            role = UserRole(registration.role)
        except ValueError as exc:
            raise ValidationError(INVALID_USER_ROLE) from exc

        if await self._users.find_user_by_email(registration.email) is not None:
            raise ConflictError(USER_WITH_EMAIL_ALREADY_EXISTS)

        now = datetime.now(timezone.utc)
        user = await self._users.create_user(
            User(
                id=str(uuid.uuid4()),
                email=registration.email,
                password_hash=self._provider.hash(registration.password),
                first_name=registration.first_name,
                last_name=registration.last_name,
                role=role,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Registered user %s with role %s", user.id, user.role.value)
        return self._issue(user)

    async def login(self, data: Credentials | Mapping[str, Any]) -> AuthResult:
        credentials = parse_input(Credentials, data, field_messages=_EMAIL_MESSAGES)

        user = await self._users.find_user_by_email(credentials.email)
        if user is None or not self._provider.verify(credentials.password, user.password_hash):
            logger.info("Rejected login for %s", credentials.email)
            raise AuthenticationError(INVALID_CREDENTIALS)
        return self._issue(user)

    async def current_user(self, token: str) -> UserSummary:
        """Return the user behind ``token``; the stored role wins over the token claim."""

        claims = self._provider.verify_token(token)
        user = await self._users.find_user_by_id(claims.user_id)
        if user is None:
            raise AuthenticationError(USER_NOT_FOUND)
        return user.summary()

    def _issue(self, user: User) -> AuthResult:
        token = self._provider.sign(user_id=user.id, role=user.role, email=user.email)
        return AuthResult(user=user.summary(), token=token)
