"""Password hashing and JWT issuance for helpdesk accounts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings
from app.core.errors import AuthenticationError
from app.tickets.models import UserRole

INVALID_TOKEN = "Invalid authorization token"
EXPIRED_TOKEN = "Authorization token has expired"


@dataclass(slots=True, frozen=True)
class TokenClaims:
    """Identity carried by a verified access token."""

    user_id: str
    role: UserRole
    email: str | None = None


class AuthProvider:
    """Hash passwords with bcrypt and sign/verify HS256 access tokens."""

    def __init__(
        self,
        *,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 24 * 60,
        rounds: int = 10,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._expires = timedelta(minutes=expires_minutes)
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthProvider":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expires_minutes=settings.jwt_expires_minutes,
            rounds=settings.password_hash_rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Malformed or foreign hash string.
            return False

    def sign(self, *, user_id: str, role: UserRole, email: str | None = None) -> str:
        issued_at = self._clock()
        claims: dict[str, Any] = {
            "sub": user_id,
            "role": role.value,
            "iat": issued_at,
            "exp": issued_at + self._expires,
        }
        if email is not None:
            claims["email"] = email
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise AuthenticationError(EXPIRED_TOKEN) from exc
        except JWTError as exc:
            raise AuthenticationError(INVALID_TOKEN) from exc

        user_id = payload.get("sub")
        try:
            role = UserRole(payload.get("role"))
        except ValueError as exc:
            raise AuthenticationError(INVALID_TOKEN) from exc
        if not isinstance(user_id, str) or not user_id:
            raise AuthenticationError(INVALID_TOKEN)
        return TokenClaims(user_id=user_id, role=role, email=payload.get("email"))
