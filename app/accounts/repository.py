from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Protocol

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.errors import ConflictError
from app.tickets.models import User, UserRole, UserSummary
from packages.db.models import UserTable

USER_WITH_EMAIL_ALREADY_EXISTS = "User with this email already exists"


class UserStore(Protocol):
    """Storage contract for user accounts."""

    async def create_user(self, user: User) -> User:
        ...

    async def find_user_by_id(self, user_id: str) -> User | None:
        ...

    async def find_user_by_email(self, email: str) -> User | None:
        ...

    async def find_summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        ...


class UserRepository:
    """Persistence helper wrapping the ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_user(self, user: User) -> User:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        UserTable(
                            id=user.id,
                            email=user.email,
                            password_hash=user.password_hash,
                            first_name=user.first_name,
                            last_name=user.last_name,
                            role=user.role.value,
                            created_at=user.created_at,
                            updated_at=user.updated_at,
                        )
                    )
        except IntegrityError as exc:
            raise ConflictError(USER_WITH_EMAIL_ALREADY_EXISTS) from exc
        return user

    async def find_user_by_id(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
            return self._table_to_user(row) if row is not None else None

    async def find_user_by_email(self, email: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).where(UserTable.email == email))
            row = result.scalars().first()
            return self._table_to_user(row) if row is not None else None

    async def find_summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).where(UserTable.id.in_(sorted(ids))))
            rows = result.scalars().all()
        return {row.id: self._table_to_user(row).summary() for row in rows}

    async def find_ids_by_emails(self, emails: Iterable[str]) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable.id).where(UserTable.email.in_(list(emails))))
            return [str(user_id) for user_id in result.scalars().all()]

    async def delete_users_by_emails(self, emails: Iterable[str]) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(UserTable)
                    .where(UserTable.email.in_(list(emails)))
                    .execution_options(synchronize_session=False)
                )
        return int(result.rowcount or 0)

    @staticmethod
    def _table_to_user(row: UserTable) -> User:
        return User(
            id=row.id,
            email=row.email,
            password_hash=row.password_hash,
            first_name=row.first_name,
            last_name=row.last_name,
            role=UserRole(row.role),
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )


def _ensure_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
