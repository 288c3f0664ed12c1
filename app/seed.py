"""Populate the database with one account per support tier and sample tickets.

Run with ``python -m app.seed``. Existing sample data is removed first so the
script can be re-run safely.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from app.accounts import UserRepository
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.security import AuthProvider
from app.services.database import Database
from app.tickets import (
    CriticalValue,
    EscalationLevel,
    TicketCategory,
    TicketLifecycle,
    TicketPriority,
    TicketRepository,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

# (email, password, first name, last name, role)
SAMPLE_USERS: tuple[tuple[str, str, str, str, UserRole], ...] = (
    ("agent@helpdesk.com", "agent123", "Help", "Desk", UserRole.L1_AGENT),
    ("tech@helpdesk.com", "tech123", "Tech", "Support", UserRole.L2_SUPPORT),
    ("admin@helpdesk.com", "admin123", "Advanced", "Support", UserRole.L3_SUPPORT),
)
SAMPLE_EMAILS = tuple(entry[0] for entry in SAMPLE_USERS)


async def clear_sample_data(users: UserRepository, tickets: TicketRepository) -> None:
    user_ids = await users.find_ids_by_emails(SAMPLE_EMAILS)
    removed = await tickets.delete_tickets_created_by(user_ids)
    logger.info("Deleted %d existing sample tickets", removed)
    removed = await users.delete_users_by_emails(SAMPLE_EMAILS)
    logger.info("Deleted %d existing sample users", removed)


async def seed_sample_data(
    users: UserRepository,
    tickets: TicketRepository,
    provider: AuthProvider,
) -> dict[str, User]:
    """Recreate the sample accounts and tickets, returning the users by email."""

    await clear_sample_data(users, tickets)

    created: dict[str, User] = {}
    for email, password, first_name, last_name, role in SAMPLE_USERS:
        now = datetime.now(timezone.utc)
        created[email] = await users.create_user(
            User(
                id=str(uuid.uuid4()),
                email=email,
                password_hash=provider.hash(password),
                first_name=first_name,
                last_name=last_name,
                role=role,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Created %s user %s", role.value, email)

    agent = created["agent@helpdesk.com"]
    tech = created["tech@helpdesk.com"]
    admin = created["admin@helpdesk.com"]
    lifecycle = TicketLifecycle(tickets)
    today = datetime.now(timezone.utc)

    await lifecycle.create(
        {
            "title": "Printer not working",
            "description": "The printer in the lobby is not responding.",
            "category": TicketCategory.HARDWARE,
            "priority": TicketPriority.MEDIUM,
            "expected_completion_date": today + timedelta(days=3),
        },
        agent.id,
    )

    outage = await lifecycle.create(
        {
            "title": "Network outage on floor 2",
            "description": "No devices can connect to the network on floor 2.",
            "category": TicketCategory.NETWORK,
            "priority": TicketPriority.HIGH,
            "expected_completion_date": today + timedelta(days=2),
        },
        agent.id,
    )
    await lifecycle.escalate(outage.id, agent.id, "Escalating due to network-wide impact.", EscalationLevel.L2)
    await lifecycle.add_action(
        {"ticket_id": outage.id, "action": "L2 Investigation Started", "notes": "Investigating switch logs."},
        tech.id,
        claim=True,
    )

    breach = await lifecycle.create(
        {
            "title": "Critical security breach",
            "description": "Detected unauthorized server access.",
            "category": TicketCategory.SOFTWARE,
            "priority": TicketPriority.HIGH,
            "expected_completion_date": today + timedelta(days=1),
        },
        agent.id,
    )
    await lifecycle.escalate(breach.id, agent.id, "Requires advanced support.", EscalationLevel.L2)
    await lifecycle.escalate(
        breach.id,
        tech.id,
        "Critical issue, needs admin attention.",
        EscalationLevel.L3,
        critical_value=CriticalValue.C1,
    )
    await lifecycle.add_action(
        {"ticket_id": breach.id, "action": "L3 Analysis", "notes": "Analyzing breach vectors."},
        admin.id,
        claim=True,
    )
    logger.info("Created sample tickets")
    return created


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings)
    database = Database(dsn=settings.database_url, echo=settings.database_echo)
    try:
        await database.ensure_schema()
        await seed_sample_data(
            UserRepository(database.session_factory),
            TicketRepository(database.session_factory, engine=database.engine),
            AuthProvider.from_settings(settings),
        )
        logger.info("Database seeding completed successfully")
    finally:
        await database.close()


def main() -> None:
    try:
        asyncio.run(_run())
    except Exception:
        logger.exception("Error during database seeding")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
