from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.accounts import AccountService
from app.core.config import Settings
from app.main import create_app
from app.security import AuthProvider
from app.tickets.models import UserRole
from app.tickets.policy import AuthorizationPolicy
from app.tickets.state import TicketStatus


@pytest.fixture
def provider() -> AuthProvider:
    return AuthProvider(secret="test-secret", rounds=4)


@pytest.fixture
def api(user_store, provider, lifecycle, query, ticket_store):
    app = create_app(Settings(environment="test"))
    app.state.account_service = AccountService(user_store, provider)
    app.state.policy = AuthorizationPolicy()
    app.state.ticket_lifecycle = lifecycle
    app.state.ticket_query = query

    client = TestClient(app)

    def headers(user_id: str) -> dict[str, str]:
        user = user_store.users[user_id]
        return {"Authorization": f"Bearer {provider.sign(user_id=user.id, role=user.role)}"}

    return client, headers, ticket_store


def _create(client, headers, draft) -> dict:
    response = client.post("/api/tickets", json=draft, headers=headers("agent"))
    assert response.status_code == 201
    return response.json()


def test_requests_without_token_are_rejected(api):
    client, _, _ = api

    response = client.get("/api/tickets")

    assert response.status_code == 401
    assert response.json() == {"message": "No authorization token provided"}


def test_invalid_token_is_rejected(api):
    client, _, _ = api

    response = client.get("/api/tickets", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert "message" in response.json()


def test_create_ticket_returns_new_ticket(api, ticket_draft):
    client, headers, _ = api

    body = _create(client, headers, ticket_draft)

    assert body["status"] == "NEW"
    assert body["critical_value"] == "NONE"
    assert body["created_by"] == "agent"
    assert body["assigned_to"] == "agent"


def test_create_ticket_requires_l1_role(api, ticket_draft):
    client, headers, _ = api

    response = client.post("/api/tickets", json=ticket_draft, headers=headers("tech"))

    assert response.status_code == 403
    assert response.json() == {"message": "not authorized to perform this action"}


def test_create_ticket_validates_body(api, ticket_draft):
    client, headers, ticket_store = api
    del ticket_draft["category"]

    response = client.post("/api/tickets", json=ticket_draft, headers=headers("agent"))

    assert response.status_code == 400
    assert "category" in response.json()["message"]
    assert ticket_store.tickets == {}


def test_get_ticket_returns_history(api, ticket_draft):
    client, headers, _ = api
    ticket = _create(client, headers, ticket_draft)
    client.patch(f"/api/tickets/{ticket['id']}/escalate-l2", json={"notes": "Escalating"}, headers=headers("agent"))

    response = client.get(f"/api/tickets/{ticket['id']}", headers=headers("tech"))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ESCALATED_L2"
    assert body["creator"]["email"] == "agent@helpdesk.com"
    assert [entry["action"] for entry in body["history"]] == ["Created ticket", "Escalated to L2"]
    assert body["history"][1]["notes"] == "Escalating"


def test_get_missing_ticket_returns_404(api):
    client, headers, _ = api

    response = client.get("/api/tickets/missing", headers=headers("agent"))

    assert response.status_code == 404
    assert response.json() == {"message": "Ticket not found"}


def test_list_tickets_filters_by_status(api, ticket_draft):
    client, headers, _ = api
    first = _create(client, headers, ticket_draft)
    _create(client, headers, ticket_draft)
    client.patch(f"/api/tickets/{first['id']}/status", json={"status": "ATTENDING"}, headers=headers("agent"))

    response = client.get("/api/tickets", params={"status": "ATTENDING"}, headers=headers("admin"))

    assert response.status_code == 200
    assert [ticket["id"] for ticket in response.json()] == [first["id"]]


def test_l1_cannot_resolve_through_status_update(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)

    response = client.patch(
        f"/api/tickets/{ticket['id']}/status",
        json={"status": "RESOLVED"},
        headers=headers("agent"),
    )

    assert response.status_code == 403
    assert ticket_store.tickets[ticket["id"]].status is TicketStatus.NEW


def test_backward_status_update_returns_400(api, ticket_draft):
    client, headers, _ = api
    ticket = _create(client, headers, ticket_draft)
    client.patch(f"/api/tickets/{ticket['id']}/status", json={"status": "COMPLETED"}, headers=headers("agent"))

    response = client.patch(
        f"/api/tickets/{ticket['id']}/status",
        json={"status": "ATTENDING"},
        headers=headers("agent"),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid ticket status transition: COMPLETED -> ATTENDING"


def test_escalation_flow_through_all_tiers(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)
    ticket_id = ticket["id"]

    response = client.patch(
        f"/api/tickets/{ticket_id}/escalate-l2",
        json={"notes": "Needs L2"},
        headers=headers("agent"),
    )
    assert response.status_code == 200

    response = client.patch(
        f"/api/tickets/{ticket_id}/critical-value",
        json={"critical_value": "C2"},
        headers=headers("tech"),
    )
    assert response.json()["critical_value"] == "C2"

    response = client.patch(
        f"/api/tickets/{ticket_id}/escalate-l3",
        json={"notes": "Needs L3", "critical_value": "C1"},
        headers=headers("tech"),
    )
    assert response.json()["status"] == "ESCALATED_L3"

    response = client.patch(
        f"/api/tickets/{ticket_id}/resolve",
        json={"resolution_notes": "Patched"},
        headers=headers("admin"),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "RESOLVED"
    assert response.json()["assigned_to"] == "admin"

    labels = [action.action for action in ticket_store.actions_for(ticket_id)]
    assert labels == [
        "Escalated to L2",
        "Changed critical value from NONE to C2",
        "Escalated to L3",
        "Resolved ticket",
    ]


def test_escalate_l3_requires_high_critical_value(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)

    response = client.patch(
        f"/api/tickets/{ticket['id']}/escalate-l3",
        json={"notes": "Needs L3", "critical_value": "C3"},
        headers=headers("tech"),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Only tickets with critical value C1 or C2 can be escalated to L3"
    assert ticket_store.actions_for(ticket["id"]) == []


def test_resolve_requires_l3(api, ticket_draft):
    client, headers, _ = api
    ticket = _create(client, headers, ticket_draft)

    response = client.patch(
        f"/api/tickets/{ticket['id']}/resolve",
        json={"resolution_notes": "Fixed"},
        headers=headers("tech"),
    )

    assert response.status_code == 403


@pytest.mark.parametrize(
    ("path", "user", "payload", "field"),
    [
        ("escalate-l2", "agent", {}, "notes"),
        ("escalate-l2", "agent", {"notes": "   "}, "notes"),
        ("escalate-l3", "tech", {"critical_value": "C1"}, "notes"),
        ("resolve", "admin", {}, "resolution_notes"),
    ],
)
def test_escalation_and_resolution_require_notes(api, ticket_draft, path, user, payload, field):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)

    response = client.patch(f"/api/tickets/{ticket['id']}/{path}", json=payload, headers=headers(user))

    assert response.status_code == 400
    assert field in response.json()["message"]
    assert ticket_store.tickets[ticket["id"]].status is TicketStatus.NEW
    assert ticket_store.actions_for(ticket["id"]) == []


def test_resolved_ticket_cannot_be_reopened(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)
    ticket_id = ticket["id"]
    client.patch(
        f"/api/tickets/{ticket_id}/resolve",
        json={"resolution_notes": "Replaced toner"},
        headers=headers("admin"),
    )

    response = client.patch(
        f"/api/tickets/{ticket_id}/escalate-l2",
        json={"notes": "Still broken"},
        headers=headers("agent"),
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid ticket status transition: RESOLVED -> ESCALATED_L2"}
    assert ticket_store.tickets[ticket_id].status is TicketStatus.RESOLVED


def test_add_action_cannot_move_status_backwards(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)
    ticket_id = ticket["id"]
    client.patch(f"/api/tickets/{ticket_id}/escalate-l2", json={"notes": "Needs L2"}, headers=headers("agent"))

    response = client.post(
        f"/api/tickets/{ticket_id}/actions",
        json={"action": "Reopened", "new_status": "NEW"},
        headers=headers("tech"),
    )

    assert response.status_code == 400
    assert ticket_store.tickets[ticket_id].status is TicketStatus.ESCALATED_L2
    assert [action.action for action in ticket_store.actions_for(ticket_id)] == ["Escalated to L2"]


def test_add_action_claims_ticket(api, ticket_draft):
    client, headers, ticket_store = api
    ticket = _create(client, headers, ticket_draft)

    response = client.post(
        f"/api/tickets/{ticket['id']}/actions",
        json={"action": "Replaced cable", "notes": "Port 4"},
        headers=headers("tech"),
    )

    assert response.status_code == 201
    assert response.json()["action"] == "Replaced cable"
    assert response.json()["user_id"] == "tech"
    assert ticket_store.tickets[ticket["id"]].assigned_to == "tech"


def test_add_action_forbidden_for_l1(api, ticket_draft):
    client, headers, _ = api
    ticket = _create(client, headers, ticket_draft)

    response = client.post(
        f"/api/tickets/{ticket['id']}/actions",
        json={"action": "Note"},
        headers=headers("agent"),
    )

    assert response.status_code == 403


def test_my_tickets_is_paged(api, ticket_draft):
    client, headers, _ = api
    for index in range(3):
        _create(client, headers, {**ticket_draft, "title": f"Printer {index}"})

    response = client.get(
        "/api/tickets/my-tickets",
        params={"limit": "2", "page": "1", "status": ["NEW"]},
        headers=headers("agent"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["limit"] == 2
    assert [ticket["title"] for ticket in body["items"]] == ["Printer 2", "Printer 1"]


def test_escalated_queue_depends_on_role(api, ticket_draft):
    client, headers, _ = api
    l2 = _create(client, headers, ticket_draft)
    l3 = _create(client, headers, ticket_draft)
    client.patch(f"/api/tickets/{l2['id']}/escalate-l2", json={"notes": "Queue"}, headers=headers("agent"))
    client.patch(
        f"/api/tickets/{l3['id']}/escalate-l3",
        json={"notes": "Queue", "critical_value": "C1"},
        headers=headers("tech"),
    )

    tech_queue = client.get("/api/tickets/escalated", headers=headers("tech")).json()
    admin_queue = client.get("/api/tickets/escalated", headers=headers("admin")).json()

    assert [ticket["id"] for ticket in tech_queue["items"]] == [l2["id"]]
    assert [ticket["id"] for ticket in admin_queue["items"]] == [l3["id"]]
    assert client.get("/api/tickets/escalated", headers=headers("agent")).status_code == 403


def test_unexpected_errors_return_500(api):
    client, headers, _ = api
    failing = AsyncMock()
    failing.list = AsyncMock(side_effect=RuntimeError("database went away"))
    client.app.state.ticket_query = failing
    client = TestClient(client.app, raise_server_exceptions=False)

    response = client.get("/api/tickets", headers=headers("agent"))

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


def test_services_missing_from_state_return_503(user_store, provider):
    app = create_app(Settings(environment="test"))
    app.state.account_service = AccountService(user_store, provider)
    app.state.policy = AuthorizationPolicy()
    token = provider.sign(user_id="agent", role=UserRole.L1_AGENT)

    response = TestClient(app).get("/api/tickets", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 503
    assert response.json() == {"message": "Ticket service is not configured"}


def test_ping_is_public(api):
    client, _, _ = api

    response = client.get("/api/ping")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
