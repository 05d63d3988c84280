"""
Password-reset ticket queue tests.
"""

import pytest

from astrasemi import tickets
from astrasemi.auth import verify_password
from astrasemi.db.models import ResetTicket, User
from astrasemi.errors import NotFound, ValidationFailed
from astrasemi.schemas import TicketStatus
from astrasemi.tests.factories import client_for, make_user


def test_request_message_does_not_reveal_accounts(client):
    make_user("alice")

    known = client.post("/api/password/request", json={"username": "Alice", "hint": "forgot"})
    unknown = client.post("/api/password/request", json={"username": "mallory"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json() == {"success": True, "message": tickets.REQUEST_ACK}


def test_request_requires_username(client):
    resp = client.post("/api/password/request", json={"username": "  "})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Username is required"}


def test_only_existing_users_get_tickets(db):
    make_user("alice")
    tickets.submit_request(db, "alice", "lost it")
    tickets.submit_request(db, "nobody")

    queue = tickets.list_requests(db)
    assert [t.username for t in queue] == ["alice"]
    assert queue[0].status == TicketStatus.PENDING
    assert queue[0].hint == "lost it"


def test_approve_sets_password_and_revokes_sessions(admin_client):
    make_user("bob", password="old-password")
    bob = client_for("bob", "old-password")
    bob.post("/api/password/request", json={"username": "bob"})

    queue = admin_client.get("/api/password/requests").json()["requests"]
    assert len(queue) == 1
    ticket_id = queue[0]["id"]

    resp = admin_client.post("/api/password/approve", json={"id": ticket_id, "password": "new-password"})
    assert resp.status_code == 200
    assert resp.json() == {"id": ticket_id, "username": "bob", "password": "new-password", "status": "resolved"}

    assert bob.get("/api/auth/me").status_code == 401
    assert bob.post("/api/auth/login", json={"username": "bob", "password": "old-password"}).status_code == 401
    assert bob.post("/api/auth/login", json={"username": "bob", "password": "new-password"}).status_code == 200

    again = admin_client.post("/api/password/approve", json={"id": ticket_id, "password": "other"})
    assert again.status_code == 404

    resolved = admin_client.get("/api/password/requests").json()["requests"][0]
    assert resolved["status"] == "resolved"
    assert "new-password" not in str(resolved)


def test_approve_for_deactivated_user_denies_ticket(db):
    make_user("ghost", active=False)
    tickets.submit_request(db, "ghost")
    ticket = tickets.list_requests(db)[0]

    with pytest.raises(ValidationFailed):
        tickets.approve_request(db, ticket.id, "whatever")

    db.refresh(ticket)
    assert ticket.status == TicketStatus.DENIED
    assert ticket.message == tickets.USER_GONE_MESSAGE


def _resolved_elsewhere_after_lookup(monkeypatch, status):
    """Another admin closes the ticket between our read and our write"""
    from astrasemi.db.session import get_db_session

    real_lookup = tickets._pending_ticket

    def lookup(db, ticket_id):
        ticket = real_lookup(db, ticket_id)
        with get_db_session() as other:
            other.query(ResetTicket).filter(ResetTicket.id == ticket_id).update(
                {ResetTicket.status: status, ResetTicket.message: "handled elsewhere"},
                synchronize_session=False,
            )
        return ticket

    monkeypatch.setattr(tickets, "_pending_ticket", lookup)


def test_approve_after_concurrent_resolution_changes_nothing(db, monkeypatch):
    make_user("dave", password="original")
    tickets.submit_request(db, "dave")
    ticket_id = tickets.list_requests(db)[0].id
    _resolved_elsewhere_after_lookup(monkeypatch, TicketStatus.DENIED)

    with pytest.raises(NotFound):
        tickets.approve_request(db, ticket_id, "sneaky")

    user = db.query(User).filter(User.username == "dave").one()
    assert verify_password("original", user.password_hash)
    ticket = db.query(ResetTicket).filter(ResetTicket.id == ticket_id).one()
    assert ticket.status == TicketStatus.DENIED
    assert ticket.message == "handled elsewhere"


def test_deny_after_concurrent_approval_keeps_resolution(db, monkeypatch):
    make_user("erin")
    tickets.submit_request(db, "erin")
    ticket_id = tickets.list_requests(db)[0].id
    _resolved_elsewhere_after_lookup(monkeypatch, TicketStatus.RESOLVED)

    with pytest.raises(NotFound):
        tickets.deny_request(db, ticket_id)

    ticket = db.query(ResetTicket).filter(ResetTicket.id == ticket_id).one()
    assert ticket.status == TicketStatus.RESOLVED


def test_approve_requires_id_and_password(db):
    with pytest.raises(ValidationFailed):
        tickets.approve_request(db, None, "pw")
    with pytest.raises(ValidationFailed):
        tickets.approve_request(db, "some-id", "")
    with pytest.raises(NotFound):
        tickets.approve_request(db, "some-id", "pw")


def test_deny(admin_client):
    make_user("carol")
    admin_client.post("/api/password/request", json={"username": "carol"})
    ticket_id = admin_client.get("/api/password/requests").json()["requests"][0]["id"]

    resp = admin_client.post("/api/password/deny", json={"id": ticket_id})
    assert resp.status_code == 200
    assert resp.json()["status"] == "denied"
    assert resp.json()["message"] == tickets.DENIED_MESSAGE

    assert admin_client.post("/api/password/deny", json={"id": ticket_id}).status_code == 404


def test_clear_removes_exactly_resolved_and_denied(db):
    make_user("alice")
    for _ in range(5):
        tickets.submit_request(db, "alice")
    queue = tickets.list_requests(db)
    tickets.approve_request(db, queue[0].id, "pw-1")
    tickets.deny_request(db, queue[1].id)
    tickets.deny_request(db, queue[2].id)

    pending_before = {t.id for t in tickets.list_requests(db) if t.status == TicketStatus.PENDING}
    non_pending = db.query(ResetTicket).filter(ResetTicket.status != TicketStatus.PENDING).count()

    result = tickets.clear_resolved(db)

    assert result == {"removed": non_pending, "remaining": 2}
    assert {t.id for t in tickets.list_requests(db)} == pending_before

    user = db.query(User).filter(User.username == "alice").one()
    assert verify_password("pw-1", user.password_hash)


def test_clear_over_http(admin_client):
    resp = admin_client.post("/api/password/clear")
    assert resp.status_code == 200
    assert resp.json() == {"removed": 0, "remaining": 0}
