"""
Tests for the staff-facing admin routes over support tickets, contact
messages and newsletter subscribers.
"""
import pytest

from admin.audit_log_service import audit_log
from core.config import settings
from support_tickets.models import SupportTicket, TicketReply, TicketStatus


def open_ticket(client, headers, title="Checkout is broken", **fields):
    payload = {"title": title, "description": "Card payments fail at the last step"}
    payload.update(fields)
    response = client.post("/support-tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def ticket(client, user_headers):
    return open_ticket(client, user_headers)


# =============================================================================
# TICKET TRIAGE
# =============================================================================

class TestAdminTicketList:

    def test_list_includes_status_summary(self, client, user_headers, staff_headers, ticket):
        open_ticket(client, user_headers, title="Refund please", priority="URGENT")

        response = client.get("/admin/support-tickets", headers=staff_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["hasMore"] is False
        assert data["summary"]["openTickets"] == 2
        assert data["summary"]["urgentPriority"] == 1

    def test_search_matches_the_creator_email(self, client, make_user, auth_headers, staff_headers, ticket):
        other = make_user(email="someone.else@example.com")
        open_ticket(client, auth_headers(other), title="Unrelated")

        data = client.get("/admin/support-tickets", params={"search": "someone.else"},
                          headers=staff_headers).json()["data"]

        assert [t["title"] for t in data["tickets"]] == ["Unrelated"]
        assert data["tickets"][0]["userEmail"] == "someone.else@example.com"

    def test_priority_sort_follows_severity(self, client, staff_headers, user_headers):
        for priority in ("HIGH", "LOW", "URGENT", "NORMAL"):
            open_ticket(client, user_headers, title=f"{priority} issue", priority=priority)

        def priorities(order):
            data = client.get("/admin/support-tickets", params={"sort_by": "priority", "sort_order": order},
                              headers=staff_headers).json()["data"]
            return [t["priority"] for t in data["tickets"]]

        assert priorities("desc") == ["URGENT", "HIGH", "NORMAL", "LOW"]
        assert priorities("asc") == ["LOW", "NORMAL", "HIGH", "URGENT"]

    def test_plain_users_are_refused(self, client, user_headers):
        assert client.get("/admin/support-tickets", headers=user_headers).status_code == 403

    def test_details_include_requester(self, client, user, staff_headers, ticket):
        data = client.get(f"/admin/support-tickets/{ticket['id']}", headers=staff_headers).json()["data"]

        assert data["userEmail"] == user.email
        assert data["replies"] == []
        assert data["reopenRequests"] == []


class TestAdminTicketActions:

    def test_assign_by_camel_case_id(self, client, staff, staff_headers, ticket):
        response = client.put(f"/admin/support-tickets/{ticket['id']}/assign",
                              json={"assigneeId": staff.id, "reason": "Payments expert"},
                              headers=staff_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["assignedTo"] == staff.email
        assert data["assignedAt"] is not None

    def test_assignee_must_be_staff(self, client, user, staff_headers, ticket):
        response = client.put(f"/admin/support-tickets/{ticket['id']}/assign",
                              json={"assigneeId": user.id}, headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "TICKET_ASSIGNMENT_FAILED"

    def test_status_update_records_internal_notes(self, client, db, staff_headers, ticket):
        response = client.put(f"/admin/support-tickets/{ticket['id']}/status", headers=staff_headers,
                              json={"status": "RESOLVED", "priority": "HIGH", "internalNotes": "Patched gateway"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "RESOLVED"
        assert data["priority"] == "HIGH"
        assert data["closedAt"] is not None

        notes = db.query(TicketReply).filter(TicketReply.ticket_id == ticket["id"]).all()
        assert [n.content for n in notes] == ["[INTERNAL NOTE - GENERAL] Patched gateway"]
        assert notes[0].is_internal is True

    def test_internal_note_carries_its_type(self, client, staff_headers, user_headers, ticket):
        response = client.post(f"/admin/support-tickets/{ticket['id']}/internal-note", headers=staff_headers,
                               json={"content": "Customer is a VIP", "noteType": "ESCALATION"})

        assert response.status_code == 200
        assert response.json()["data"]["content"] == "[INTERNAL NOTE - ESCALATION] Customer is a VIP"

        owner_view = client.get(f"/support-tickets/{ticket['id']}", headers=user_headers).json()["data"]
        assert owner_view["replies"] == []

    def test_bulk_assign_reports_each_ticket(self, client, staff, user_headers, staff_headers, ticket):
        second = open_ticket(client, user_headers, title="Second")

        response = client.post("/admin/support-tickets/bulk-assign", headers=staff_headers, json={
            "ticketIds": [ticket["id"], second["id"], "missing"], "assigneeId": staff.id,
        })

        data = response.json()["data"]
        assert data["operationId"].startswith("bulk-assign-")
        assert data["totalTickets"] == 3
        assert data["successful"] == 2
        assert data["failed"] == 1
        assert data["results"][2] == {"ticketId": "missing", "success": False, "error": "Support ticket not found"}

    def test_bulk_status_update_closes_tickets(self, client, db, user_headers, staff_headers, ticket):
        second = open_ticket(client, user_headers, title="Second")

        response = client.post("/admin/support-tickets/bulk-status-update", headers=staff_headers, json={
            "ticketIds": [ticket["id"], second["id"]], "status": "CLOSED",
        })

        data = response.json()["data"]
        assert data["operationId"].startswith("bulk-status-")
        assert data["successful"] == 2
        db.expire_all()
        statuses = {t.status for t in db.query(SupportTicket).all()}
        assert statuses == {TicketStatus.CLOSED}

    def test_reopen_request_processing(self, client, staff_headers, user_headers, ticket):
        client.put(f"/admin/support-tickets/{ticket['id']}/status", json={"status": "CLOSED"}, headers=staff_headers)
        request = client.post(f"/support-tickets/{ticket['id']}/reopen-requests",
                              json={"reason": "It broke again"}, headers=user_headers).json()["data"]

        response = client.put(f"/admin/support-tickets/reopen-requests/{request['id']}/process",
                              json={"approve": False, "reason": "Duplicate of another ticket"},
                              headers=staff_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "REJECTED"
        assert data["ticketTitle"] == ticket["title"]

        details = client.get(f"/admin/support-tickets/{ticket['id']}", headers=staff_headers).json()["data"]
        assert details["status"] == "CLOSED"
        assert details["reopenRequests"][0]["status"] == "REJECTED"


class TestAdminTicketDeletion:

    def test_deletion_must_be_confirmed(self, client, admin_headers, ticket):
        response = client.request("DELETE", f"/admin/support-tickets/{ticket['id']}", headers=admin_headers,
                                  json={"reason": "Spam"})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Deletion must be confirmed"

    def test_only_admins_delete(self, client, staff_headers, ticket):
        response = client.request("DELETE", f"/admin/support-tickets/{ticket['id']}", headers=staff_headers,
                                  json={"reason": "Spam", "confirmDeletion": True})

        assert response.status_code == 403

    def test_staff_are_refused_before_confirmation_is_checked(self, client, staff_headers, ticket):
        response = client.request("DELETE", f"/admin/support-tickets/{ticket['id']}", headers=staff_headers,
                                  json={"reason": "Spam"})

        assert response.status_code == 403

    def test_deleting_closes_the_ticket(self, client, db, admin_headers, ticket):
        response = client.request("DELETE", f"/admin/support-tickets/{ticket['id']}", headers=admin_headers,
                                  json={"reason": "Spam", "confirmDeletion": True})

        assert response.status_code == 200
        db.expire_all()
        assert db.get(SupportTicket, ticket["id"]).status == TicketStatus.CLOSED


class TestAdminTicketAnalytics:

    def test_overview_and_assignee_breakdown(self, client, staff, staff_headers, ticket):
        client.put(f"/admin/support-tickets/{ticket['id']}/assign", json={"assigneeId": staff.id},
                   headers=staff_headers)

        data = client.get("/admin/support-tickets/analytics/overview", headers=staff_headers).json()["data"]

        assert data["overview"]["totalTickets"] == 1
        assert data["trends"]["ticketsThisMonth"] == 1
        assert data["trends"]["resolutionRate"] == 0
        assert data["byAssignee"][0]["assigneeName"] == "Staff Member"
        assert data["byAssignee"][0]["ticketCount"] == 1


# =============================================================================
# CONTACT MESSAGES
# =============================================================================

class TestAdminContactMessages:

    @pytest.fixture
    def message(self, client):
        response = client.post("/contact-messages", json={
            "name": "Jane Visitor", "email": "jane@example.com",
            "subject": "Partnership", "message": "Would you like to partner with us?",
        })
        return response.json()["data"]

    def test_list_and_analytics(self, client, staff_headers, message):
        listing = client.get("/admin/contact-messages", headers=staff_headers).json()["data"]
        assert [m["id"] for m in listing["messages"]] == [message["id"]]
        assert listing["summary"]["messagesToday"] == 1

        analytics = client.get("/admin/contact-messages/analytics/overview", headers=staff_headers).json()["data"]
        assert analytics["overview"]["totalMessages"] == 1
        assert len(analytics["trends"]["messagesByMonth"]) == 12
        assert analytics["trends"]["messagesByMonth"][-1]["count"] == 1
        assert analytics["recentActivity"][0]["subject"] == "Partnership"

    def test_delete_then_not_found(self, client, staff_headers, message):
        deleted = client.request("DELETE", f"/admin/contact-messages/{message['id']}", headers=staff_headers,
                                 json={"reason": "Handled by phone"})
        assert deleted.status_code == 200

        missing = client.get(f"/admin/contact-messages/{message['id']}", headers=staff_headers)
        assert missing.status_code == 404
        assert missing.json()["detail"]["code"] == "CONTACT_MESSAGE_DETAILS_FAILED"


# =============================================================================
# NEWSLETTER
# =============================================================================

class TestAdminNewsletter:

    @pytest.fixture
    def subscribers(self, client):
        for email in ("first@example.com", "second@example.com"):
            client.post("/newsletter/subscribe", json={"email": email})

    def test_list_and_analytics(self, client, staff_headers, subscribers):
        listing = client.get("/admin/newsletter-subscribers", headers=staff_headers).json()["data"]
        assert listing["total"] == 2
        assert listing["summary"]["subscribersThisWeek"] == 2

        analytics = client.get("/admin/newsletter-subscribers/analytics/overview",
                               headers=staff_headers).json()["data"]
        assert analytics["overview"]["totalSubscribers"] == 2
        assert analytics["growth"]["currentMonth"] == 2

    def test_bulk_unsubscribe_reports_unknown_emails(self, client, staff_headers, subscribers):
        response = client.post("/admin/newsletter-subscribers/bulk-unsubscribe", headers=staff_headers,
                               json={"emails": ["first@example.com", "ghost@example.com"]})

        data = response.json()["data"]
        assert data["operationId"].startswith("bulk-unsubscribe-")
        assert data["successful"] == 1
        assert data["results"][1] == {"email": "ghost@example.com", "success": False, "error": "Not subscribed"}

        remaining = client.get("/admin/newsletter-subscribers", headers=staff_headers).json()["data"]
        assert [s["email"] for s in remaining["subscribers"]] == ["second@example.com"]

    def test_bulk_unsubscribe_folds_case_variants(self, client, staff_headers, subscribers):
        response = client.post("/admin/newsletter-subscribers/bulk-unsubscribe", headers=staff_headers,
                               json={"emails": ["first@example.com", "FIRST@example.com"]})

        data = response.json()["data"]
        assert data["totalEmails"] == 1
        assert data["successful"] == 1
        assert data["results"] == [{"email": "first@example.com", "success": True}]

    def test_json_export(self, client, admin_headers, subscribers):
        response = client.get("/admin/newsletter-subscribers/export", headers=admin_headers)

        assert response.status_code == 200
        assert sorted(s["email"] for s in response.json()["data"]) == ["first@example.com", "second@example.com"]

    def test_csv_export(self, client, admin_headers, subscribers):
        response = client.get("/admin/newsletter-subscribers/export", params={"format": "csv"},
                              headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().split("\n")
        assert lines[0] == "email,subscribedAt"
        assert len(lines) == 3

    def test_export_is_admin_only(self, client, staff_headers, subscribers):
        response = client.get("/admin/newsletter-subscribers/export", headers=staff_headers)

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "NEWSLETTER_EXPORT_FAILED"


# =============================================================================
# AUDIT LOG
# =============================================================================

class TestAdminAuditLog:

    def test_query_helpers_return_empty_results(self):
        logs = audit_log.get_logs(page=2, limit=5)
        assert logs["logs"] == [] and logs["total"] == 0
        assert logs["page"] == 2 and logs["hasMore"] is False

        stats = audit_log.get_stats()
        assert stats["overview"]["retentionDays"] == settings.audit_log_retention_days
        assert stats["byAction"] == []
