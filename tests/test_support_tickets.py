"""
Behaviour tests for the support-ticket workflow: ownership, staff
assignment, replies, reopen requests and statistics.
"""
import pytest

from support_tickets.models import SupportTicket, TicketStatus


def create_ticket(client, headers, **fields):
    payload = {"title": "Cannot log in", "description": "The login page spins forever"}
    payload.update(fields)
    response = client.post("/support-tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def ticket(client, user_headers):
    return create_ticket(client, user_headers)


# =============================================================================
# CREATION AND VISIBILITY
# =============================================================================

class TestCreationAndVisibility:

    def test_new_ticket_is_open_and_owned_by_the_creator(self, client, user, user_headers):
        data = create_ticket(client, user_headers, priority="HIGH", type="TECHNICAL",
                             file_urls=["https://files.example.com/a.png"])

        assert data["status"] == "OPEN"
        assert data["priority"] == "HIGH"
        assert data["createdById"] == user.id
        assert data["assignedToId"] is None
        assert data["fileUrls"] == ["https://files.example.com/a.png"]
        assert data["replies"] == []

    def test_blank_title_is_rejected(self, client, user_headers):
        response = client.post("/support-tickets", json={"title": "   "}, headers=user_headers)
        assert response.status_code == 422

    def test_users_only_list_their_own_tickets(self, client, make_user, auth_headers, user_headers, ticket):
        stranger_headers = auth_headers(make_user())
        create_ticket(client, stranger_headers, title="Someone else's problem")

        mine = client.get("/support-tickets", headers=user_headers).json()["data"]

        assert [t["id"] for t in mine["tickets"]] == [ticket["id"]]
        assert mine["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}

    def test_user_cannot_view_another_users_ticket(self, client, make_user, auth_headers, ticket):
        stranger_headers = auth_headers(make_user())

        response = client.get(f"/support-tickets/{ticket['id']}", headers=stranger_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "You can only view your own tickets"

    def test_user_cannot_filter_by_someone_else(self, client, staff, user_headers):
        response = client.get("/support-tickets", params={"creator_id": staff.id}, headers=user_headers)
        assert response.status_code == 403

    def test_staff_see_every_ticket_and_can_filter_by_status(self, client, staff_headers, user_headers, ticket):
        create_ticket(client, user_headers, title="Billing question", type="BILLING")

        everything = client.get("/support-tickets", headers=staff_headers).json()["data"]
        assert everything["pagination"]["total"] == 2

        closed_only = client.get("/support-tickets", params={"status": "CLOSED"}, headers=staff_headers)
        assert closed_only.json()["data"]["pagination"]["total"] == 0

    def test_search_matches_title_and_description(self, client, user_headers, ticket):
        create_ticket(client, user_headers, title="Invoice", description="Charged twice")

        found = client.get("/support-tickets", params={"search": "TWICE"}, headers=user_headers)

        titles = [t["title"] for t in found.json()["data"]["tickets"]]
        assert titles == ["Invoice"]

    @pytest.mark.parametrize("sort_order, expected", [
        ("desc", ["URGENT", "HIGH", "NORMAL", "LOW"]),
        ("asc", ["LOW", "NORMAL", "HIGH", "URGENT"]),
    ])
    def test_priority_sorts_by_severity(self, client, staff_headers, user_headers, sort_order, expected):
        for priority in ("NORMAL", "URGENT", "LOW", "HIGH"):
            create_ticket(client, user_headers, title=f"{priority} issue", priority=priority)

        response = client.get("/support-tickets", params={"sort_by": "priority", "sort_order": sort_order},
                              headers=staff_headers)

        assert [t["priority"] for t in response.json()["data"]["tickets"]] == expected

    def test_missing_ticket_is_not_found(self, client, staff_headers):
        response = client.get("/support-tickets/does-not-exist", headers=staff_headers)
        assert response.status_code == 404


# =============================================================================
# STAFF ACTIONS
# =============================================================================

class TestStaffActions:

    def test_assignment_moves_ticket_in_progress(self, client, staff, staff_headers, ticket):
        response = client.patch(f"/support-tickets/{ticket['id']}/assign",
                                json={"assignee_id": staff.id}, headers=staff_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "IN_PROGRESS"
        assert data["assignedToId"] == staff.id
        assert data["assignedAt"] is not None

    def test_unassigning_reopens_the_ticket(self, client, staff, staff_headers, ticket):
        client.patch(f"/support-tickets/{ticket['id']}/assign", json={"assignee_id": staff.id}, headers=staff_headers)

        response = client.patch(f"/support-tickets/{ticket['id']}/assign",
                                json={"assignee_id": None}, headers=staff_headers)

        data = response.json()["data"]
        assert data["status"] == "OPEN"
        assert data["assignedToId"] is None

    def test_assignee_must_be_staff(self, client, user, staff_headers, ticket):
        response = client.patch(f"/support-tickets/{ticket['id']}/assign",
                                json={"assignee_id": user.id}, headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Assignee must be a staff member"

    def test_users_cannot_assign(self, client, staff, user_headers, ticket):
        response = client.patch(f"/support-tickets/{ticket['id']}/assign",
                                json={"assignee_id": staff.id}, headers=user_headers)
        assert response.status_code == 403

    def test_closing_sets_closed_at_and_reopening_clears_it(self, client, staff_headers, ticket):
        closed = client.patch(f"/support-tickets/{ticket['id']}", json={"status": "CLOSED"}, headers=staff_headers)
        assert closed.json()["data"]["closedAt"] is not None

        reopened = client.patch(f"/support-tickets/{ticket['id']}", json={"status": "OPEN"}, headers=staff_headers)
        assert reopened.json()["data"]["closedAt"] is None

    def test_owner_cannot_update_fields(self, client, user_headers, ticket):
        response = client.patch(f"/support-tickets/{ticket['id']}", json={"priority": "URGENT"},
                                headers=user_headers)
        assert response.status_code == 403


# =============================================================================
# REPLIES
# =============================================================================

class TestReplies:

    def test_owner_can_reply(self, client, user_headers, ticket):
        response = client.post(f"/support-tickets/{ticket['id']}/replies",
                               json={"content": "Any news?"}, headers=user_headers)

        assert response.status_code == 201
        assert response.json()["data"]["isInternal"] is False

    def test_unassigned_staff_cannot_reply(self, client, staff_headers, ticket):
        response = client.post(f"/support-tickets/{ticket['id']}/replies",
                               json={"content": "Looking"}, headers=staff_headers)
        assert response.status_code == 403

    def test_internal_replies_are_hidden_from_the_owner(self, client, staff, staff_headers, user_headers, ticket):
        client.patch(f"/support-tickets/{ticket['id']}/assign", json={"assignee_id": staff.id}, headers=staff_headers)
        client.post(f"/support-tickets/{ticket['id']}/replies",
                    json={"content": "Customer seems confused", "is_internal": True}, headers=staff_headers)
        client.post(f"/support-tickets/{ticket['id']}/replies",
                    json={"content": "We are on it"}, headers=staff_headers)

        owner_view = client.get(f"/support-tickets/{ticket['id']}", headers=user_headers).json()["data"]
        staff_view = client.get(f"/support-tickets/{ticket['id']}", headers=staff_headers).json()["data"]

        assert [r["content"] for r in owner_view["replies"]] == ["We are on it"]
        assert owner_view["replyCount"] == 1
        assert staff_view["replyCount"] == 2

    def test_owner_cannot_post_internal_replies(self, client, user_headers, ticket):
        response = client.post(f"/support-tickets/{ticket['id']}/replies",
                               json={"content": "psst", "is_internal": True}, headers=user_headers)
        assert response.status_code == 403

    def test_files_can_be_detached(self, client, user_headers):
        url = "https://files.example.com/log.txt"
        data = create_ticket(client, user_headers, file_urls=[url])

        response = client.delete(f"/support-tickets/{data['id']}/files", params={"file_url": url},
                                 headers=user_headers)
        assert response.status_code == 200

        again = client.delete(f"/support-tickets/{data['id']}/files", params={"file_url": url},
                              headers=user_headers)
        assert again.status_code == 400

    def test_reply_files_can_be_detached(self, client, user_headers, ticket):
        url = "https://files.example.com/screenshot.png"
        reply = client.post(f"/support-tickets/{ticket['id']}/replies",
                            json={"content": "See attached", "file_urls": [url]}, headers=user_headers).json()["data"]
        path = f"/support-tickets/{ticket['id']}/replies/{reply['id']}/files"

        assert client.delete(path, params={"file_url": url}, headers=user_headers).status_code == 200

        again = client.delete(path, params={"file_url": url}, headers=user_headers)
        assert again.status_code == 400
        assert again.json()["detail"] == "File is not attached to this reply"

        missing = client.delete(f"/support-tickets/{ticket['id']}/replies/nope/files",
                                params={"file_url": url}, headers=user_headers)
        assert missing.status_code == 404


# =============================================================================
# REOPEN REQUESTS
# =============================================================================

class TestReopenRequests:

    @pytest.fixture
    def closed_ticket(self, client, staff_headers, ticket):
        client.patch(f"/support-tickets/{ticket['id']}", json={"status": "CLOSED"}, headers=staff_headers)
        return ticket

    def test_only_closed_tickets_can_be_reopened(self, client, user_headers, ticket):
        response = client.post(f"/support-tickets/{ticket['id']}/reopen-requests",
                               json={"reason": "Still broken"}, headers=user_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Only closed tickets can be reopened"

    def test_one_pending_request_at_a_time(self, client, user_headers, closed_ticket):
        url = f"/support-tickets/{closed_ticket['id']}/reopen-requests"
        assert client.post(url, json={"reason": "Still broken"}, headers=user_headers).status_code == 201

        second = client.post(url, json={"reason": "Please"}, headers=user_headers)
        assert second.status_code == 400

    def test_approval_reopens_the_ticket(self, client, db, user_headers, staff_headers, closed_ticket):
        created = client.post(f"/support-tickets/{closed_ticket['id']}/reopen-requests",
                              json={"reason": "Still broken"}, headers=user_headers).json()["data"]

        response = client.patch(f"/support-tickets/reopen-requests/{created['id']}",
                                json={"approve": True, "note": "Fair enough"}, headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "APPROVED"
        db.expire_all()
        ticket = db.get(SupportTicket, closed_ticket["id"])
        assert ticket.status == TicketStatus.OPEN
        assert ticket.closed_at is None

        again = client.patch(f"/support-tickets/reopen-requests/{created['id']}",
                             json={"approve": False}, headers=staff_headers)
        assert again.status_code == 400

    def test_users_cannot_process_requests(self, client, user_headers, closed_ticket):
        created = client.post(f"/support-tickets/{closed_ticket['id']}/reopen-requests",
                              json={"reason": "Still broken"}, headers=user_headers).json()["data"]

        response = client.patch(f"/support-tickets/reopen-requests/{created['id']}",
                                json={"approve": True}, headers=user_headers)
        assert response.status_code == 403


# =============================================================================
# STATISTICS
# =============================================================================

class TestStatistics:

    def test_stats_are_scoped_to_the_caller(self, client, staff_headers, user_headers, make_user, auth_headers):
        create_ticket(client, user_headers)
        create_ticket(client, auth_headers(make_user()))

        mine = client.get("/support-tickets/stats", headers=user_headers).json()["data"]
        everyone = client.get("/support-tickets/stats", headers=staff_headers).json()["data"]

        assert mine == {"total": 1, "open": 1, "inProgress": 0, "resolved": 0, "closed": 0}
        assert everyone["total"] == 2

    def test_analytics_need_staff(self, client, user_headers, staff_headers, ticket):
        assert client.get("/support-tickets/analytics", headers=user_headers).status_code == 403

        data = client.get("/support-tickets/analytics", headers=staff_headers).json()["data"]
        assert data["overview"]["totalTickets"] == 1
        assert data["trends"]["ticketsThisMonth"] == 1
        assert data["byPriority"] == [{"priority": "NORMAL", "count": 1}]
