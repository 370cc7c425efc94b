"""
Behaviour tests for the public contact form and newsletter endpoints and
their staff-facing management routes.
"""
import pytest


def send_message(client, **fields):
    payload = {
        "name": "Jane Visitor",
        "email": "Jane@Example.com",
        "subject": "Quote request",
        "message": "We would like a quote for a new website.",
    }
    payload.update(fields)
    response = client.post("/contact-messages", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


# =============================================================================
# CONTACT MESSAGES
# =============================================================================

class TestContactMessages:

    def test_anyone_can_send_a_message(self, client):
        data = send_message(client)

        assert data["email"] == "jane@example.com"
        assert data["subject"] == "Quote request"

    @pytest.mark.parametrize("field,value", [
        ("email", "not-an-email"),
        ("message", "too short"),
        ("name", "x" * 101),
    ])
    def test_invalid_messages_are_rejected(self, client, field, value):
        payload = {"name": "Jane", "email": "jane@example.com", "subject": "Hi",
                   "message": "Long enough message body", field: value}
        assert client.post("/contact-messages", json=payload).status_code == 422

    def test_reading_requires_staff(self, client, user_headers):
        send_message(client)
        assert client.get("/contact-messages").status_code == 401
        assert client.get("/contact-messages", headers=user_headers).status_code == 403

    def test_staff_search_and_delete(self, client, staff_headers):
        first = send_message(client)
        send_message(client, email="bob@example.com", subject="Careers", message="Are you hiring developers?")

        found = client.get("/contact-messages", params={"search": "hiring"}, headers=staff_headers).json()
        assert [m["email"] for m in found["data"]] == ["bob@example.com"]

        by_email = client.get("/contact-messages", params={"email": "JANE@example.com"}, headers=staff_headers).json()
        assert by_email["pagination"]["total"] == 1

        deleted = client.delete(f"/contact-messages/{first['id']}", headers=staff_headers)
        assert deleted.json()["data"]["id"] == first["id"]
        assert client.get(f"/contact-messages/{first['id']}", headers=staff_headers).status_code == 404

    def test_stats_count_recent_messages(self, client, staff_headers):
        send_message(client)
        send_message(client)

        stats = client.get("/contact-messages/stats/overview", headers=staff_headers).json()["data"]

        assert stats == {"total": 2, "today": 2, "thisWeek": 2, "thisMonth": 2}


# =============================================================================
# NEWSLETTER
# =============================================================================

class TestNewsletter:

    def test_subscribe_normalizes_the_email(self, client):
        response = client.post("/newsletter/subscribe", json={"email": "Reader@Example.com"})

        assert response.status_code == 201
        assert response.json()["data"]["email"] == "reader@example.com"

    def test_double_subscription_conflicts(self, client):
        client.post("/newsletter/subscribe", json={"email": "reader@example.com"})

        response = client.post("/newsletter/subscribe", json={"email": "READER@example.com"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Email is already subscribed to the newsletter"

    def test_check_and_unsubscribe(self, client):
        client.post("/newsletter/subscribe", json={"email": "reader@example.com"})

        status = client.get("/newsletter/check-subscription", params={"email": "reader@example.com"}).json()
        assert status["data"]["isSubscribed"] is True

        left = client.post("/newsletter/unsubscribe", json={"email": "reader@example.com"})
        assert left.status_code == 200
        assert left.json()["data"]["email"] == "reader@example.com"

        status = client.get("/newsletter/check-subscription", params={"email": "reader@example.com"}).json()
        assert status["data"] == {"email": "reader@example.com", "isSubscribed": False, "subscribedAt": None}

    def test_unsubscribing_an_unknown_email_is_not_found(self, client):
        response = client.post("/newsletter/unsubscribe", json={"email": "nobody@example.com"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Email is not subscribed to the newsletter"

    def test_subscriber_management_is_staff_only(self, client, user_headers, staff_headers):
        created = client.post("/newsletter/subscribe", json={"email": "reader@example.com"}).json()["data"]

        assert client.get("/newsletter/subscribers", headers=user_headers).status_code == 403

        listing = client.get("/newsletter/subscribers", params={"search": "READER"}, headers=staff_headers).json()
        assert [s["id"] for s in listing["data"]] == [created["id"]]

        stats = client.get("/newsletter/stats/overview", headers=staff_headers).json()["data"]
        assert stats["total"] == 1 and stats["today"] == 1

        assert client.delete(f"/newsletter/subscribers/{created['id']}", headers=staff_headers).status_code == 200
        assert client.get(f"/newsletter/subscribers/{created['id']}", headers=staff_headers).status_code == 404
