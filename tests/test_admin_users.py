"""
Tests for admin user management and user-growth analytics.
"""
from datetime import date, datetime

import pytest

from admin.schemas import GrowthGrouping, TimeRange, UserGrowthQuery
from admin.user_growth_service import _week_start, group_counts, growth_points, growth_summary, resolve_range
from auth.models import User, UserSession, UserStatus
from core.exceptions import ValidationError


# =============================================================================
# ACCESS
# =============================================================================

class TestAdminAccess:

    @pytest.mark.parametrize("path", ["/admin/users", "/admin/analytics/user-growth"])
    def test_staff_are_not_admins(self, client, staff_headers, path):
        response = client.get(path, headers=staff_headers)

        assert response.status_code == 403

    def test_anonymous_requests_are_unauthorized(self, client):
        assert client.get("/admin/users").status_code == 401


# =============================================================================
# USERS
# =============================================================================

class TestAdminUsers:

    def test_list_filters_by_role_and_reports_a_summary(self, client, user, staff, admin_headers):
        response = client.get("/admin/users", params={"roles": "staff"}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [u["email"] for u in data["users"]] == [staff.email]
        assert data["summary"]["totalUsers"] == 1
        assert data["hasMore"] is False

    def test_search_and_pagination(self, client, make_user, admin_headers):
        for _ in range(3):
            make_user(name="Paginated Person")

        response = client.get("/admin/users", params={"search": "paginated", "limit": 2},
                              headers=admin_headers).json()["data"]

        assert response["total"] == 3
        assert response["totalPages"] == 2
        assert len(response["users"]) == 2
        assert response["hasMore"] is True

    def test_get_unknown_user_uses_the_error_envelope(self, client, admin_headers):
        response = client.get("/admin/users/missing", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == {
            "success": False,
            "message": "User not found",
            "error": "NotFoundError",
            "code": "USER_DETAILS_FAILED",
        }

    def test_update_changes_roles_and_name(self, client, user, admin_headers):
        response = client.put(f"/admin/users/{user.id}", headers=admin_headers,
                              json={"name": "Promoted", "roles": ["support", "user"]})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Promoted"
        assert data["roles"] == ["support", "user"]

    def test_update_rejects_unknown_roles(self, client, user, admin_headers):
        response = client.put(f"/admin/users/{user.id}", headers=admin_headers, json={"roles": ["wizard"]})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Invalid roles: wizard"
        assert response.json()["detail"]["code"] == "USER_UPDATE_FAILED"

    def test_update_rejects_an_email_in_use(self, client, user, staff, admin_headers):
        response = client.put(f"/admin/users/{user.id}", headers=admin_headers, json={"email": staff.email})

        assert response.status_code == 409
        assert response.json()["detail"]["message"] == "Email already in use"

    def test_suspension_ends_sessions_and_blocks_access(self, client, db, user, user_headers, admin_headers):
        """
        GIVEN a signed-in user
        WHEN an admin suspends the account
        THEN the user's sessions end and their token stops working
        """
        response = client.post(f"/admin/users/{user.id}/suspend", headers=admin_headers,
                               json={"reason": "Chargeback fraud"})

        assert response.status_code == 200
        assert response.json()["data"]["reason"] == "Chargeback fraud"
        db.expire_all()
        assert db.get(User, user.id).status == UserStatus.SUSPENDED
        active = db.query(UserSession).filter(UserSession.user_id == user.id, UserSession.is_active.is_(True))
        assert active.count() == 0
        assert client.get("/auth/me", headers=user_headers).status_code in (401, 403)

    def test_admin_cannot_suspend_themselves(self, client, admin, admin_headers):
        response = client.post(f"/admin/users/{admin.id}/suspend", headers=admin_headers, json={"reason": "oops"})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "You cannot suspend your own account"

    def test_reactivation_clears_the_suspension(self, client, db, make_user, admin_headers):
        suspended = make_user(status=UserStatus.SUSPENDED)

        response = client.post(f"/admin/users/{suspended.id}/reactivate", headers=admin_headers)

        assert response.status_code == 200
        db.expire_all()
        refreshed = db.get(User, suspended.id)
        assert refreshed.status == UserStatus.ACTIVE
        assert refreshed.suspension_reason is None

    def test_delete_is_a_soft_delete(self, client, db, user, admin_headers):
        response = client.delete(f"/admin/users/{user.id}", headers=admin_headers)

        assert response.status_code == 200
        db.expire_all()
        assert db.get(User, user.id).status == UserStatus.DELETED

        listed = client.get("/admin/users", params={"status": "DELETED"}, headers=admin_headers).json()
        assert [u["id"] for u in listed["data"]["users"]] == [user.id]


# =============================================================================
# USER GROWTH
# =============================================================================

class TestUserGrowthEndpoint:

    def test_this_month_counts_new_accounts(self, client, user, staff, admin_headers):
        response = client.get("/admin/analytics/user-growth", params={"group_by": "month"}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["timeRange"] == "this_month"
        assert data["totalPoints"] == 1
        assert data["summary"]["totalNewUsers"] == 3

    def test_custom_range_needs_both_dates(self, client, admin_headers):
        response = client.get("/admin/analytics/user-growth", params={"time_range": "custom"},
                              headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "MISSING_CUSTOM_DATE_RANGE"


class TestGrowthCalculations:

    def test_weeks_start_on_sunday(self):
        assert _week_start(date(2024, 5, 15)) == date(2024, 5, 12)
        assert _week_start(date(2024, 5, 12)) == date(2024, 5, 12)

    def test_custom_range_without_dates_raises(self):
        with pytest.raises(ValidationError) as exc:
            resolve_range(UserGrowthQuery(time_range=TimeRange.CUSTOM))
        assert exc.value.error_code == "MISSING_CUSTOM_DATE_RANGE"

    def test_last_month_range(self):
        start, end = resolve_range(UserGrowthQuery(time_range=TimeRange.LAST_MONTH),
                                   now=datetime(2024, 3, 10, 12, 0))

        assert start == datetime(2024, 2, 1)
        assert end.date() == date(2024, 2, 29)

    def test_group_by_month(self):
        days = [(date(2024, 1, 31), 2), (date(2024, 2, 1), 1), (date(2024, 2, 2), 4)]

        assert group_counts(days, GrowthGrouping.MONTH) == [("2024-01", 2), ("2024-02", 5)]

    def test_points_accumulate_and_track_growth(self):
        points = growth_points([("2024-01", 2), ("2024-02", 4), ("2024-03", 0)])

        assert [p["totalUsers"] for p in points] == [2, 6, 6]
        assert [p["growthPercentage"] for p in points] == [0, 100.0, -100.0]
        assert points[1]["cumulativeGrowth"] == 200.0

    def test_summary_of_points(self):
        summary = growth_summary(growth_points([("2024-01", 2), ("2024-02", 4), ("2024-03", 0)]))

        assert summary["initialUsers"] == 0
        assert summary["finalUsers"] == 6
        assert summary["totalNewUsers"] == 6
        assert summary["peakGrowthRate"] == 100.0
        assert summary["averageGrowthRate"] == 0

    def test_empty_summary(self):
        assert growth_summary([])["finalUsers"] == 0
