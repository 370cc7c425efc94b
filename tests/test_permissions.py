"""
Tests for the role checks shared by every module.
"""
import pytest

from core.exceptions import AuthorizationError
from core.permissions import PermissionException, PermissionUtils, UserRole, require_roles


# =============================================================================
# ROLE PREDICATES
# =============================================================================

class TestRolePredicates:

    @pytest.mark.parametrize("roles", [["admin"], ["staff"], ["support"], ["developer"], ["user", "support"]])
    def test_every_staff_role_counts_as_staff(self, roles):
        assert PermissionUtils.is_staff(roles)

    @pytest.mark.parametrize("roles", [None, [], ["user"]])
    def test_plain_users_and_missing_roles_are_not_staff(self, roles):
        assert not PermissionUtils.is_staff(roles)
        assert not PermissionUtils.is_admin(roles)

    def test_support_agent_and_developer_include_admin(self):
        assert PermissionUtils.is_support_agent(["admin"])
        assert PermissionUtils.is_developer(["admin"])
        assert not PermissionUtils.is_support_agent(["staff"])
        assert not PermissionUtils.is_developer(["support"])

    def test_enum_values_are_accepted(self):
        assert PermissionUtils.is_admin([UserRole.ADMIN])
        assert PermissionUtils.has_all_roles(["admin", "staff"], [UserRole.ADMIN, UserRole.STAFF])
        assert not PermissionUtils.has_all_roles(["admin"], [UserRole.ADMIN, UserRole.STAFF])

    def test_permission_level_takes_the_highest_role(self):
        assert PermissionUtils.get_permission_level(["support", "developer"]) == 4
        assert PermissionUtils.get_permission_level(["admin", "staff"]) == 3
        assert PermissionUtils.get_permission_level(["user"]) == 0
        assert PermissionUtils.has_min_permission_level(["staff"], 2)
        assert not PermissionUtils.has_min_permission_level(["support"], 2)


# =============================================================================
# REQUIRE HELPERS
# =============================================================================

class TestRequireHelpers:

    def test_require_admin_rejects_staff(self):
        with pytest.raises(PermissionException) as exc:
            PermissionUtils.require_admin(["staff"])
        assert exc.value.message == "Access denied. Admin role required."
        assert exc.value.status_code == 403

    @pytest.mark.parametrize("check,allowed,denied,message", [
        (PermissionUtils.require_support_agent, ["support"], ["staff"], "Access denied. Support agent role required."),
        (PermissionUtils.require_developer, ["developer"], ["support"], "Access denied. Developer role required."),
    ])
    def test_role_specific_requirements(self, check, allowed, denied, message):
        check(allowed)
        check(["admin"])
        with pytest.raises(PermissionException) as exc:
            check(denied)
        assert exc.value.message == message

    def test_permission_exception_is_an_authorization_error(self):
        with pytest.raises(AuthorizationError):
            PermissionUtils.require_staff(["user"])

    def test_require_any_role_lists_the_required_roles(self):
        with pytest.raises(PermissionException) as exc:
            PermissionUtils.require_any_role(["user"], ["admin", "developer"])
        assert "admin, developer" in exc.value.message

    def test_require_min_level_passes_for_developer(self):
        PermissionUtils.require_min_permission_level(["developer"], 3)

    def test_require_roles_decorator_reads_the_keyword(self):
        @require_roles("admin", "staff")
        def publish(post_id, user_roles=None):
            return post_id

        assert publish("p1", user_roles=["staff"]) == "p1"
        with pytest.raises(PermissionException):
            publish("p1", user_roles=["user"])
        with pytest.raises(PermissionException):
            publish("p1")
