"""
Role checks shared by every module.

Roles are plain strings carried in the access token and stored in the
`roles` table. Staff = admin, staff, support or developer.
"""

from enum import Enum
from functools import wraps
from typing import Iterable, List, Optional

from loguru import logger

from core.exceptions import AuthorizationError


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    SUPPORT = "support"
    DEVELOPER = "developer"
    USER = "user"


STAFF_ROLES = [UserRole.ADMIN.value, UserRole.STAFF.value, UserRole.SUPPORT.value, UserRole.DEVELOPER.value]

# Highest level wins
PERMISSION_LEVELS = {
    UserRole.DEVELOPER.value: 4,
    UserRole.ADMIN.value: 3,
    UserRole.STAFF.value: 2,
    UserRole.SUPPORT.value: 1,
}


class PermissionException(AuthorizationError):
    """Raised when a role check fails."""


def _normalize(roles: Optional[Iterable[str]]) -> List[str]:
    if not roles:
        return []
    return [str(role.value if isinstance(role, UserRole) else role) for role in roles]


class PermissionUtils:
    """Static role checks. `roles` may be None, a list of strings or UserRole values."""

    @staticmethod
    def has_any_role(roles, required: Iterable[str]) -> bool:
        user_roles = _normalize(roles)
        return any(role in user_roles for role in _normalize(required))

    @staticmethod
    def has_all_roles(roles, required: Iterable[str]) -> bool:
        user_roles = _normalize(roles)
        return all(role in user_roles for role in _normalize(required))

    @staticmethod
    def is_admin(roles) -> bool:
        return UserRole.ADMIN.value in _normalize(roles)

    @staticmethod
    def is_staff(roles) -> bool:
        return PermissionUtils.has_any_role(roles, STAFF_ROLES)

    @staticmethod
    def is_support_agent(roles) -> bool:
        return PermissionUtils.has_any_role(roles, [UserRole.SUPPORT.value, UserRole.ADMIN.value])

    @staticmethod
    def is_developer(roles) -> bool:
        return PermissionUtils.has_any_role(roles, [UserRole.DEVELOPER.value, UserRole.ADMIN.value])

    # ==================== REQUIRE ====================

    @staticmethod
    def require_admin(roles):
        if not PermissionUtils.is_admin(roles):
            raise PermissionException("Access denied. Admin role required.")

    @staticmethod
    def require_staff(roles):
        if not PermissionUtils.is_staff(roles):
            raise PermissionException("Access denied. Staff role required.")

    @staticmethod
    def require_support_agent(roles):
        if not PermissionUtils.is_support_agent(roles):
            raise PermissionException("Access denied. Support agent role required.")

    @staticmethod
    def require_developer(roles):
        if not PermissionUtils.is_developer(roles):
            raise PermissionException("Access denied. Developer role required.")

    @staticmethod
    def require_any_role(roles, required: Iterable[str]):
        required = _normalize(required)
        if not PermissionUtils.has_any_role(roles, required):
            raise PermissionException(f"Access denied. Required roles: {', '.join(required)}")

    # ==================== LEVELS ====================

    @staticmethod
    def get_permission_level(roles) -> int:
        return max((PERMISSION_LEVELS.get(role, 0) for role in _normalize(roles)), default=0)

    @staticmethod
    def has_min_permission_level(roles, min_level: int) -> bool:
        return PermissionUtils.get_permission_level(roles) >= min_level

    @staticmethod
    def require_min_permission_level(roles, min_level: int):
        if not PermissionUtils.has_min_permission_level(roles, min_level):
            raise PermissionException(f"Access denied. Minimum permission level {min_level} required.")


def require_roles(*required: str):
    """
    Decorator for service functions called with a `user_roles=` keyword.

        @require_roles("admin", "staff")
        def publish(db, post_id, user_roles=None): ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            user_roles = kwargs.get("user_roles")
            if not PermissionUtils.has_any_role(user_roles, required):
                logger.warning(f"[PERMISSION] {func.__name__} denied for roles {user_roles}")
                raise PermissionException(f"Access denied. Required roles: {', '.join(required)}")
            return func(*args, **kwargs)
        return wrapper
    return decorator
