"""
Role-Based Access Control (RBAC) dependencies for FastAPI.
Provides reusable dependency functions to protect routes with role checks.
"""

from typing import List, Optional

from fastapi import Depends, Header, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from auth.auth_manager import auth_manager
from auth.cache_manager import cache_manager
from auth.models import User, UserStatus
from auth.session_manager import session_manager
from core.database import DatabaseManager
from core.permissions import PermissionUtils, STAFF_ROLES, UserRole

# ==================== DEPENDENCY FUNCTIONS ====================


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


async def get_bearer_token(authorization: str = Header(None)) -> str:
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    return token


async def verify_jwt_token(token: str = Depends(get_bearer_token)) -> dict:
    """
    Dependency: Verify JWT token and return payload.
    """
    if cache_manager.is_token_blacklisted(token):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    payload = auth_manager.verify_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload


def _resolve_user(db: Session, payload: dict) -> dict:
    user = db.query(User).filter(User.id == payload.get("sub")).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if user.status != UserStatus.ACTIVE:
        logger.warning(f"[AUTH] Rejected {user.status.value} account {user.id}")
        raise HTTPException(status_code=403, detail="Account is not active")

    session = session_manager.get_active_session(db, payload.get("sid"))
    if session is None or session.user_id != user.id:
        raise HTTPException(status_code=401, detail="Session expired or revoked")
    session_manager.touch(session)

    return {
        "sub": user.id,
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "roles": user.role_names,
        "sid": session.session_id,
    }


async def get_current_user(
    payload: dict = Depends(verify_jwt_token),
    db: Session = Depends(DatabaseManager.get_session),
) -> dict:
    """
    Dependency: Current user as a dict.

    Roles come from the database, so role changes apply without a new token.
    """
    return _resolve_user(db, payload)


async def get_optional_user(
    authorization: str = Header(None),
    db: Session = Depends(DatabaseManager.get_session),
) -> Optional[dict]:
    """
    Optional dependency: Get user if authenticated, otherwise return None.
    """
    token = _extract_bearer(authorization)
    if not token or cache_manager.is_token_blacklisted(token):
        return None

    payload = auth_manager.verify_token(token)
    if not payload:
        return None

    try:
        return _resolve_user(db, payload)
    except HTTPException:
        return None


def require_role(required_role: str):
    """
    Dependency factory: Require specific role.
    """
    async def _require_role(user: dict = Depends(get_current_user)) -> dict:
        if required_role not in user.get("roles", []):
            logger.warning(
                f"User {user['sub']} attempted to access {required_role} "
                f"endpoint without required role"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. {required_role.capitalize()} role required."
            )
        return user

    return _require_role


def require_any_role(required_roles: List[str]):
    """
    Dependency factory: Require one of several roles.
    """
    async def _require_any_role(user: dict = Depends(get_current_user)) -> dict:
        if not PermissionUtils.has_any_role(user.get("roles", []), required_roles):
            logger.warning(
                f"User {user['sub']} attempted to access endpoint requiring "
                f"one of {required_roles}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required roles: {', '.join(required_roles)}"
            )
        return user

    return _require_any_role


# ==================== COMMONLY USED DEPENDENCIES ====================

async def require_admin(user: dict = Depends(require_role(UserRole.ADMIN.value))) -> dict:
    """
    Dependency: Require admin role.
    """
    return user


async def require_staff(user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency: Require any staff role (admin, staff, support, developer).
    """
    if not PermissionUtils.is_staff(user.get("roles", [])):
        logger.warning(f"User {user['sub']} attempted to access staff endpoint")
        raise HTTPException(status_code=403, detail="Access denied. Staff role required.")
    return user


async def get_current_db_user(
    user: dict = Depends(get_current_user),
    db: Session = Depends(DatabaseManager.get_session),
) -> User:
    """Dependency: the ORM row for the current user (same request session)."""
    return db.query(User).filter(User.id == user["id"]).one()


__all__ = [
    "STAFF_ROLES",
    "get_bearer_token",
    "verify_jwt_token",
    "get_current_user",
    "get_current_db_user",
    "get_optional_user",
    "require_role",
    "require_any_role",
    "require_admin",
    "require_staff",
]
