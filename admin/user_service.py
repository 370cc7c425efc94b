"""
Admin user management.

Roles are filtered with a join on user_roles; "summary" counts are taken over
the returned page while totalUsers is the filtered total.
"""

import math
from datetime import datetime
from typing import Any, Dict

from loguru import logger
from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session

from admin.audit_log_service import audit_log
from admin.schemas import AdminUpdateUserRequest, AdminUserQuery
from auth.models import Role, User, UserStatus, get_or_create_role
from auth.session_manager import session_manager
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.permissions import UserRole
from core.responses import iso

VALID_ROLES = {role.value for role in UserRole}


def admin_user_dto(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "avatar": user.avatar,
        "provider": user.primary_provider,
        "isEmailVerified": user.is_email_verified,
        "emailVerifiedAt": iso(user.email_verified_at),
        "isTwoFactorEnabled": user.is_two_factor_enabled,
        "roles": user.role_names,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
        "lastLoginAt": iso(user.last_login_at),
        "status": user.status.value if user.status else None,
        "suspensionReason": user.suspension_reason,
        "suspendedAt": iso(user.suspended_at),
        "metadata": user.custom_metadata or {},
    }


class AdminUserService:

    @staticmethod
    def _get(db: Session, user_id: str) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def list_users(db: Session, query: AdminUserQuery) -> Dict[str, Any]:
        q = db.query(User)

        if query.search:
            pattern = f"%{query.search.lower()}%"
            q = q.filter(or_(func.lower(User.email).like(pattern), func.lower(User.name).like(pattern)))
        if query.user_id:
            q = q.filter(User.id == query.user_id)
        if query.email:
            q = q.filter(func.lower(User.email).like(f"%{query.email.lower()}%"))
        if query.name:
            q = q.filter(func.lower(User.name).like(f"%{query.name.lower()}%"))
        if query.roles:
            q = q.filter(User.roles.any(Role.name.in_(query.roles)))
        if query.is_email_verified is not None:
            q = q.filter(User.is_email_verified.is_(query.is_email_verified))
        if query.is_two_factor_enabled is not None:
            q = q.filter(User.is_two_factor_enabled.is_(query.is_two_factor_enabled))
        if query.status is not None:
            q = q.filter(User.status == query.status)
        if query.created_after:
            q = q.filter(User.created_at >= query.created_after)
        if query.created_before:
            q = q.filter(User.created_at <= query.created_before)
        if query.updated_after:
            q = q.filter(User.updated_at >= query.updated_after)
        if query.updated_before:
            q = q.filter(User.updated_at <= query.updated_before)

        total = q.count()
        direction = asc if query.sort_order == "ASC" else desc
        users = (
            q.order_by(direction(getattr(User, query.sort_by)), desc(User.id))
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
            .all()
        )

        total_pages = math.ceil(total / query.limit) if query.limit else 0
        dtos = [admin_user_dto(u) for u in users]
        logger.info(f"[ADMIN_USERS] Retrieved {len(dtos)} users (page {query.page}, limit {query.limit})")
        return {
            "users": dtos,
            "total": total,
            "page": query.page,
            "limit": query.limit,
            "totalPages": total_pages,
            "hasMore": query.page < total_pages,
            "summary": {
                "totalUsers": total,
                "activeUsers": sum(1 for u in users if u.status == UserStatus.ACTIVE),
                "verifiedUsers": sum(1 for u in users if u.is_email_verified),
                "twoFactorEnabled": sum(1 for u in users if u.is_two_factor_enabled),
            },
        }

    @staticmethod
    def get_user(db: Session, user_id: str) -> Dict[str, Any]:
        return admin_user_dto(AdminUserService._get(db, user_id))

    @staticmethod
    def update_user(db: Session, user_id: str, request: AdminUpdateUserRequest, admin_id: str) -> Dict[str, Any]:
        user = AdminUserService._get(db, user_id)
        changes = request.model_dump(exclude_unset=True)

        if request.email is not None:
            email = str(request.email).lower()
            if email != user.email:
                taken = db.query(User.id).filter(User.email == email, User.id != user.id).first()
                if taken:
                    raise ConflictError("Email already in use")
                user.email = email

        if request.roles is not None:
            unknown = sorted(set(request.roles) - VALID_ROLES)
            if unknown:
                raise ValidationError(f"Invalid roles: {', '.join(unknown)}")
            user.roles = [get_or_create_role(db, name) for name in sorted(set(request.roles))]

        if request.name is not None:
            user.name = request.name
        if request.is_email_verified is not None:
            user.is_email_verified = request.is_email_verified
            user.email_verified_at = datetime.utcnow() if request.is_email_verified else None
        if request.is_two_factor_enabled is not None:
            user.is_two_factor_enabled = request.is_two_factor_enabled
        if request.status is not None:
            user.status = request.status
        if "suspension_reason" in changes:
            user.suspension_reason = request.suspension_reason
        if request.metadata is not None:
            user.custom_metadata = request.metadata

        user.updated_at = datetime.utcnow()
        db.flush()
        audit_log.log_admin_action(admin_id, "USER_UPDATE", user_id, {k: str(v) for k, v in changes.items()})
        return admin_user_dto(user)

    @staticmethod
    def suspend_user(db: Session, user_id: str, reason: str, admin_id: str) -> Dict[str, Any]:
        if user_id == admin_id:
            raise ValidationError("You cannot suspend your own account")

        user = AdminUserService._get(db, user_id)
        now = datetime.utcnow()
        user.status = UserStatus.SUSPENDED
        user.suspension_reason = reason
        user.suspended_at = now
        session_manager.invalidate_all_sessions(db, user.id, reason="account_suspended")
        db.flush()

        audit_log.log_admin_action(admin_id, "USER_SUSPEND", user_id, {"reason": reason})
        return {"userId": user_id, "suspendedAt": now.isoformat(), "reason": reason, "suspendedBy": admin_id}

    @staticmethod
    def reactivate_user(db: Session, user_id: str, admin_id: str) -> Dict[str, Any]:
        user = AdminUserService._get(db, user_id)
        user.status = UserStatus.ACTIVE
        user.suspension_reason = None
        user.suspended_at = None
        db.flush()

        audit_log.log_admin_action(admin_id, "USER_REACTIVATE", user_id)
        return {"userId": user_id, "reactivatedAt": datetime.utcnow().isoformat(), "reactivatedBy": admin_id}

    @staticmethod
    def delete_user(db: Session, user_id: str, admin_id: str) -> Dict[str, Any]:
        """Soft delete: the row stays with status DELETED and no live sessions."""
        if user_id == admin_id:
            raise ValidationError("You cannot delete your own account")

        user = AdminUserService._get(db, user_id)
        user.status = UserStatus.DELETED
        revoked = session_manager.invalidate_all_sessions(db, user.id, reason="account_deleted")
        db.flush()

        audit_log.log_admin_action(admin_id, "USER_DELETE", user_id, {"sessionsRevoked": revoked})
        return {"userId": user_id, "deletedAt": datetime.utcnow().isoformat(), "deletedBy": admin_id}
