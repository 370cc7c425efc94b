"""
SQLAlchemy models for accounts, roles, linked providers, sessions and
refresh tokens.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import Session, relationship

from core.database import Base
from core.permissions import UserRole as RoleName


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class AuthProviderType(str, enum.Enum):
    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    FACEBOOK = "FACEBOOK"
    GITHUB = "GITHUB"
    TWITTER = "TWITTER"
    LINKEDIN = "LINKEDIN"
    MICROSOFT = "MICROSOFT"
    APPLE = "APPLE"


class User(Base):
    """User accounts"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)  # NULL for provider-only accounts
    avatar = Column(String(500), nullable=True)

    # Email verification
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    verification_token = Column(String(500), unique=True, nullable=True)

    # Two-factor
    two_factor_secret = Column(String(64), nullable=True)
    is_two_factor_enabled = Column(Boolean, default=False, nullable=False)
    backup_codes = Column(JSON, nullable=False, default=list)  # bcrypt hashes

    # Password reset
    reset_token = Column(String(255), unique=True, nullable=True)  # bcrypt hash
    reset_token_expires = Column(DateTime, nullable=True)

    # Status
    status = Column(Enum(UserStatus), default=UserStatus.ACTIVE, nullable=False, index=True)
    suspension_reason = Column(Text, nullable=True)
    suspended_at = Column(DateTime, nullable=True)

    custom_metadata = Column("metadata", JSON, nullable=True, default=dict)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    roles = relationship("Role", secondary="user_roles", back_populates="users", lazy="selectin")
    providers = relationship("AuthProvider", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def role_names(self):
        return sorted(role.name for role in self.roles)

    @property
    def primary_provider(self) -> str:
        for provider in self.providers:
            if provider.is_primary:
                return provider.provider.value.lower()
        return "local"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatar": self.avatar,
            "isEmailVerified": self.is_email_verified,
            "isTwoFactorEnabled": self.is_two_factor_enabled,
            "roles": self.role_names,
            "status": self.status.value if self.status else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class Role(Base):
    """Roles (admin, staff, support, developer, user)"""

    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)

    users = relationship("User", secondary="user_roles", back_populates="roles")


class UserRole(Base):
    """Association table for User-Role many-to-many relationship"""

    __tablename__ = "user_roles"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)


class AuthProvider(Base):
    """Sign-in methods linked to a user (local password or an OAuth identity)"""

    __tablename__ = "auth_providers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(Enum(AuthProviderType), nullable=False)
    provider_id = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    provider_data = Column(JSON, nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    linked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="providers")

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_auth_provider_user_provider"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider.value.lower(),
            "email": self.email,
            "isPrimary": self.is_primary,
            "linkedAt": self.linked_at.isoformat() if self.linked_at else None,
            "lastUsedAt": self.last_used_at.isoformat() if self.last_used_at else None,
        }


class UserSession(Base):
    """A signed-in device. Access tokens carry its session_id as `sid`."""

    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    device_info = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    access_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    remember_me = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    last_activity = Column(DateTime, default=datetime.utcnow, nullable=False)
    invalidated_at = Column(DateTime, nullable=True)
    invalidation_reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")
    refresh_tokens = relationship("RefreshToken", back_populates="session", cascade="all, delete-orphan")

    def to_dict(self, current_session_id: str = None):
        return {
            "sessionId": self.session_id,
            "deviceInfo": self.device_info,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "accessCount": self.access_count,
            "rememberMe": self.remember_me,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastActivity": self.last_activity.isoformat() if self.last_activity else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "isCurrent": self.session_id == current_session_id,
        }


class RefreshToken(Base):
    """Refresh tokens, rotated within a family"""

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), ForeignKey("user_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    token_family = Column(String(36), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("UserSession", back_populates="refresh_tokens")


class AuditLog(Base):
    """Security audit log for auth events"""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(String(50), nullable=False)
    event_details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    status = Column(String(20), default="success")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


DEFAULT_ROLES = {
    RoleName.ADMIN.value: "Full system access",
    RoleName.STAFF.value: "Manages content and support tickets",
    RoleName.SUPPORT.value: "Handles support tickets",
    RoleName.DEVELOPER.value: "Technical staff access",
    RoleName.USER.value: "Regular account",
}


def ensure_default_roles(db: Session):
    """Create default roles if they don't exist"""
    existing = {role.name for role in db.query(Role).all()}
    created = []
    for name, description in DEFAULT_ROLES.items():
        if name not in existing:
            db.add(Role(name=name, description=description))
            created.append(name)
    if created:
        db.flush()
    return created


def get_or_create_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if role is None:
        role = Role(name=name, description=DEFAULT_ROLES.get(name))
        db.add(role)
        db.flush()
    return role
