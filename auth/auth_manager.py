"""
Authentication manager: registration, login (with 2FA), token refresh,
password reset and audit events.

Methods return `{"success": True, ...}` or `{"error": "..."}` and leave the
HTTP mapping to the routes. State that must survive a rejected request
(failed-login audit rows, refresh-token reuse revocation) is committed
before the error is returned.
"""

import secrets
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlalchemy.orm import Session

from auth.cache_manager import cache_manager
from auth.models import (
    AuditLog, AuthProvider, AuthProviderType, User, UserStatus, get_or_create_role
)
from auth.passwords import hash_secret, verify_secret
from auth.session_manager import session_manager
from auth.two_factor import two_factor_manager
from core.config import settings
from core.exceptions import ServiceError
from core.permissions import UserRole

ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8


class AuthManager:
    """Authentication manager"""

    def __init__(self):
        self.jwt_secret = settings.jwt_secret
        self.jwt_expiry = settings.jwt_expiry
        self.email_verification_expiry = settings.email_verification_expiry
        self.password_reset_expiry = settings.password_reset_expiry
        self.two_factor_pending_expiry = settings.two_factor_pending_expiry
        logger.info("AuthManager initialized")

    # ==================== TOKENS ====================

    def _encode(self, claims: dict, lifetime: int) -> str:
        now = datetime.utcnow()
        payload = dict(claims, iat=now, exp=now + timedelta(seconds=lifetime))
        return jwt.encode(payload, self.jwt_secret, algorithm=ALGORITHM)

    def create_access_token(self, user: User, session_id: str) -> str:
        return self._encode(
            {
                "sub": user.id,
                "email": user.email,
                "roles": user.role_names,
                "sid": session_id,
                "type": "access",
            },
            self.jwt_expiry,
        )

    def verify_token(self, token: str, expected_type: str = "access") -> dict:
        """Verify JWT token and return payload, or None"""
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

        if expected_type and payload.get("type") != expected_type:
            logger.warning(f"[TOKEN_VERIFY] Unexpected token type: {payload.get('type')}")
            return None
        return payload

    def _token_response(self, user: User, session, refresh_token: str) -> dict:
        return {
            "success": True,
            "access_token": self.create_access_token(user, session.session_id),
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": self.jwt_expiry,
            "session_id": session.session_id,
            "user": user.to_dict(),
        }

    # ==================== REGISTRATION ====================

    def register(self, db: Session, email: str, password: str, name: str = None,
                 ip_address: str = None) -> dict:
        """Register a local account with the `user` role"""
        email = email.strip().lower()
        logger.info(f"[REGISTER] Starting registration for email: {email}")

        if db.query(User).filter(User.email == email).first():
            logger.warning(f"[REGISTER] Email already exists: {email}")
            return {"error": "Email already registered"}

        if len(password) < MIN_PASSWORD_LENGTH:
            logger.warning(f"[REGISTER] Password too short for email: {email}")
            return {"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}

        user = User(
            email=email,
            name=name,
            password_hash=hash_secret(password),
            status=UserStatus.ACTIVE,
            backup_codes=[],
        )
        user.roles.append(get_or_create_role(db, UserRole.USER.value))
        db.add(user)
        db.flush()

        db.add(AuthProvider(
            user_id=user.id,
            provider=AuthProviderType.LOCAL,
            provider_id=user.id,
            email=email,
            is_primary=True,
        ))
        user.verification_token = self.generate_email_verification_token(user.id)
        db.flush()

        self.log_audit_event(db, user.id, "register", {"email": email}, ip_address=ip_address)
        logger.info(f"[REGISTER] User registered successfully: {email}")
        return {
            "success": True,
            "user_id": user.id,
            "user": user.to_dict(),
            "verification_token": user.verification_token,
        }

    # ==================== EMAIL VERIFICATION ====================

    def generate_email_verification_token(self, user_id: str) -> str:
        """Generate JWT-based email verification token"""
        return self._encode({"sub": user_id, "type": "email_verify"}, self.email_verification_expiry)

    def verify_email(self, db: Session, token: str) -> dict:
        """Verify email using token"""
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.warning("[EMAIL_VERIFY] Email verification link expired")
            return {"error": "Email verification link expired"}
        except jwt.InvalidTokenError as e:
            logger.warning(f"[EMAIL_VERIFY] Invalid email verification token: {e}")
            return {"error": "Invalid email verification token"}

        if payload.get("type") != "email_verify":
            logger.warning(f"[EMAIL_VERIFY] Invalid token type: {payload.get('type')}")
            return {"error": "Invalid token type"}

        user = db.query(User).filter(User.id == payload.get("sub")).first()
        if not user:
            logger.warning(f"[EMAIL_VERIFY] User not found: {payload.get('sub')}")
            return {"error": "User not found"}

        if not user.is_email_verified:
            user.is_email_verified = True
            user.email_verified_at = datetime.utcnow()
            user.verification_token = None
            self.log_audit_event(db, user.id, "email_verified", {"email": user.email})
            logger.info(f"[EMAIL_VERIFY] Email verified for user: {user.email}")

        return {"success": True, "email": user.email}

    # ==================== LOGIN ====================

    def login(self, db: Session, email: str, password: str, ip_address: str = None,
              user_agent: str = None, device_info: str = None, remember_me: bool = False) -> dict:
        """Check credentials; returns tokens, or a pending 2FA token"""
        email = email.strip().lower()
        logger.info(f"[LOGIN] Starting login for email: {email}")

        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_secret(password, user.password_hash):
            logger.warning(f"[LOGIN] Invalid credentials for: {email}")
            self.log_audit_event(db, user.id if user else None, "login_failed",
                                 {"email": email}, status="failure",
                                 ip_address=ip_address, user_agent=user_agent)
            db.commit()
            return {"error": "Invalid email or password"}

        status_error = self._status_error(user)
        if status_error:
            logger.warning(f"[LOGIN] {status_error} for: {email}")
            return {"error": status_error, "status_code": 403}

        if settings.require_email_verification and not user.is_email_verified:
            logger.warning(f"[LOGIN] Email not verified for: {email}")
            return {"error": "Email not verified", "status_code": 403}

        if user.is_two_factor_enabled:
            logger.info(f"[LOGIN] Two-factor required for: {email}")
            pending = self._encode(
                {"sub": user.id, "type": "2fa_pending", "remember_me": remember_me},
                self.two_factor_pending_expiry,
            )
            return {"success": True, "requires_two_factor": True, "two_factor_token": pending}

        return self._complete_login(db, user, ip_address, user_agent, device_info, remember_me)

    @staticmethod
    def _status_error(user: User):
        if user.status == UserStatus.SUSPENDED:
            return "Account is suspended"
        if user.status != UserStatus.ACTIVE:
            return "Account is disabled"
        return None

    def _complete_login(self, db: Session, user: User, ip_address, user_agent,
                        device_info, remember_me) -> dict:
        session, refresh_token = session_manager.create_session(
            db, user, ip_address=ip_address, user_agent=user_agent,
            device_info=device_info, remember_me=remember_me,
        )
        now = datetime.utcnow()
        user.last_login_at = now
        for provider in user.providers:
            if provider.provider == AuthProviderType.LOCAL:
                provider.last_used_at = now

        self.log_audit_event(db, user.id, "login_success", {"session_id": session.session_id},
                             ip_address=ip_address, user_agent=user_agent)
        logger.info(f"[LOGIN] User logged in successfully: {user.email}")
        return self._token_response(user, session, refresh_token)

    def complete_two_factor_login(self, db: Session, two_factor_token: str, code: str,
                                  ip_address: str = None, user_agent: str = None,
                                  device_info: str = None) -> dict:
        payload = self.verify_token(two_factor_token, expected_type="2fa_pending")
        if not payload:
            return {"error": "Invalid or expired two-factor token", "status_code": 401}

        user = db.query(User).filter(User.id == payload.get("sub")).first()
        if not user or not user.is_two_factor_enabled:
            return {"error": "Invalid or expired two-factor token", "status_code": 401}

        status_error = self._status_error(user)
        if status_error:
            return {"error": status_error, "status_code": 403}

        if not two_factor_manager.verify_code(db, user, code):
            logger.warning(f"[2FA_LOGIN] Invalid code for user {user.id}")
            self.log_audit_event(db, user.id, "2fa_failed", status="failure",
                                 ip_address=ip_address, user_agent=user_agent)
            db.commit()
            return {"error": "Invalid verification code", "status_code": 401}

        return self._complete_login(db, user, ip_address, user_agent, device_info,
                                    bool(payload.get("remember_me")))

    # ==================== REFRESH TOKEN ROTATION ====================

    def refresh_access_token(self, db: Session, refresh_token: str, ip_address: str = None,
                             user_agent: str = None) -> dict:
        try:
            user, session, new_refresh = session_manager.rotate_refresh_token(
                db, refresh_token, ip_address=ip_address, user_agent=user_agent
            )
        except ServiceError as e:
            # reuse detection revokes the family; keep that even though the request fails
            db.commit()
            logger.warning(f"[REFRESH_TOKEN] Refresh rejected: {e.message}")
            return {"error": e.message, "status_code": e.status_code}

        logger.info(f"[REFRESH_TOKEN] Token refreshed successfully for user: {user.id}")
        return self._token_response(user, session, new_refresh)

    # ==================== LOGOUT ====================

    def logout(self, db: Session, token: str, payload: dict, ip_address: str = None) -> dict:
        session = session_manager.get_active_session(db, payload.get("sid"))
        session_manager.invalidate_session(db, session, "logout")

        remaining = int(payload.get("exp", 0) - datetime.utcnow().timestamp())
        cache_manager.blacklist_token(token, ttl=remaining)

        self.log_audit_event(db, payload.get("sub"), "logout", ip_address=ip_address)
        logger.info(f"[LOGOUT] User {payload.get('sub')} logged out")
        return {"success": True, "message": "Logged out successfully"}

    # ==================== PASSWORD RESET ====================

    def request_password_reset(self, db: Session, email: str, ip_address: str = None) -> dict:
        """
        Store a hashed reset token on the user row.

        The plaintext token is returned for the delivery channel; the route
        never echoes it to the caller, and unknown emails look the same.
        """
        email = email.strip().lower()
        logger.info(f"[PASSWORD_RESET] Password reset requested for email: {email}")

        user = db.query(User).filter(User.email == email).first()
        if not user:
            logger.warning(f"[PASSWORD_RESET] User not found: {email}")
            self.log_audit_event(db, None, "password_reset_requested",
                                 {"email": email, "status": "user_not_found"}, ip_address=ip_address)
            return {"success": True}

        reset_token = secrets.token_urlsafe(32)
        user.reset_token = hash_secret(reset_token)
        user.reset_token_expires = datetime.utcnow() + timedelta(seconds=self.password_reset_expiry)

        self.log_audit_event(db, user.id, "password_reset_requested", {"email": email},
                             ip_address=ip_address)
        return {"success": True, "reset_token": reset_token}

    def reset_password(self, db: Session, email: str, reset_token: str, new_password: str,
                       ip_address: str = None) -> dict:
        """Reset password with token verification"""
        email = email.strip().lower()
        logger.info(f"[RESET_PWD] Password reset initiated for: {email}")

        user = db.query(User).filter(User.email == email).first()
        if (
            not user
            or not user.reset_token
            or not user.reset_token_expires
            or user.reset_token_expires <= datetime.utcnow()
            or not verify_secret(reset_token, user.reset_token)
        ):
            logger.warning(f"[RESET_PWD] Invalid or expired reset token for: {email}")
            if user:
                self.log_audit_event(db, user.id, "password_reset_failed",
                                     {"reason": "invalid_token"}, status="failure",
                                     ip_address=ip_address)
                db.commit()
            return {"error": "Invalid or expired reset token"}

        if len(new_password) < MIN_PASSWORD_LENGTH:
            return {"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}

        user.password_hash = hash_secret(new_password)
        user.reset_token = None
        user.reset_token_expires = None
        session_manager.invalidate_all_sessions(db, user.id, "password_reset")

        self.log_audit_event(db, user.id, "password_reset_success", {"email": user.email},
                             ip_address=ip_address)
        logger.info(f"[RESET_PWD] Password reset successful for: {user.email}")
        return {"success": True, "message": "Password reset successful"}

    def change_password(self, db: Session, user: User, current_password: str,
                        new_password: str, current_session_id: str = None) -> dict:
        if not verify_secret(current_password, user.password_hash):
            logger.warning(f"[CHANGE_PWD] Wrong current password for user {user.id}")
            return {"error": "Current password is incorrect"}

        if len(new_password) < MIN_PASSWORD_LENGTH:
            return {"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}

        user.password_hash = hash_secret(new_password)
        session_manager.invalidate_all_sessions(
            db, user.id, "password_changed", except_session_id=current_session_id
        )
        self.log_audit_event(db, user.id, "password_changed")
        logger.info(f"[CHANGE_PWD] Password changed for user {user.id}")
        return {"success": True, "message": "Password changed successfully"}

    # ==================== AUDIT LOGGING ====================

    def log_audit_event(self, db: Session, user_id: str, event_type: str, event_details: dict = None,
                        status: str = "success", ip_address: str = None, user_agent: str = None):
        """Record a security audit event in the caller's transaction"""
        db.add(AuditLog(
            user_id=user_id,
            event_type=event_type,
            event_details=event_details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            status=status,
        ))
        db.flush()
        logger.info(f"[AUDIT] {event_type} for user {user_id} - {status}")


# Global instance
auth_manager = AuthManager()
