"""
Device sessions and refresh-token rotation.

Every login opens a UserSession. Refresh tokens belong to a session and are
rotated inside a token family: a refresh marks the presented token used and
issues a successor. Presenting a token that was already used means it leaked,
so the whole family is revoked and the session closed.
"""

import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from auth.models import RefreshToken, User, UserSession
from auth.passwords import sha256_hex
from core.config import settings
from core.exceptions import AuthenticationError, NotFoundError


class SessionManager:
    """Session lifecycle"""

    def _session_lifetime(self, remember_me: bool) -> timedelta:
        days = settings.remember_me_expiry_days if remember_me else settings.refresh_token_expiry_days
        return timedelta(days=days)

    # ==================== CREATE ====================

    def create_session(
        self,
        db: Session,
        user: User,
        ip_address: str = None,
        user_agent: str = None,
        device_info: str = None,
        remember_me: bool = False,
    ):
        """Open a session and issue its first refresh token. Returns (session, refresh_token)."""
        now = datetime.utcnow()
        session = UserSession(
            session_id=secrets.token_urlsafe(32),
            user_id=user.id,
            device_info=device_info,
            ip_address=ip_address,
            user_agent=user_agent,
            remember_me=remember_me,
            access_count=1,
            expires_at=now + self._session_lifetime(remember_me),
            last_activity=now,
        )
        db.add(session)
        db.flush()

        refresh_token = self.issue_refresh_token(db, session, ip_address=ip_address, user_agent=user_agent)
        logger.info(f"[SESSION] Created session {session.session_id[:8]}... for user {user.id}")
        return session, refresh_token

    def issue_refresh_token(
        self,
        db: Session,
        session: UserSession,
        family: str = None,
        ip_address: str = None,
        user_agent: str = None,
    ) -> str:
        refresh_token = secrets.token_urlsafe(64)
        db.add(RefreshToken(
            session_id=session.id,
            token_hash=sha256_hex(refresh_token),
            token_family=family or str(uuid.uuid4()),
            expires_at=session.expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        ))
        db.flush()
        return refresh_token

    # ==================== ROTATION ====================

    def rotate_refresh_token(
        self,
        db: Session,
        refresh_token: str,
        ip_address: str = None,
        user_agent: str = None,
    ):
        """
        Exchange a refresh token for its successor.

        Returns (user, session, new_refresh_token).
        Raises AuthenticationError on unknown, expired or reused tokens.
        """
        now = datetime.utcnow()
        record = db.query(RefreshToken).filter(
            RefreshToken.token_hash == sha256_hex(refresh_token)
        ).first()

        if record is None:
            logger.warning("[REFRESH] Unknown refresh token")
            raise AuthenticationError("Invalid refresh token")

        session = record.session

        if record.used_at is not None or not record.is_active:
            logger.warning(f"[REFRESH] Reuse detected for family {record.token_family}")
            self._revoke_family(db, record.token_family)
            self.invalidate_session(db, session, "refresh_token_reuse")
            raise AuthenticationError("Refresh token reuse detected")

        if record.expires_at <= now:
            record.is_active = False
            raise AuthenticationError("Refresh token expired")

        if not self._is_usable(session, now):
            raise AuthenticationError("Session expired or revoked")

        user = session.user
        if user is None or user.status.value != "ACTIVE":
            raise AuthenticationError("Account is not active")

        record.used_at = now
        record.is_active = False

        session.last_activity = now
        session.access_count = (session.access_count or 0) + 1
        if ip_address:
            session.ip_address = ip_address

        new_token = self.issue_refresh_token(
            db, session, family=record.token_family, ip_address=ip_address, user_agent=user_agent
        )
        logger.info(f"[REFRESH] Rotated refresh token for user {user.id}")
        return user, session, new_token

    def _revoke_family(self, db: Session, family: str):
        tokens = db.query(RefreshToken).filter(
            RefreshToken.token_family == family,
            RefreshToken.is_active.is_(True),
        ).all()
        for token in tokens:
            token.is_active = False
        db.flush()

    # ==================== LOOKUP ====================

    @staticmethod
    def _is_usable(session: Optional[UserSession], now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return session is not None and session.is_active and session.expires_at > now

    def get_active_session(self, db: Session, session_id: str) -> Optional[UserSession]:
        session = db.query(UserSession).filter(UserSession.session_id == session_id).first()
        return session if self._is_usable(session) else None

    def touch(self, session: UserSession):
        session.last_activity = datetime.utcnow()
        session.access_count = (session.access_count or 0) + 1

    def list_active_sessions(self, db: Session, user_id: str) -> List[UserSession]:
        return db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.is_active.is_(True),
            UserSession.expires_at > datetime.utcnow(),
        ).order_by(UserSession.last_activity.desc()).all()

    # ==================== INVALIDATION ====================

    def invalidate_session(self, db: Session, session: UserSession, reason: str):
        if session is None:
            return
        session.is_active = False
        session.invalidated_at = datetime.utcnow()
        session.invalidation_reason = reason
        for token in session.refresh_tokens:
            token.is_active = False
        db.flush()
        logger.info(f"[SESSION] Invalidated session {session.session_id[:8]}... ({reason})")

    def revoke_user_session(self, db: Session, user_id: str, session_id: str, reason: str = "user_revoked"):
        session = db.query(UserSession).filter(
            UserSession.session_id == session_id,
            UserSession.user_id == user_id,
            UserSession.is_active.is_(True),
        ).first()
        if session is None:
            raise NotFoundError("Session not found")
        self.invalidate_session(db, session, reason)
        return session

    def invalidate_all_sessions(
        self,
        db: Session,
        user_id: str,
        reason: str,
        except_session_id: str = None,
    ) -> int:
        query = db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.is_active.is_(True),
        )
        if except_session_id:
            query = query.filter(UserSession.session_id != except_session_id)

        sessions = query.all()
        for session in sessions:
            self.invalidate_session(db, session, reason)
        logger.info(f"[SESSION] Invalidated {len(sessions)} sessions for user {user_id} ({reason})")
        return len(sessions)


# Global instance
session_manager = SessionManager()
