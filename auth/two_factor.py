"""
TOTP two-factor authentication with single-use backup codes.
"""

import secrets
from typing import List

import pyotp
from loguru import logger
from sqlalchemy.orm import Session

from auth.models import User
from auth.passwords import hash_secret, verify_secret
from core.config import settings
from core.exceptions import AuthenticationError, ValidationError

BACKUP_CODE_COUNT = 10


class TwoFactorManager:
    """2FA setup, verification and backup codes"""

    def _generate_backup_codes(self, user: User) -> List[str]:
        codes = [secrets.token_hex(4).upper() for _ in range(BACKUP_CODE_COUNT)]
        user.backup_codes = [hash_secret(code) for code in codes]
        return codes

    def setup(self, db: Session, user: User) -> dict:
        """Create a fresh secret. 2FA stays off until enable() confirms a code."""
        if user.is_two_factor_enabled:
            raise ValidationError("Two-factor authentication is already enabled")

        secret = pyotp.random_base32()
        user.two_factor_secret = secret
        db.flush()

        uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email, issuer_name=settings.two_factor_issuer
        )
        logger.info(f"[2FA_SETUP] Secret generated for user {user.id}")
        return {"secret": secret, "provisioningUri": uri}

    def enable(self, db: Session, user: User, code: str) -> List[str]:
        if user.is_two_factor_enabled:
            raise ValidationError("Two-factor authentication is already enabled")
        if not user.two_factor_secret:
            raise ValidationError("Two-factor authentication has not been set up")
        if not pyotp.TOTP(user.two_factor_secret).verify(code, valid_window=1):
            logger.warning(f"[2FA_ENABLE] Invalid code for user {user.id}")
            raise ValidationError("Invalid verification code")

        user.is_two_factor_enabled = True
        codes = self._generate_backup_codes(user)
        db.flush()
        logger.info(f"[2FA_ENABLE] Enabled for user {user.id}")
        return codes

    def disable(self, db: Session, user: User, code: str = None, password: str = None):
        if not user.is_two_factor_enabled:
            raise ValidationError("Two-factor authentication is not enabled")

        confirmed = False
        if code:
            confirmed = self.verify_code(db, user, code)
        elif password:
            confirmed = verify_secret(password, user.password_hash)

        if not confirmed:
            logger.warning(f"[2FA_DISABLE] Confirmation failed for user {user.id}")
            raise AuthenticationError("Invalid verification code or password")

        user.is_two_factor_enabled = False
        user.two_factor_secret = None
        user.backup_codes = []
        db.flush()
        logger.info(f"[2FA_DISABLE] Disabled for user {user.id}")

    def verify_code(self, db: Session, user: User, code: str) -> bool:
        """Accept a current TOTP code, or consume a matching backup code."""
        if not user.two_factor_secret or not code:
            return False

        code = code.strip().replace(" ", "")
        if code.isdigit() and len(code) == 6:
            return pyotp.TOTP(user.two_factor_secret).verify(code, valid_window=1)

        remaining = list(user.backup_codes or [])
        for index, code_hash in enumerate(remaining):
            if verify_secret(code.upper(), code_hash):
                remaining.pop(index)
                user.backup_codes = remaining
                db.flush()
                logger.info(f"[2FA_VERIFY] Backup code used by user {user.id}, {len(remaining)} left")
                return True
        return False

    def regenerate_backup_codes(self, db: Session, user: User, code: str) -> List[str]:
        if not user.is_two_factor_enabled:
            raise ValidationError("Two-factor authentication is not enabled")
        if not pyotp.TOTP(user.two_factor_secret).verify(code, valid_window=1):
            raise ValidationError("Invalid verification code")

        codes = self._generate_backup_codes(user)
        db.flush()
        logger.info(f"[2FA_BACKUP] Backup codes regenerated for user {user.id}")
        return codes


# Global instance
two_factor_manager = TwoFactorManager()
