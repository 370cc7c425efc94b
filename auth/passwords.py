"""
bcrypt helpers for passwords, reset tokens and 2FA backup codes.
"""

import hashlib

import bcrypt
from loguru import logger

from core.config import settings


def hash_secret(secret: str) -> str:
    """Hash a password-like secret using bcrypt"""
    secret_bytes = secret.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(secret_bytes, salt).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Verify secret against a bcrypt hash"""
    if not secret or not secret_hash:
        return False

    try:
        hash_bytes = secret_hash if isinstance(secret_hash, bytes) else secret_hash.encode("utf-8")
        return bcrypt.checkpw(secret.encode("utf-8")[:72], hash_bytes)
    except ValueError as e:
        logger.error(f"[VERIFY] Malformed hash: {e}")
        return False


def sha256_hex(value: str) -> str:
    """Deterministic digest for high-entropy tokens that must be looked up by value"""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
