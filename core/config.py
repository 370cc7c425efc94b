"""
Application configuration read from the environment (.env supported).
"""

import os
from typing import List

import dotenv
from loguru import logger

dotenv.load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime settings. Read once at import; tests may mutate attributes."""

    def __init__(self):
        self.environment = os.getenv("ENVIRONMENT", "development")

        # Database
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./bizsite.db")
        self.db_pool_size = int(os.getenv("DB_POOL_SIZE", "10"))
        self.db_max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "20"))
        self.db_pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1500"))
        self.db_echo = _as_bool(os.getenv("DB_ECHO", "False"))

        # Tokens
        self.jwt_secret = os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            if self.environment == "production":
                raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
            logger.warning("JWT_SECRET not set - using an insecure development secret")
            self.jwt_secret = "dev-only-insecure-secret-change-me-please-0000"
        elif len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        self.bcrypt_rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
        self.jwt_expiry = int(os.getenv("JWT_EXPIRY_SECONDS", "3600"))
        self.refresh_token_expiry_days = int(os.getenv("REFRESH_TOKEN_EXPIRY_DAYS", "7"))
        self.remember_me_expiry_days = int(os.getenv("REMEMBER_ME_EXPIRY_DAYS", "30"))
        self.email_verification_expiry = 24 * 3600
        self.password_reset_expiry = 1 * 3600
        self.two_factor_pending_expiry = 5 * 60
        self.require_email_verification = _as_bool(os.getenv("REQUIRE_EMAIL_VERIFICATION", "true"))
        self.two_factor_issuer = os.getenv("TWO_FACTOR_ISSUER", "Bizsite")

        # HTTP
        self.rate_limit_per_minute = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
        self.cors_origins: List[str] = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
            ).split(",")
            if origin.strip()
        ]

        # Admin
        self.audit_log_retention_days = int(os.getenv("AUDIT_LOG_RETENTION_DAYS", "90"))


settings = Settings()
