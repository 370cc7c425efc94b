"""
Security middleware for FastAPI:
- Security headers (CSP, HSTS, X-Frame-Options, etc.)
- Token blacklist checking
- Security logging for auth and admin paths
- Per-IP rate limiting on auth endpoints
- Request audit logging
"""

from datetime import datetime

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from auth.cache_manager import cache_manager


def _bearer(request: Request):
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):].strip()
    return None


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.
    """

    CSP = (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        "style-src 'self' 'unsafe-inline'; "
        "frame-ancestors 'none'; "
        "base-uri 'self'; "
        "form-action 'self';"
    )

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Content-Security-Policy"] = self.CSP
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=(), payment=()"

        return response


class TokenBlacklistMiddleware(BaseHTTPMiddleware):
    """Reject requests carrying a revoked access token"""

    async def dispatch(self, request: Request, call_next):
        token = _bearer(request)
        if token and cache_manager.is_token_blacklisted(token):
            return JSONResponse(status_code=401, content={"detail": "Token has been revoked"})

        return await call_next(request)


class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """Log security-relevant events"""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path.startswith("/auth"):
            logger.info(
                f"Auth request: {request.method} {path} "
                f"from {_client_ip(request)} - {request.headers.get('user-agent', 'unknown')}"
            )

        if path.startswith("/admin"):
            logger.warning(f"Admin endpoint access: {request.method} {path} from {_client_ip(request)}")

        return await call_next(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP rate limiting middleware.
    Prevents brute force attacks on auth endpoints.
    """

    def __init__(self, app, requests_per_minute: int = 60):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/auth"):
            return await call_next(request)

        client_ip = _client_ip(request)
        count, reset_at = cache_manager.hit(f"rate_limit_ip:{client_ip}", window_seconds=60)
        reset = str(int(reset_at.timestamp()))

        if count > self.requests_per_minute:
            logger.warning(f"Rate limit exceeded for IP {client_ip}")
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={"X-RateLimit-Limit": str(self.requests_per_minute), "X-RateLimit-Reset": reset},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(self.requests_per_minute - count, 0))
        response.headers["X-RateLimit-Reset"] = reset
        return response


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/response audit trail in the process log.
    """

    async def dispatch(self, request: Request, call_next):
        from auth.auth_manager import auth_manager

        token = _bearer(request)
        payload = auth_manager.verify_token(token) if token else None
        user_id = payload.get("sub") if payload else None

        logger.info(
            f"Request: {request.method} {request.url.path} | "
            f"User: {user_id} | IP: {_client_ip(request)} | "
            f"Time: {datetime.utcnow().isoformat()}"
        )

        response = await call_next(request)

        logger.info(
            f"Response: {response.status_code} for {request.method} {request.url.path} | "
            f"User: {user_id}"
        )
        return response
