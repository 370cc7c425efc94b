# FastAPI entrypoint with all routes and middleware

import faulthandler
import uuid

import dotenv
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from loguru import logger
from starlette.middleware.gzip import GZipMiddleware

from admin.admin_routes import routers as admin_routers
from auth.auth_routes import router as auth_router
from auth.models import ensure_default_roles
from auth.security_middleware import (
    AuditLoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    SecurityLoggingMiddleware,
    TokenBlacklistMiddleware,
)
from blog_posts.blog_routes import public_router as public_blog_router
from blog_posts.blog_routes import router as blog_router
from contact_messages.contact_routes import router as contact_router
from core.config import settings
from core.database import DatabaseManager
from newsletter.newsletter_routes import router as newsletter_router
from projects.project_routes import public_router as public_project_router
from projects.project_routes import router as project_router
from support_tickets.ticket_routes import router as ticket_router

dotenv.load_dotenv()
faulthandler.enable()

app = FastAPI(
    title="Bizsite API",
    description="Accounts, support tickets and site content for a business website",
    version="1.0.0"
)

# ==================== SECURITY MIDDLEWARE STACK ====================

app.add_middleware(AuditLoggingMiddleware)
app.add_middleware(SecurityLoggingMiddleware)
app.add_middleware(TokenBlacklistMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.rate_limit_per_minute)
app.add_middleware(SecurityHeadersMiddleware)

# ==================== CORS MIDDLEWARE ====================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Accept-Language",
        "Accept-Encoding",
        "Origin",
    ],
    expose_headers=[
        "Content-Disposition",
        "Content-Type",
        "Content-Length",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
    ],
    max_age=86400,
)

# ==================== GLOBAL ERROR HANDLER ====================


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.opt(exception=exc).error(
        f"[UNHANDLED] {error_id} {request.method} {request.url.path}: {type(exc).__name__}: {exc}"
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )

# ==================== BASE ROUTER ====================

router = APIRouter(prefix="/api/base", tags=["base"])


@router.get("/")
async def base_root():
    """API information and the registered routes."""
    routes = [
        {
            "path": route.path,
            "name": route.name,
            "methods": sorted(route.methods - {"HEAD", "OPTIONS"})
        }
        for route in app.routes
        if isinstance(route, APIRoute)
    ]

    return {
        "message": "Bizsite API",
        "version": app.version,
        "security_features": [
            "Email verification",
            "Password reset with tokens",
            "Refresh token rotation with reuse detection",
            "Two-factor authentication (TOTP)",
            "Role-based access control",
            "Security headers",
            "Token blacklisting",
            "Audit logging",
            "Rate limiting",
        ],
        "routes": routes
    }


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status."""
    healthy = DatabaseManager.health_check()
    return {
        "status": "healthy" if healthy else "unhealthy",
        "components": {"database": "up" if healthy else "down"},
    }

# ==================== ROUTER REGISTRATION ====================

app.include_router(router)                  # /api/base
app.include_router(auth_router)             # /auth
app.include_router(ticket_router)           # /support-tickets
app.include_router(blog_router)             # /blog-posts
app.include_router(public_blog_router)      # /public/blog-posts
app.include_router(project_router)          # /projects
app.include_router(public_project_router)   # /public/projects
app.include_router(contact_router)          # /contact-messages
app.include_router(newsletter_router)       # /newsletter
for admin_router in admin_routers:          # /admin/...
    app.include_router(admin_router)


@app.get("/")
async def root():
    return {
        "message": "Bizsite Backend",
        "status": "running",
        "docs_url": "/docs",
        "api_base": "/api"
    }

# ==================== STARTUP EVENTS ====================


@app.on_event("startup")
async def startup_event():
    """Create tables and seed the default roles."""
    logger.info("Initializing database...")
    DatabaseManager.initialize()

    session = DatabaseManager.session_factory()()
    try:
        ensure_default_roles(session)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Seeding default roles failed: {e}")
        raise
    finally:
        session.close()
    logger.info("✓ Database ready")


def main():
    import uvicorn
    uvicorn.run("apps.api.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
