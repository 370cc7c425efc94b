"""
FastAPI authentication endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from auth.auth_manager import MIN_PASSWORD_LENGTH, auth_manager
from auth.models import User
from auth.providers import (
    get_supported_providers, list_linked_providers, unlink_provider
)
from auth.rbac_dependencies import (
    get_bearer_token, get_current_db_user, get_current_user, verify_jwt_token
)
from auth.session_manager import session_manager
from auth.two_factor import two_factor_manager
from core.database import DatabaseManager
from core.exceptions import ServiceError

router = APIRouter(prefix="/auth", tags=["auth"])

# ==================== REQUEST MODELS ====================


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    name: Optional[str] = Field(None, max_length=255)

    @field_validator("name")
    def strip_name(cls, v):
        return v.strip() if v else v


class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool = False
    device_info: Optional[str] = Field(None, max_length=255)


class TwoFactorLoginRequest(BaseModel):
    two_factor_token: str
    code: str = Field(..., min_length=6, max_length=16)


class VerifyEmailRequest(BaseModel):
    token: str


class RequestPasswordResetRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    reset_token: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class TwoFactorCodeRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=16)


class TwoFactorDisableRequest(BaseModel):
    code: Optional[str] = None
    password: Optional[str] = None

# ==================== HELPER FUNCTIONS ====================


def get_client_ip(request: Request) -> str:
    """Extract client IP from request"""
    if request.client:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    """Extract User-Agent from request"""
    return request.headers.get("user-agent", "unknown")


def _raise_on_error(result: dict, default_status: int = 400):
    if "error" in result:
        raise HTTPException(status_code=result.get("status_code", default_status), detail=result["error"])

# ==================== REGISTRATION & EMAIL ====================


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, request: Request,
                   db: Session = Depends(DatabaseManager.get_session)):
    """Register new user. Email must be verified before login when verification is required."""
    try:
        result = auth_manager.register(
            db,
            email=data.email,
            password=data.password,
            name=data.name,
            ip_address=get_client_ip(request),
        )
        _raise_on_error(result)

        return {
            "success": True,
            "message": "Registration successful. Please check your email to verify your account.",
            "user": result["user"],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")


@router.post("/verify-email")
async def verify_email(data: VerifyEmailRequest, db: Session = Depends(DatabaseManager.get_session)):
    """Verify email address using token from email."""
    result = auth_manager.verify_email(db, data.token)
    _raise_on_error(result)
    return {"success": True, "message": "Email verified successfully", "email": result["email"]}

# ==================== LOGIN & LOGOUT ====================


@router.post("/login")
async def login(data: LoginRequest, request: Request,
                db: Session = Depends(DatabaseManager.get_session)):
    """
    Login user and return access + refresh tokens.

    Accounts with 2FA get a short-lived `two_factor_token` instead, to be
    exchanged at /auth/2fa/verify-login.
    """
    try:
        result = auth_manager.login(
            db,
            email=data.email,
            password=data.password,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            device_info=data.device_info,
            remember_me=data.remember_me,
        )
        _raise_on_error(result, default_status=401)
        return result
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.post("/2fa/verify-login")
async def verify_two_factor_login(data: TwoFactorLoginRequest, request: Request,
                                  db: Session = Depends(DatabaseManager.get_session)):
    result = auth_manager.complete_two_factor_login(
        db,
        data.two_factor_token,
        data.code,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    _raise_on_error(result, default_status=401)
    return result


@router.post("/refresh-token")
async def refresh_token(data: RefreshTokenRequest, request: Request,
                        db: Session = Depends(DatabaseManager.get_session)):
    """
    Exchange a refresh token for a new access token and a rotated refresh token.
    The presented refresh token cannot be used again.
    """
    try:
        result = auth_manager.refresh_access_token(
            db,
            data.refresh_token,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
        _raise_on_error(result, default_status=401)
        return result
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Token refresh error {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Token refresh failed")


@router.post("/logout")
async def logout(request: Request,
                 token: str = Depends(get_bearer_token),
                 payload: dict = Depends(verify_jwt_token),
                 db: Session = Depends(DatabaseManager.get_session)):
    """Close the current session and revoke the access token."""
    return auth_manager.logout(db, token, payload, ip_address=get_client_ip(request))

# ==================== PASSWORD RESET ====================


@router.post("/request-password-reset")
async def request_password_reset(data: RequestPasswordResetRequest, request: Request,
                                 db: Session = Depends(DatabaseManager.get_session)):
    """
    Request password reset. Does not reveal if email exists.
    """
    try:
        auth_manager.request_password_reset(db, data.email, ip_address=get_client_ip(request))
        return {"success": True, "message": "If email exists, password reset link has been sent"}
    except Exception as e:
        logger.error(f"Request password reset error: {e}")
        raise HTTPException(status_code=500, detail="Password reset request failed")


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, request: Request,
                         db: Session = Depends(DatabaseManager.get_session)):
    """
    Reset password using token from email. Invalidates all existing sessions.
    """
    result = auth_manager.reset_password(
        db, data.email, data.reset_token, data.new_password, ip_address=get_client_ip(request)
    )
    _raise_on_error(result)
    return {"success": True, "message": "Password reset successfully. Please login with your new password."}


@router.post("/change-password")
async def change_password(data: ChangePasswordRequest,
                          current_user: dict = Depends(get_current_user),
                          user: User = Depends(get_current_db_user),
                          db: Session = Depends(DatabaseManager.get_session)):
    result = auth_manager.change_password(
        db, user, data.current_password, data.new_password, current_session_id=current_user["sid"]
    )
    _raise_on_error(result)
    return result

# ==================== PROFILE & SESSIONS ====================


@router.get("/me")
async def me(user: User = Depends(get_current_db_user)):
    profile = user.to_dict()
    profile["provider"] = user.primary_provider
    profile["lastLoginAt"] = user.last_login_at.isoformat() if user.last_login_at else None
    return {"success": True, "user": profile}


@router.get("/sessions")
async def list_sessions(current_user: dict = Depends(get_current_user),
                        db: Session = Depends(DatabaseManager.get_session)):
    sessions = session_manager.list_active_sessions(db, current_user["id"])
    return {
        "success": True,
        "sessions": [s.to_dict(current_session_id=current_user["sid"]) for s in sessions],
    }


@router.delete("/sessions/{session_id}")
async def revoke_session(session_id: str,
                         current_user: dict = Depends(get_current_user),
                         db: Session = Depends(DatabaseManager.get_session)):
    try:
        session_manager.revoke_user_session(db, current_user["id"], session_id)
    except ServiceError as e:
        raise e.to_http_exception()
    return {"success": True, "message": "Session revoked"}


@router.post("/sessions/revoke-others")
async def revoke_other_sessions(current_user: dict = Depends(get_current_user),
                                db: Session = Depends(DatabaseManager.get_session)):
    count = session_manager.invalidate_all_sessions(
        db, current_user["id"], "user_revoked_others", except_session_id=current_user["sid"]
    )
    return {"success": True, "message": f"Revoked {count} other sessions", "revoked": count}

# ==================== TWO-FACTOR ====================


@router.post("/2fa/setup")
async def setup_two_factor(user: User = Depends(get_current_db_user),
                           db: Session = Depends(DatabaseManager.get_session)):
    try:
        return {"success": True, **two_factor_manager.setup(db, user)}
    except ServiceError as e:
        raise e.to_http_exception()


@router.post("/2fa/enable")
async def enable_two_factor(data: TwoFactorCodeRequest,
                            user: User = Depends(get_current_db_user),
                            db: Session = Depends(DatabaseManager.get_session)):
    try:
        codes = two_factor_manager.enable(db, user, data.code)
    except ServiceError as e:
        raise e.to_http_exception()

    auth_manager.log_audit_event(db, user.id, "2fa_enabled")
    return {
        "success": True,
        "message": "Two-factor authentication enabled. Store these backup codes safely.",
        "backupCodes": codes,
    }


@router.post("/2fa/disable")
async def disable_two_factor(data: TwoFactorDisableRequest,
                             user: User = Depends(get_current_db_user),
                             db: Session = Depends(DatabaseManager.get_session)):
    if not data.code and not data.password:
        raise HTTPException(status_code=400, detail="Verification code or password required")

    try:
        two_factor_manager.disable(db, user, code=data.code, password=data.password)
    except ServiceError as e:
        raise e.to_http_exception()

    auth_manager.log_audit_event(db, user.id, "2fa_disabled")
    return {"success": True, "message": "Two-factor authentication disabled"}


@router.post("/2fa/backup-codes")
async def regenerate_backup_codes(data: TwoFactorCodeRequest,
                                  user: User = Depends(get_current_db_user),
                                  db: Session = Depends(DatabaseManager.get_session)):
    try:
        codes = two_factor_manager.regenerate_backup_codes(db, user, data.code)
    except ServiceError as e:
        raise e.to_http_exception()

    auth_manager.log_audit_event(db, user.id, "2fa_backup_codes_regenerated")
    return {"success": True, "backupCodes": codes}

# ==================== PROVIDERS ====================


@router.get("/providers/supported")
async def supported_providers():
    return {"success": True, "providers": get_supported_providers()}


@router.get("/providers")
async def linked_providers(user: User = Depends(get_current_db_user)):
    return {"success": True, "providers": list_linked_providers(user)}


@router.delete("/providers/{provider}")
async def unlink(provider: str,
                 user: User = Depends(get_current_db_user),
                 db: Session = Depends(DatabaseManager.get_session)):
    try:
        unlinked = unlink_provider(db, user, provider)
    except ServiceError as e:
        raise e.to_http_exception()

    auth_manager.log_audit_event(db, user.id, "provider_unlinked", {"provider": unlinked.value})
    return {"success": True, "message": f"{unlinked.value.lower()} unlinked"}
