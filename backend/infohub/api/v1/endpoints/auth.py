from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Any, Dict, Optional
import secrets

from infohub.core.config import settings
from infohub.core.database import get_db
from infohub.core.exceptions import AccountPendingError
from infohub.core.logging_config import logger, set_user_id
from infohub.core.rate_limiter import auth_rate_limit, strict_rate_limit
from infohub.core.rbac import get_user_permissions
from infohub.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from infohub.models.user import ApprovalStatus, User
from infohub.modules.auth.dependencies import get_current_user, get_optional_user
from infohub.modules.oauth.google_provider import google_oauth
from infohub.schemas.auth import (
    ForgotPasswordRequest,
    GoogleIdTokenRequest,
    OAuthCallbackRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    UpgradeRequestCreate,
    UserLogin,
    UserRegister,
)
from infohub.services import user_service

router = APIRouter()

RESET_REQUESTED_MESSAGE = "If an account exists for that email, a reset link has been sent"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _issue_tokens(user: User) -> Dict[str, str]:
    token_data = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
    }
    return {
        "accessToken": create_access_token(token_data),
        "refreshToken": create_refresh_token(token_data),
        "tokenType": "bearer",
    }


def _set_auth_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.is_production(),
        samesite="lax",
        path="/",
    )


def _ensure_can_sign_in(user: User, event: str, client_ip: str) -> None:
    if user.is_active:
        return
    reason = "Account pending approval" if user.approval_status == ApprovalStatus.PENDING else "Account inactive"
    logger.log_auth_event(event=event, success=False, user_email=user.email, reason=reason, client_ip=client_ip)
    if user.approval_status == ApprovalStatus.PENDING:
        raise AccountPendingError()
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Account has been rejected" if user.approval_status == ApprovalStatus.REJECTED
        else "Account is inactive",
    )


def _login_payload(user: User, response: Response) -> Dict[str, Any]:
    tokens = _issue_tokens(user)
    _set_auth_cookie(response, tokens["accessToken"])
    set_user_id(str(user.id))
    return {"success": True, **tokens, "user": user_service.serialize_user(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
@auth_rate_limit()
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Self-service sign up. The account stays inactive until an admin approves it."""
    user = await user_service.register_user(
        db,
        email=user_data.email,
        password=user_data.password,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        phone=user_data.phone,
    )
    logger.log_auth_event(event="register", success=True, user_email=user.email, client_ip=_client_ip(request))
    return {
        "success": True,
        "message": "Registration received. An administrator will review your account.",
        "user": user_service.serialize_user(user),
    }


@router.post("/login")
@auth_rate_limit()
async def login(
    request: Request,
    response: Response,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user (rate limited: 5/min)"""
    client_ip = _client_ip(request)
    user = await user_service.get_user_by_email(db, credentials.email)

    if not user or not user.hashed_password or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    _ensure_can_sign_in(user, "login", client_ip)

    user.last_login = datetime.utcnow()
    await db.commit()

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )
    return _login_payload(user, response)


@router.post("/logout")
async def logout(
    response: Response,
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Clear the auth cookie. Bearer tokens are stateless and simply expire."""
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    if current_user:
        logger.log_auth_event(event="logout", success=True, user_email=current_user.email)
    return {"success": True, "message": "Successfully logged out"}


@router.get("/me")
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user info"""
    return {
        "success": True,
        "user": user_service.serialize_user(current_user),
        "permissions": sorted(p.value for p in get_user_permissions(current_user)),
    }


@router.post("/refresh")
async def refresh_token(
    token_request: RefreshTokenRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Trade a refresh token for a new token pair"""
    payload = decode_token(token_request.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user = await db.get(User, str(payload.get("sub")))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    _ensure_can_sign_in(user, "refresh", _client_ip(request))
    return _login_payload(user, response)


@router.post("/forgot-password")
@strict_rate_limit()
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """Email a reset link. The response is identical whether or not the address exists."""
    token = await user_service.request_password_reset(db, body.email)
    logger.log_auth_event(
        event="password_reset_requested",
        success=token is not None,
        user_email=body.email,
        client_ip=_client_ip(request),
    )
    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password")
@strict_rate_limit()
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    try:
        payload = decode_token(body.token)
    except HTTPException:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )
    if payload.get("type") != "password_reset" or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user = await user_service.reset_password(db, payload["sub"], body.token, body.new_password)
    logger.log_auth_event(
        event="password_reset",
        success=True,
        user_email=user.email,
        client_ip=_client_ip(request),
    )
    return {"success": True, "message": "Password has been reset. You can now sign in."}


@router.get("/providers")
async def get_providers():
    """Sign-in methods the login page should offer"""
    return {
        "success": True,
        "providers": {
            "credentials": True,
            "google": google_oauth.is_configured,
        },
    }


# ============================================
# Google OAuth
# ============================================

def _require_google() -> None:
    if not google_oauth.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth is not configured"
        )


async def _complete_google_login(
    db: AsyncSession,
    profile: Optional[Dict[str, Any]],
    response: Response,
    client_ip: str,
    event: str,
) -> Dict[str, Any]:
    if not profile:
        logger.log_auth_event(event=event, success=False, reason="Google authentication failed", client_ip=client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Failed to authenticate with Google"
        )
    if not profile.get("email"):
        logger.log_auth_event(event=event, success=False, reason="Email not provided by Google", client_ip=client_ip)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not provided by Google"
        )

    user, is_new_user = await user_service.get_or_create_oauth_user(db, profile)
    if not user.is_active and user.approval_status == ApprovalStatus.PENDING:
        logger.log_auth_event(event=event, success=False, user_email=user.email,
                              reason="Account pending approval", client_ip=client_ip, is_new_user=is_new_user)
        return {
            "success": True,
            "pending": True,
            "isNewUser": is_new_user,
            "message": "Your account is awaiting administrator approval",
        }

    _ensure_can_sign_in(user, event, client_ip)
    logger.log_auth_event(event=event, success=True, user_email=user.email,
                          client_ip=client_ip, is_new_user=is_new_user)
    return {**_login_payload(user, response), "pending": False, "isNewUser": is_new_user}


@router.get("/google/url")
async def get_google_auth_url():
    """Get Google OAuth authorization URL."""
    _require_google()
    state = secrets.token_urlsafe(32)
    return {
        "success": True,
        "authorizationUrl": google_oauth.get_authorization_url(state=state),
        "state": state,
    }


@router.post("/google/callback")
async def google_oauth_callback(
    oauth_request: OAuthCallbackRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Handle Google OAuth callback with authorization code."""
    _require_google()
    profile = await google_oauth.authenticate(oauth_request.code)
    return await _complete_google_login(db, profile, response, _client_ip(request), "google_oauth")


@router.post("/google/token")
async def google_id_token_login(
    body: GoogleIdTokenRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Sign in with the credential returned by the Google Sign-In button."""
    _require_google()
    profile = google_oauth.verify_id_token(body.credential)
    return await _complete_google_login(db, profile, response, _client_ip(request), "google_id_token")


# ============================================
# Role upgrade requests
# ============================================

@router.post("/upgrade-request", status_code=status.HTTP_201_CREATED)
async def request_role_upgrade(
    body: UpgradeRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Ask an administrator for a more privileged role"""
    upgrade = await user_service.create_upgrade_request(db, current_user, body.requested_role, body.reason)
    return {"success": True, "data": user_service.serialize_upgrade_request(upgrade, current_user)}
