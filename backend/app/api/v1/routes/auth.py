# app/api/v1/routes/auth.py
import logging

from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_auth_service, get_current_user, get_request_context
from app.core.rate_limit import limiter
from app.core.schemas.auth import (
    AuthResponse,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshTokenRequest,
    TokenRequest,
    UserCreate,
    UserLogin,
    UserResponse,
)
from app.models.user import User
from app.services.audit import RequestContext
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register_user(
    request: Request,
    user_create: UserCreate,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    """Register a new account and open a session"""
    logger.info(f"Registration attempt from IP: {context.ip_address} for email: {user_create.email}")
    user, tokens = await auth_service.register_user(user_create, context)
    logger.info(f"Successful registration for user ID: {user.id}")
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    credentials: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    logger.info(f"Login attempt from IP: {context.ip_address} for email: {credentials.email}")
    user, tokens = await auth_service.authenticate_user(credentials.email, credentials.password, context)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit("20/hour")
async def refresh_session(
    request: Request,
    refresh_request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    """Exchange a refresh token for a new access/refresh pair"""
    user, tokens = await auth_service.refresh_tokens_for(refresh_request.refresh_token, context)
    return AuthResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    refresh_request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    await auth_service.logout(refresh_request.refresh_token, context)
    return MessageResponse(message="Logged out successfully")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    token_request: TokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    user, already_verified = await auth_service.verify_email(token_request.token, context)
    message = "Email already verified" if already_verified else "Email verified successfully"
    return MessageResponse(message=message, user=UserResponse.model_validate(user))


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("5/minute")
async def forgot_password(
    request: Request,
    reset_request: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    await auth_service.request_password_reset(reset_request.email, reset_request.language, context)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    reset_confirm: PasswordResetConfirm,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
):
    await auth_service.reset_password(reset_confirm.token, reset_confirm.password, context)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Information about the current user"""
    return current_user
