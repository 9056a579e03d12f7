# app/services/auth_service.py
import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SecurityConfig
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    TokenError,
    ValidationError,
)
from app.core.schemas.auth import SessionTokens, UserCreate
from app.core.security import (
    TokenService,
    create_timed_token,
    get_password_hash,
    hash_token,
    verify_password,
)
from app.core.utils import ensure_aware, utc_now
from app.models.user import User
from app.repositories.refresh_token_repository import RefreshTokenRepository
from app.repositories.user_repository import UserRepository
from app.services.audit import AuditLogger, RequestContext
from app.services.mailer import Mailer

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        session: AsyncSession,
        token_service: TokenService,
        security: SecurityConfig,
        mailer: Mailer,
    ):
        self.users = UserRepository(session)
        self.refresh_tokens = RefreshTokenRepository(session)
        self.audit = AuditLogger(session)
        self.token_service = token_service
        self.security = security
        self.mailer = mailer

    @staticmethod
    def _assert_active(user: User) -> None:
        if not user.is_active:
            raise AuthorizationError("Account has been deactivated. Please contact support.")

    async def _create_session_tokens(
        self,
        user: User,
        context: RequestContext,
        replaced_token_id: Optional[str] = None,
    ) -> SessionTokens:
        """Issue an access/refresh pair and persist the refresh token hash"""
        access_token = self.token_service.generate_access_token(user.id, user.email, user.role)
        token_id = str(uuid.uuid4())
        refresh_token = self.token_service.generate_refresh_token(user.id, token_id)
        expires_at = self.token_service.refresh_token_expiry_date()

        await self.refresh_tokens.create(
            token_id=token_id,
            user_id=user.id,
            token_hash=hash_token(refresh_token),
            expires_at=expires_at,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )

        if replaced_token_id:
            await self.refresh_tokens.revoke(replaced_token_id, replaced_by=token_id)

        return SessionTokens(
            access_token=access_token,
            access_token_expires_in=self.token_service.access_token_expires_in,
            refresh_token=refresh_token,
            refresh_token_expires_at=expires_at,
        )

    async def register_user(self, user_create: UserCreate, context: RequestContext) -> Tuple[User, SessionTokens]:
        existing_user = await self.users.get_by_email(user_create.email)
        if existing_user:
            raise ConflictError("Email address is already registered")

        verification = create_timed_token(self.security.EMAIL_VERIFICATION_TOKEN_HOURS)
        user = await self.users.create(
            email=user_create.email,
            password_hash=get_password_hash(user_create.password),
            first_name=user_create.first_name,
            last_name=user_create.last_name,
            verification=verification,
        )
        tokens = await self._create_session_tokens(user, context)

        await self.mailer.send_verification_email(
            user.email, verification.token, first_name=user.first_name, language=user_create.language
        )
        await self.audit.log("auth.register", entity="user", user_id=user.id,
                             meta={"email": user.email}, context=context)
        return user, tokens

    async def authenticate_user(self, email: str, password: str, context: RequestContext) -> Tuple[User, SessionTokens]:
        user = await self.users.get_by_email(email)
        if not user:
            raise AuthenticationError("Invalid email or password")

        self._assert_active(user)

        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        user = await self.users.update_last_login(user.id)
        tokens = await self._create_session_tokens(user, context)
        await self.audit.log("auth.login", entity="user", user_id=user.id,
                             meta={"email": user.email}, context=context)
        return user, tokens

    async def refresh_tokens_for(self, refresh_token: str, context: RequestContext) -> Tuple[User, SessionTokens]:
        """Rotate a refresh token: the presented one is revoked and replaced"""
        try:
            payload = self.token_service.verify_refresh_token(refresh_token)
        except TokenError:
            raise AuthenticationError("Invalid or expired refresh token")

        record = await self.refresh_tokens.get_by_hash(hash_token(refresh_token))
        if not record or record.revoked_at:
            raise AuthenticationError("Refresh token has been revoked")

        if ensure_aware(record.expires_at) <= utc_now():
            await self.refresh_tokens.revoke(record.id)
            raise AuthenticationError("Refresh token has expired")

        if str(record.user_id) != payload.get("sub") or record.id != payload.get("jti"):
            await self.refresh_tokens.revoke(record.id)
            raise AuthenticationError("Refresh token does not match session")

        user = await self.users.get_by_id(record.user_id)
        if not user:
            raise AuthenticationError("User does not exist")
        self._assert_active(user)

        tokens = await self._create_session_tokens(user, context, replaced_token_id=record.id)
        await self.audit.log("auth.refresh", entity="refresh_token", user_id=user.id,
                             meta={"previous_token_id": record.id}, context=context)
        return user, tokens

    async def logout(self, refresh_token: str, context: RequestContext) -> None:
        record = await self.refresh_tokens.get_by_hash(hash_token(refresh_token))
        if record and not record.revoked_at:
            await self.refresh_tokens.revoke(record.id)
            await self.audit.log("auth.logout", entity="refresh_token", user_id=record.user_id,
                                 meta={"token_id": record.id}, context=context)

    async def verify_email(self, token: str, context: RequestContext) -> Tuple[User, bool]:
        """Redeem a verification token; returns the user and whether it was already verified"""
        user = await self.users.get_by_verification_hash(hash_token(token), utc_now())
        if not user:
            raise ValidationError("Verification token is invalid or has expired")

        if user.is_email_verified:
            return user, True

        user = await self.users.mark_email_verified(user.id)
        await self.audit.log("auth.verify-email", entity="user", user_id=user.id,
                             meta={"email": user.email}, context=context)
        return user, False

    async def request_password_reset(self, email: str, language: Optional[str], context: RequestContext) -> None:
        user = await self.users.get_by_email(email)
        if not user:
            # same answer either way, so accounts cannot be enumerated
            logger.info("Password reset requested for unknown email")
            return

        reset = create_timed_token(self.security.PASSWORD_RESET_TOKEN_HOURS)
        await self.users.set_password_reset(user.id, reset)
        await self.mailer.send_password_reset_email(
            user.email, reset.token, first_name=user.first_name, language=language
        )
        await self.audit.log("auth.request-password-reset", entity="user", user_id=user.id,
                             meta={"email": user.email}, context=context)

    async def reset_password(self, token: str, new_password: str, context: RequestContext) -> User:
        user = await self.users.get_by_reset_hash(hash_token(token), utc_now())
        if not user:
            raise ValidationError("Password reset token is invalid or has expired")

        user = await self.users.update_password(user.id, get_password_hash(new_password))
        await self.audit.log("auth.reset-password", entity="user", user_id=user.id,
                             meta={"email": user.email}, context=context)
        return user

    async def get_current_user(self, token: str) -> User:
        """Resolve the user behind an access token"""
        try:
            payload = self.token_service.verify_access_token(token)
        except TokenError:
            raise AuthenticationError("Invalid or expired access token")

        try:
            user_id = int(payload["sub"])
        except (KeyError, ValueError):
            raise AuthenticationError("Invalid token payload")

        user = await self.users.get_by_id(user_id)
        if not user or not user.is_active:
            raise AuthenticationError("Account is inactive or no longer exists")
        return user
